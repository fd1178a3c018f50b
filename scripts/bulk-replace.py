#!/usr/bin/env python3
"""CLI tool for scanning and replacing text across LMS content tables.

Scans first; replaces only the items selected with --select (or every match
with --all). Without --apply the replace pass is a dry run.

Usage:
    python3 scripts/bulk-replace.py --term "http://old.example" --db-url sqlite:///lms.db
    python3 scripts/bulk-replace.py --term old --replace new --all
    python3 scripts/bulk-replace.py --term old --replace new --select "page|1|content" \
        --apply --backup-confirmed
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

# Allow running from repo root: add backend/ to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from sqlmodel import SQLModel

import bulkreplace.models  # noqa: F401  (registers SQLModel tables)

from bulkreplace.config import get_settings
from bulkreplace.db import build_engine
from bulkreplace.services.audit import DatabaseAuditSink, NullAuditSink
from bulkreplace.services.engine import ReplaceEngine
from bulkreplace.services.errors import ReplaceError, WildcardReplacement
from bulkreplace.services.store import SqlRecordStore


def main() -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Search and replace text across LMS content tables."
    )
    parser.add_argument("--term", "-t", required=True, help="Text to search for")
    parser.add_argument(
        "--replace",
        "-r",
        type=str,
        default=None,
        help="Replacement text (omit to scan only)",
    )
    parser.add_argument(
        "--case-sensitive",
        action="store_true",
        help="Match case exactly (default: case-insensitive)",
    )
    parser.add_argument(
        "--wildcard",
        action="store_true",
        help="Treat '*' in the term as a wildcard (scan only)",
    )
    parser.add_argument(
        "--select",
        "-s",
        action="append",
        default=[],
        metavar="TABLE|ID|FIELD",
        help="Item to replace in; repeatable",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Replace in every item the scan found",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Write changes (default: dry run)",
    )
    parser.add_argument(
        "--backup-confirmed",
        action="store_true",
        help="Confirm a database backup exists (required with --apply)",
    )
    parser.add_argument(
        "--db-url",
        type=str,
        default=settings.db_url,
        help=f"Database URL (default: {settings.db_url})",
    )
    parser.add_argument(
        "--table-prefix",
        type=str,
        default=settings.table_prefix,
        help=f"Physical table prefix (default: {settings.table_prefix!r})",
    )
    parser.add_argument(
        "--user-id",
        type=str,
        default=None,
        help="Operator id recorded in the audit log",
    )
    parser.add_argument(
        "--no-audit",
        action="store_true",
        help="Do not write the audit log table",
    )
    parser.add_argument("--verbose", "-v", action="store_true")

    args = parser.parse_args()

    if args.wildcard and args.replace is not None:
        print(f"Error: {WildcardReplacement()}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )

    run_settings = settings.model_copy(
        update={"db_url": args.db_url, "table_prefix": args.table_prefix}
    )
    engine = build_engine(run_settings)
    store = SqlRecordStore(engine, table_prefix=run_settings.table_prefix)

    if args.no_audit:
        audit_sink = NullAuditSink()
    else:
        SQLModel.metadata.create_all(engine)
        audit_sink = DatabaseAuditSink(engine)

    replace_engine = ReplaceEngine.from_settings(store, run_settings, audit_sink=audit_sink)

    # --- Scan ---
    try:
        scan = replace_engine.scan(args.term, args.case_sensitive, wildcard=args.wildcard)
    except ReplaceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"=== Scan: {args.term!r} ===")
    for item in scan.items:
        print(f"{item.item_key}  {item.location}  ({len(item.occurrences)} occurrence(s))")
        if item.url:
            print(f"  {item.url}")
        print(f"  {item.preview}")
    print(f"Found {scan.stats.items_found} matching item(s)")
    for warning in scan.warnings:
        print(f"WARNING: {warning}", file=sys.stderr)

    if args.replace is None:
        return 0

    # --- Replace ---
    selected = [item.item_key for item in scan.items] if args.all else args.select
    if not selected:
        print("Please select at least one item to update.", file=sys.stderr)
        return 1

    try:
        result = replace_engine.replace(
            selected,
            args.term,
            args.case_sensitive,
            args.replace,
            dry_run=not args.apply,
            backup_confirmed=args.backup_confirmed,
            user_id=args.user_id,
        )
    except ReplaceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("")
    print(f"=== {'Dry run' if result.dry_run else 'Replace'}: {args.term!r} -> {args.replace!r} ===")
    for entry in result.log:
        print(f"[{entry.status.value}] {entry.table}|{entry.record_id}|{entry.field}: {entry.message}")
    print(
        f"Processed {result.items_processed} item(s): "
        f"{result.stats.items_replaced} replaced, {result.stats.items_failed} failed, "
        f"{result.occurrences_replaced} occurrence(s)"
    )

    return 1 if result.stats.items_failed else 0


if __name__ == "__main__":
    sys.exit(main())
