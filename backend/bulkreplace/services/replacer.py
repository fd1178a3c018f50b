"""Applies a substitution to the items an operator selected.

Items are identified by table, field and record id only. The current value
is always re-read from the store before substituting, so edits made between
scan and replace are respected: an item whose text no longer contains the
term is skipped rather than overwritten.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from bulkreplace.services.catalog import TableFieldSpec, codec_for, is_catalogued
from bulkreplace.services.codecs import get_codec
from bulkreplace.services.errors import WildcardReplacement
from bulkreplace.services.output import OutputLog
from bulkreplace.services.scanner import SearchCriteria, Stats
from bulkreplace.services.store import RecordStore

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_]+$")


class ReplaceStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"
    PREVIEW = "preview"


@dataclass(frozen=True, slots=True)
class SelectedItem:
    table: str
    field: str
    record_id: int

    @classmethod
    def from_key(cls, key: str) -> SelectedItem:
        """Parse a selection key of the form ``table|id|field``."""
        parts = key.split("|")
        if len(parts) != 3:
            raise ValueError(f"Invalid item key: {key!r}")
        table, record_id, field_name = parts
        if not _IDENTIFIER_RE.match(table) or not _IDENTIFIER_RE.match(field_name):
            raise ValueError(f"Invalid item key: {key!r}")
        try:
            parsed_id = int(record_id)
        except ValueError:
            raise ValueError(f"Invalid record id in item key: {key!r}") from None
        return cls(table=table, field=field_name, record_id=parsed_id)

    @property
    def key(self) -> str:
        return f"{self.table}|{self.record_id}|{self.field}"


@dataclass(frozen=True, slots=True)
class ReplacementLogEntry:
    table: str
    field: str
    record_id: int
    status: ReplaceStatus
    message: str


@dataclass
class ReplaceResult:
    stats: Stats
    log: list[ReplacementLogEntry] = field(default_factory=list)
    occurrences_replaced: int = 0
    items_processed: int = 0
    dry_run: bool = True


class Replacer:
    __slots__ = ("store", "catalog", "output")

    def __init__(
        self,
        store: RecordStore,
        catalog: list[TableFieldSpec],
        output: OutputLog | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.output = output if output is not None else OutputLog()

    def apply(
        self,
        items: list[SelectedItem],
        criteria: SearchCriteria,
        replacement: str,
        dry_run: bool,
        stats: Stats | None = None,
    ) -> ReplaceResult:
        """Substitute ``criteria.term`` with ``replacement`` in each item.

        Items are processed in the given order and each one is committed on
        its own. A failing item is logged as ``failed`` and the batch goes on.
        """
        criteria.validate()
        if criteria.wildcard:
            raise WildcardReplacement()

        stats = stats if stats is not None else Stats()
        result = ReplaceResult(stats=stats, dry_run=dry_run)

        if not items:
            self.output.warning("No items to process")
            return result

        mode = "DRY RUN" if dry_run else "EXECUTE"
        total = len(items)
        self.output.info(f"{mode}: Processing {total} items...")
        self.output.info(f"Search: '{criteria.term}' → Replace: '{replacement}'")

        for index, item in enumerate(items, 1):
            self.output.info(f"Processing item {index}/{total}")
            self.output.info(f"Location: {item.table}.{item.field} (ID: {item.record_id})")
            result.items_processed += 1
            try:
                entry, count = self._apply_one(item, criteria, replacement, dry_run)
            except Exception as exc:
                logger.warning(
                    "Replacement failed for %s", item.key, exc_info=True
                )
                self.output.error(f"Error: {exc}")
                stats.items_failed += 1
                entry, count = self._entry(item, ReplaceStatus.FAILED, str(exc)), 0

            if entry.status in (ReplaceStatus.SUCCESS, ReplaceStatus.PREVIEW):
                stats.items_replaced += 1
                result.occurrences_replaced += count
            result.log.append(entry)

        self.output.success(
            f"Completed: {stats.items_replaced} items processed, {stats.items_failed} failed"
        )
        return result

    @staticmethod
    def _entry(item: SelectedItem, status: ReplaceStatus, message: str) -> ReplacementLogEntry:
        return ReplacementLogEntry(
            table=item.table,
            field=item.field,
            record_id=item.record_id,
            status=status,
            message=message,
        )

    def _apply_one(
        self,
        item: SelectedItem,
        criteria: SearchCriteria,
        replacement: str,
        dry_run: bool,
    ) -> tuple[ReplacementLogEntry, int]:
        if not is_catalogued(item.table, item.field, self.catalog):
            raise ValueError(f"{item.table}.{item.field} is not a searchable field")

        current = self.store.get_by_id(item.table, item.record_id, item.field)
        codec = get_codec(codec_for(item.table, item.field, self.catalog))
        new_content, count = codec.apply_replacement(
            current, criteria.term, replacement, criteria.case_sensitive
        )

        if new_content == current:
            self.output.info("No changes needed (text not found)")
            return self._entry(item, ReplaceStatus.SKIPPED, "Text not found in current content"), 0

        if dry_run:
            self.output.info(f"✓ Would replace {count} occurrence(s) (DRY RUN)")
            return self._entry(
                item, ReplaceStatus.PREVIEW, f"Would replace {count} occurrence(s)"
            ), count

        self.store.update_field(item.table, item.record_id, item.field, new_content)
        self.output.success(f"✓ Replaced {count} occurrence(s)")
        return self._entry(item, ReplaceStatus.SUCCESS, f"Replaced {count} occurrence(s)"), count
