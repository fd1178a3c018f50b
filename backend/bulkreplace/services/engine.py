"""The caller-facing scan / preview / replace workflow.

One engine instance covers one scan-then-replace workflow: it accumulates
stats, operator messages and the replacement log across calls. Construct a
new instance to start over. Wizard state (selection, step, cached results)
stays with the caller and is passed in as plain arguments.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from bulkreplace.config import Settings
from bulkreplace.services.audit import AuditRecord, AuditSink, NullAuditSink, record_safely
from bulkreplace.services.catalog import TableFieldSpec, build_catalog
from bulkreplace.services.errors import ConfirmationRequired, EmptyReplacementText
from bulkreplace.services.locations import LocationResolver
from bulkreplace.services.matcher import DEFAULT_CONTEXT_WINDOW, DEFAULT_PREVIEW_WINDOW
from bulkreplace.services.output import OutputLog, OutputMessage
from bulkreplace.services.replacer import (
    ReplacementLogEntry,
    ReplaceResult,
    Replacer,
    ReplaceStatus,
    SelectedItem,
)
from bulkreplace.services.scanner import ScanResult, Scanner, SearchCriteria, Stats
from bulkreplace.services.store import RecordStore

logger = logging.getLogger(__name__)

_REPLACED_STATES = (ReplaceStatus.SUCCESS, ReplaceStatus.PREVIEW)


class ReplaceEngine:
    __slots__ = (
        "store",
        "catalog",
        "audit_sink",
        "stats",
        "_output",
        "_log",
        "_scanner",
        "_replacer",
    )

    def __init__(
        self,
        store: RecordStore,
        catalog: list[TableFieldSpec],
        resolver: LocationResolver,
        audit_sink: AuditSink | None = None,
        context_window: int = DEFAULT_CONTEXT_WINDOW,
        preview_window: int = DEFAULT_PREVIEW_WINDOW,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.audit_sink = audit_sink if audit_sink is not None else NullAuditSink()
        self.stats = Stats()
        self._output = OutputLog()
        self._log: list[ReplacementLogEntry] = []
        self._scanner = Scanner(
            store,
            catalog,
            resolver,
            context_window=context_window,
            preview_window=preview_window,
            output=self._output,
        )
        self._replacer = Replacer(store, catalog, output=self._output)

    @classmethod
    def from_settings(
        cls,
        store: RecordStore,
        settings: Settings,
        audit_sink: AuditSink | None = None,
    ) -> ReplaceEngine:
        """Build an engine with a freshly checked catalog."""
        return cls(
            store=store,
            catalog=build_catalog(store, include_optional=settings.include_optional_tables),
            resolver=LocationResolver(store, settings.site_url),
            audit_sink=audit_sink,
            context_window=settings.context_window,
            preview_window=settings.preview_window,
        )

    @property
    def output(self) -> list[OutputMessage]:
        return list(self._output.messages)

    @property
    def log(self) -> list[ReplacementLogEntry]:
        return list(self._log)

    def scan(self, term: str, case_sensitive: bool = False, wildcard: bool = False) -> ScanResult:
        criteria = SearchCriteria(term=term, case_sensitive=case_sensitive, wildcard=wildcard)
        return self._scanner.scan(criteria, stats=self.stats)

    def preview(
        self,
        selected: list[SelectedItem | str],
        term: str,
        case_sensitive: bool,
        replacement: str,
    ) -> ReplaceResult:
        """Dry-run replace: report what would change without writing."""
        return self.replace(selected, term, case_sensitive, replacement, dry_run=True)

    def replace(
        self,
        selected: list[SelectedItem | str],
        term: str,
        case_sensitive: bool,
        replacement: str,
        dry_run: bool = True,
        backup_confirmed: bool = False,
        user_id: str | None = None,
        wildcard: bool = False,
    ) -> ReplaceResult:
        """Replace ``term`` in the selected items.

        ``selected`` holds SelectedItem values or ``table|id|field`` keys;
        malformed keys are reported and dropped. A live run (``dry_run=False``)
        requires ``backup_confirmed``. Wildcard terms are rejected.
        """
        criteria = SearchCriteria(term=term, case_sensitive=case_sensitive, wildcard=wildcard)
        criteria.validate()
        if replacement == "":
            raise EmptyReplacementText()
        if not dry_run and not backup_confirmed:
            raise ConfirmationRequired()

        items = self._normalize(selected)
        result = self._replacer.apply(items, criteria, replacement, dry_run, stats=self.stats)
        self._log.extend(result.log)
        replaced = sum(1 for e in result.log if e.status in _REPLACED_STATES)
        failed = sum(1 for e in result.log if e.status is ReplaceStatus.FAILED)
        logger.info(
            "Replace pass (dry_run=%s) over %d item(s): %d replaced, %d failed",
            dry_run,
            result.items_processed,
            replaced,
            failed,
        )

        record_safely(
            self.audit_sink,
            AuditRecord(
                user_id=user_id,
                term=term,
                replacement_text=replacement,
                case_sensitive=case_sensitive,
                dry_run=dry_run,
                items_replaced=replaced,
                timestamp=datetime.now(timezone.utc),
            ),
        )
        return result

    def _normalize(self, selected: list[SelectedItem | str]) -> list[SelectedItem]:
        items: list[SelectedItem] = []
        for entry in selected:
            if isinstance(entry, SelectedItem):
                items.append(entry)
                continue
            try:
                items.append(SelectedItem.from_key(entry))
            except ValueError as exc:
                self._output.warning(f"Ignoring selection: {exc}")
        return items
