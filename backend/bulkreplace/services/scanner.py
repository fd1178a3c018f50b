"""Finds every catalogued field that contains the search term.

Plain-text fields are narrowed with a LIKE query in the store. JSON and
serialized fields cannot be matched reliably in SQL, so every candidate row
is fetched and tested after decoding. In both cases the match is confirmed
in process, which also makes case-sensitive searches exact on backends whose
LIKE ignores case.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from bulkreplace.services.catalog import TableFieldSpec
from bulkreplace.services.codecs import CodecKind, FieldCodec, get_codec
from bulkreplace.services.errors import EmptySearchTerm
from bulkreplace.services.locations import LocationResolver
from bulkreplace.services.matcher import (
    DEFAULT_CONTEXT_WINDOW,
    DEFAULT_PREVIEW_WINDOW,
    Occurrence,
    context_preview,
    find_all,
    find_all_wildcard,
)
from bulkreplace.services.output import OutputLog
from bulkreplace.services.store import RecordStore, StoredValue

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SearchCriteria:
    term: str
    case_sensitive: bool = False
    wildcard: bool = False  # treat "*" in term as a wildcard (scan only)

    def validate(self) -> None:
        if not self.term:
            raise EmptySearchTerm()


@dataclass
class Stats:
    items_found: int = 0
    items_replaced: int = 0
    items_failed: int = 0


@dataclass(frozen=True, slots=True)
class MatchItem:
    """One field on one record that contains at least one match."""
    table: str
    field: str
    record_id: int
    location: str
    url: str | None
    content_snapshot: str            # raw stored value at scan time
    occurrences: list[Occurrence]    # offsets are into the decoded search text
    preview: str = ""                # short HTML-stripped snippet around the first match

    @property
    def item_key(self) -> str:
        return f"{self.table}|{self.record_id}|{self.field}"


@dataclass
class ScanResult:
    items: list[MatchItem]
    stats: Stats
    warnings: list[str] = field(default_factory=list)


class Scanner:
    __slots__ = (
        "store",
        "catalog",
        "resolver",
        "context_window",
        "preview_window",
        "output",
    )

    def __init__(
        self,
        store: RecordStore,
        catalog: list[TableFieldSpec],
        resolver: LocationResolver,
        context_window: int = DEFAULT_CONTEXT_WINDOW,
        preview_window: int = DEFAULT_PREVIEW_WINDOW,
        output: OutputLog | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.resolver = resolver
        self.context_window = context_window
        self.preview_window = preview_window
        self.output = output if output is not None else OutputLog()

    def scan(self, criteria: SearchCriteria, stats: Stats | None = None) -> ScanResult:
        """Scan the catalog in order and collect matching items.

        A failing table or field is recorded as a warning and skipped; the
        results gathered so far are always returned.
        """
        criteria.validate()
        stats = stats if stats is not None else Stats()
        items: list[MatchItem] = []
        warnings: list[str] = []

        self.output.info("Searching database for text content...")

        for spec in self.catalog:
            try:
                if not self.store.table_exists(spec.table):
                    if spec.optional:
                        logger.debug("Optional table %s not installed", spec.table)
                    else:
                        self.output.warning(f"Table {spec.table} not found, skipped")
                    continue
            except Exception as exc:
                logger.warning("Cannot inspect table %s", spec.table, exc_info=True)
                warnings.append(f"Error searching {spec.table}: {exc}")
                self.output.error(f"Error searching {spec.table}: {exc}")
                continue

            for field_name in spec.fields:
                try:
                    if not self.store.field_exists(spec.table, field_name):
                        self.output.warning(
                            f"Field {spec.table}.{field_name} not found, skipped"
                        )
                        continue
                    self.output.info(f"Searching {spec.table}.{field_name}...")
                    items.extend(self._scan_field(spec, field_name, criteria))
                except Exception as exc:
                    logger.warning(
                        "Error searching %s.%s", spec.table, field_name, exc_info=True
                    )
                    warnings.append(f"Error searching {spec.table}.{field_name}: {exc}")
                    self.output.error(f"Error searching {spec.table}.{field_name}: {exc}")

        stats.items_found += len(items)
        self.output.success(f"Found {len(items)} matching items in database")
        if warnings and not items:
            self.output.warning(f"Scan finished with {len(warnings)} error(s) and no results")
        return ScanResult(items=items, stats=stats, warnings=warnings)

    def _scan_field(
        self, spec: TableFieldSpec, field_name: str, criteria: SearchCriteria
    ) -> list[MatchItem]:
        codec = get_codec(spec.codec)
        if spec.codec is CodecKind.PLAIN_TEXT:
            rows = self.store.query(
                spec.table,
                field_name,
                criteria.term,
                criteria.case_sensitive,
                criteria.wildcard,
            )
        else:
            rows = self.store.fetch_all(spec.table, field_name, spec.discriminator)

        items = []
        for row in rows:
            item = self._match_row(spec.table, field_name, row, codec, criteria)
            if item is not None:
                items.append(item)
        return items

    def _occurrences(self, segments: list[str], criteria: SearchCriteria) -> list[Occurrence]:
        """Matches in each segment, positioned as if the segments were joined by newlines.

        A match never spans two segments; replacement also works one leaf at a time.
        """
        found: list[Occurrence] = []
        offset = 0
        for segment in segments:
            if criteria.wildcard:
                matches = find_all_wildcard(
                    segment, criteria.term, criteria.case_sensitive, self.context_window
                )
            else:
                matches = find_all(
                    segment, criteria.term, criteria.case_sensitive, self.context_window
                )
            found.extend(replace(m, position=m.position + offset) for m in matches)
            offset += len(segment) + 1
        return found

    def _match_row(
        self,
        table: str,
        field_name: str,
        row: StoredValue,
        codec: FieldCodec,
        criteria: SearchCriteria,
    ) -> MatchItem | None:
        segments = codec.decode_for_search(row.content)
        if segments is None:
            logger.warning("Cannot decode %s.%s id=%s, excluded", table, field_name, row.id)
            self.output.warning(
                f"Could not decode {table}.{field_name} (ID: {row.id}), excluded from results"
            )
            return None

        occurrences = self._occurrences(segments, criteria)
        if not occurrences:
            return None

        preview_term = occurrences[0].match if criteria.wildcard else criteria.term
        preview = context_preview(
            codec.decode_for_preview(row.content),
            preview_term,
            criteria.case_sensitive,
            self.preview_window,
        )
        location = self.resolver.resolve(table, row.id)
        return MatchItem(
            table=table,
            field=field_name,
            record_id=row.id,
            location=location.location,
            url=location.url,
            content_snapshot=row.content,
            occurrences=occurrences,
            preview=preview,
        )
