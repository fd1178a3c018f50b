"""Which tables and fields are searched, and how.

Order matters: tables are scanned in the order listed and fields in the
order declared, so reports are reproducible for identical data.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from bulkreplace.services.codecs import CodecKind
from bulkreplace.services.store import RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TableFieldSpec:
    """Searchable fields of one table, all sharing one codec."""
    table: str
    fields: tuple[str, ...]
    codec: CodecKind = CodecKind.PLAIN_TEXT
    # Optional (column, allowed values) narrowing for encoded-field candidate fetches
    discriminator: tuple[str, tuple[str, ...]] | None = None
    optional: bool = False  # add-on table, checked before inclusion


def _plain(table: str, *fields: str) -> TableFieldSpec:
    return TableFieldSpec(table=table, fields=fields)


BASE_CATALOG: tuple[TableFieldSpec, ...] = (
    # Course content
    _plain("course", "fullname", "shortname", "summary"),
    _plain("course_sections", "name", "summary"),
    _plain("course_categories", "name", "description"),
    # Activities
    _plain("page", "name", "intro", "content"),
    _plain("label", "name", "intro"),
    _plain("book", "name", "intro"),
    _plain("book_chapters", "title", "content"),
    _plain("forum", "name", "intro"),
    _plain("forum_posts", "subject", "message"),
    _plain("forum_discussions", "name"),
    _plain("quiz", "name", "intro"),
    _plain("assign", "name", "intro"),
    _plain("glossary", "name", "intro"),
    _plain("glossary_entries", "concept", "definition"),
    _plain("wiki", "name", "intro"),
    _plain("wiki_pages", "title", "cachedcontent"),
    _plain("lesson", "name", "intro"),
    _plain("lesson_pages", "title", "contents"),
    _plain("feedback", "name", "intro"),
    _plain("choice", "name", "intro"),
    _plain("survey", "name", "intro"),
    _plain("workshop", "name", "intro"),
    _plain("scorm", "name", "intro"),
    _plain("folder", "name", "intro"),
    _plain("url", "name", "intro"),
    _plain("resource", "name", "intro"),
    # Blocks (configdata is base64 of PHP serialize())
    TableFieldSpec(
        table="block_instances",
        fields=("configdata",),
        codec=CodecKind.SERIALIZED_BLOB,
    ),
    # Question bank
    _plain("question", "name", "questiontext"),
    _plain("question_answers", "answer", "feedback"),
)

# Add-on content stores; included only when the table exists.
OPTIONAL_CATALOG: tuple[TableFieldSpec, ...] = (
    TableFieldSpec(
        table="h5p",
        fields=("jsoncontent",),
        codec=CodecKind.JSON,
        optional=True,
    ),
    TableFieldSpec(table="hvp", fields=("name", "intro"), optional=True),
    TableFieldSpec(
        table="hvp",
        fields=("json_content",),
        codec=CodecKind.JSON,
        optional=True,
    ),
)


def build_catalog(
    store: RecordStore, include_optional: bool = True
) -> list[TableFieldSpec]:
    """Build the catalog for one scan.

    Base entries are always listed (the scanner checks them table by table).
    Optional entries are kept only when their table exists in the store.
    """
    catalog = list(BASE_CATALOG)
    if not include_optional:
        return catalog

    for spec in OPTIONAL_CATALOG:
        try:
            present = store.table_exists(spec.table)
        except Exception:
            logger.warning("Could not inspect optional table %s", spec.table, exc_info=True)
            continue
        if present:
            catalog.append(spec)
        else:
            logger.debug("Optional table %s not installed, skipping", spec.table)
    return catalog


def codec_for(table: str, field: str, catalog: list[TableFieldSpec]) -> CodecKind:
    """Codec declared for ``table.field``; plain text when not catalogued."""
    for spec in catalog:
        if spec.table == table and field in spec.fields:
            return spec.codec
    return CodecKind.PLAIN_TEXT


def is_catalogued(table: str, field: str, catalog: list[TableFieldSpec]) -> bool:
    return any(spec.table == table and field in spec.fields for spec in catalog)


def searched_tables(catalog: list[TableFieldSpec]) -> list[str]:
    """Distinct table names in scan order."""
    seen: list[str] = []
    for spec in catalog:
        if spec.table not in seen:
            seen.append(spec.table)
    return seen
