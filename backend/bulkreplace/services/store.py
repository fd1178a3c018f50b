"""The host platform's tables, seen through SQLAlchemy.

The engine only needs schema checks, substring queries, fetch-by-id and
single-field updates. ``RecordStore`` names that surface; ``SqlRecordStore``
implements it over any SQLAlchemy engine by reflecting tables on first use.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy import MetaData, Table, inspect, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from bulkreplace.services.errors import (
    FieldUnavailable,
    RecordNotFound,
    StoreConnectionFailure,
    StoreWriteFailure,
    TableUnavailable,
)

logger = logging.getLogger(__name__)

LIKE_ESCAPE_CHAR = "\\"


@dataclass(frozen=True, slots=True)
class StoredValue:
    """One field value as read from the store."""
    id: int
    content: str


class RecordStore(Protocol):
    def table_exists(self, table: str) -> bool: ...

    def field_exists(self, table: str, field: str) -> bool: ...

    def query(
        self,
        table: str,
        field: str,
        term: str,
        case_sensitive: bool,
        wildcard: bool = False,
    ) -> list[StoredValue]: ...

    def fetch_all(
        self,
        table: str,
        field: str,
        discriminator: tuple[str, tuple[str, ...]] | None = None,
    ) -> list[StoredValue]: ...

    def get_by_id(self, table: str, record_id: int, field: str) -> str: ...

    def get_record(
        self, table: str, conditions: dict[str, Any], columns: list[str]
    ) -> dict[str, Any] | None: ...

    def update_field(
        self, table: str, record_id: int, field: str, new_content: str
    ) -> None: ...


def like_escape(term: str) -> str:
    """Escape LIKE metacharacters so ``term`` matches literally."""
    return (
        term.replace(LIKE_ESCAPE_CHAR, LIKE_ESCAPE_CHAR * 2)
        .replace("%", LIKE_ESCAPE_CHAR + "%")
        .replace("_", LIKE_ESCAPE_CHAR + "_")
    )


def like_pattern(term: str, wildcard: bool = False) -> str:
    """Build a "contains" LIKE pattern.

    Literal ``%``/``_`` are escaped first; only then, for wildcard searches,
    does ``*`` become ``%``.
    """
    escaped = like_escape(term)
    if wildcard:
        escaped = escaped.replace("*", "%")
    return f"%{escaped}%"


class SqlRecordStore:
    """RecordStore over a SQLAlchemy engine.

    Table names are logical ("page"); ``table_prefix`` maps them to the
    physical names ("mdl_page"). Every update runs in its own transaction.
    """

    __slots__ = ("_engine", "_prefix", "_metadata", "_tables")

    def __init__(self, engine: Engine, table_prefix: str = "") -> None:
        self._engine = engine
        self._prefix = table_prefix
        self._metadata = MetaData()
        self._tables: dict[str, Table] = {}

    def physical_name(self, table: str) -> str:
        return f"{self._prefix}{table}"

    def _table(self, table: str) -> Table:
        cached = self._tables.get(table)
        if cached is not None:
            return cached
        try:
            reflected = Table(
                self.physical_name(table), self._metadata, autoload_with=self._engine
            )
        except NoSuchTableError as exc:
            raise TableUnavailable(f"Table {table} does not exist") from exc
        except SQLAlchemyError as exc:
            raise StoreConnectionFailure(f"Cannot read schema of {table}: {exc}") from exc
        self._tables[table] = reflected
        return reflected

    def _column(self, table: str, field: str):
        t = self._table(table)
        if field not in t.c:
            raise FieldUnavailable(f"Field {table}.{field} does not exist")
        return t, t.c[field]

    # --- Schema checks ---

    def table_exists(self, table: str) -> bool:
        if table in self._tables:
            return True
        try:
            return inspect(self._engine).has_table(self.physical_name(table))
        except SQLAlchemyError as exc:
            raise StoreConnectionFailure(f"Cannot inspect table {table}: {exc}") from exc

    def field_exists(self, table: str, field: str) -> bool:
        if not self.table_exists(table):
            return False
        return field in self._table(table).c

    # --- Reads ---

    def _rows(self, stmt) -> list[StoredValue]:
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StoreConnectionFailure(str(exc)) from exc
        return [StoredValue(id=row[0], content=row[1]) for row in rows if row[1] is not None]

    def query(
        self,
        table: str,
        field: str,
        term: str,
        case_sensitive: bool,
        wildcard: bool = False,
    ) -> list[StoredValue]:
        """Records whose ``field`` contains ``term``.

        Case-insensitive matching relies on the backend's ``lower()``; on
        SQLite that is replaced with a Unicode-aware one at connect time
        (see ``bulkreplace.db``). Case-sensitive matching is only as strict as
        the backend's LIKE (SQLite folds ASCII case), so callers must confirm
        matches in process.
        """
        t, col = self._column(table, field)
        pattern = like_pattern(term, wildcard)
        if case_sensitive:
            condition = col.like(pattern, escape=LIKE_ESCAPE_CHAR)
        else:
            condition = col.ilike(pattern, escape=LIKE_ESCAPE_CHAR)
        stmt = select(t.c.id, col).where(condition).order_by(t.c.id)
        return self._rows(stmt)

    def fetch_all(
        self,
        table: str,
        field: str,
        discriminator: tuple[str, tuple[str, ...]] | None = None,
    ) -> list[StoredValue]:
        """Every non-empty value of ``field``, optionally narrowed by a column filter."""
        t, col = self._column(table, field)
        stmt = select(t.c.id, col).where(col.is_not(None), col != "")
        if discriminator is not None:
            column_name, allowed = discriminator
            if column_name not in t.c:
                raise FieldUnavailable(f"Field {table}.{column_name} does not exist")
            stmt = stmt.where(t.c[column_name].in_(allowed))
        return self._rows(stmt.order_by(t.c.id))

    def get_by_id(self, table: str, record_id: int, field: str) -> str:
        t, col = self._column(table, field)
        try:
            with self._engine.connect() as conn:
                row = conn.execute(select(col).where(t.c.id == record_id)).first()
        except SQLAlchemyError as exc:
            raise StoreConnectionFailure(str(exc)) from exc
        if row is None:
            raise RecordNotFound(table, record_id)
        return row[0] if row[0] is not None else ""

    def get_record(
        self, table: str, conditions: dict[str, Any], columns: list[str]
    ) -> dict[str, Any] | None:
        """Selected columns of the first record matching ``conditions``.

        Returns None if the table, a condition column, or the record is
        missing. Requested columns the table lacks are left out.
        """
        if not self.table_exists(table):
            return None
        t = self._table(table)
        present = [t.c[name] for name in columns if name in t.c]
        if not present or any(name not in t.c for name in conditions):
            return None
        stmt = select(*present)
        for name, value in conditions.items():
            stmt = stmt.where(t.c[name] == value)
        try:
            with self._engine.connect() as conn:
                row = conn.execute(stmt.order_by(t.c.id)).first()
        except SQLAlchemyError as exc:
            raise StoreConnectionFailure(str(exc)) from exc
        if row is None:
            return None
        return dict(row._mapping)

    # --- Writes ---

    def update_field(
        self, table: str, record_id: int, field: str, new_content: str
    ) -> None:
        t, _col = self._column(table, field)
        try:
            with self._engine.begin() as conn:
                result = conn.execute(
                    update(t).where(t.c.id == record_id).values({field: new_content})
                )
        except SQLAlchemyError as exc:
            raise StoreWriteFailure(f"Update of {table}.{field} failed: {exc}") from exc
        if result.rowcount == 0:
            raise RecordNotFound(table, record_id)
        logger.debug("Updated %s.%s id=%s", table, field, record_id)
