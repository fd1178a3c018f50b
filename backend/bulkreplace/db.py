from __future__ import annotations

import sqlite3
from collections.abc import Generator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from bulkreplace.config import Settings, get_settings


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


@event.listens_for(Engine, "connect")
def _set_sqlite_pragmas(dbapi_connection, connection_record):
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    # SQLite's built-in lower() only folds ASCII; ILIKE compiles to lower() LIKE lower().
    dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute(
        f"PRAGMA busy_timeout={int(get_settings().store_timeout_seconds * 1000)}"
    )
    cursor.close()


def build_engine(settings: Settings) -> Engine:
    """Create the engine for the host platform's database.

    The store timeout doubles as the SQLite lock wait and the pool checkout
    timeout, so a stalled store fails a single call instead of hanging a batch.
    """
    connect_args: dict = {}
    if settings.db_url.startswith("sqlite"):
        connect_args = {
            "check_same_thread": False,
            "timeout": settings.store_timeout_seconds,
        }
        return create_engine(settings.db_url, echo=False, connect_args=connect_args)
    return create_engine(
        settings.db_url,
        echo=False,
        pool_pre_ping=True,
        pool_timeout=settings.store_timeout_seconds,
    )


engine = build_engine(get_settings())


def create_db_and_tables() -> None:
    """Create the tables owned by this service (the audit log only).

    The content tables belong to the host platform and are never created here.
    """
    SQLModel.metadata.create_all(engine)


def get_engine() -> Engine:
    return engine


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
