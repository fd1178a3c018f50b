from __future__ import annotations

import os

# Set test environment BEFORE importing bulkreplace modules.
# bulkreplace.db creates the engine at module level using get_settings().db_url,
# so we must override the env vars before any bulkreplace imports.
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("TABLE_PREFIX", "mdl_")
os.environ.setdefault("SITE_URL", "http://lms.test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Column, Integer, MetaData, String, Table, Text, insert
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

import bulkreplace.models  # noqa: F401  (registers SQLModel tables)

from bulkreplace.db import get_engine, get_session
from bulkreplace.main import app as fastapi_app
from bulkreplace.services.catalog import build_catalog
from bulkreplace.services.locations import LocationResolver
from bulkreplace.services.store import SqlRecordStore

TABLE_PREFIX = "mdl_"
SITE_URL = "http://lms.test"


# ── Host platform schema ──────────────────────────────────────────────
# A slice of the LMS schema: enough tables to exercise every codec and
# every location label. Everything else in the catalog is absent.

host_metadata = MetaData()


def _host_table(name: str, *columns: Column) -> Table:
    return Table(
        f"{TABLE_PREFIX}{name}",
        host_metadata,
        Column("id", Integer, primary_key=True),
        *columns,
    )


_host_table(
    "course",
    Column("fullname", String(254)),
    Column("shortname", String(255)),
    Column("summary", Text),
)
_host_table(
    "course_sections",
    Column("course", Integer),
    Column("section", Integer),
    Column("name", String(255)),
    Column("summary", Text),
)
_host_table("modules", Column("name", String(20)))
_host_table(
    "course_modules",
    Column("course", Integer),
    Column("module", Integer),
    Column("instance", Integer),
)
_host_table(
    "page",
    Column("course", Integer),
    Column("name", String(255)),
    Column("intro", Text),
    Column("content", Text),
)
_host_table(
    "book",
    Column("course", Integer),
    Column("name", String(255)),
    Column("intro", Text),
)
_host_table(
    "book_chapters",
    Column("bookid", Integer),
    Column("title", String(255)),
    Column("content", Text),
)
_host_table(
    "forum_discussions",
    Column("course", Integer),
    Column("name", String(255)),
)
_host_table(
    "forum_posts",
    Column("discussion", Integer),
    Column("subject", String(255)),
    Column("message", Text),
)
_host_table(
    "glossary",
    Column("course", Integer),
    Column("name", String(255)),
    Column("intro", Text),
)
_host_table(
    "glossary_entries",
    Column("glossaryid", Integer),
    Column("concept", String(255)),
    Column("definition", Text),
)
_host_table("wiki_pages", Column("title", String(255)), Column("cachedcontent", Text))
_host_table("question", Column("name", String(255)), Column("questiontext", Text))
_host_table(
    "block_instances",
    Column("blockname", String(40)),
    Column("configdata", Text),
)
_host_table("h5p", Column("jsoncontent", Text))


# ── Database fixtures ─────────────────────────────────────────────────


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine with the audit table and the host tables.

    Uses StaticPool so every connection shares the same in-memory database.
    Recreates tables per test for full isolation.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    host_metadata.create_all(engine)
    yield engine
    host_metadata.drop_all(engine)
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    """Provide a fresh session per test."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="insert_row")
def insert_row_fixture(engine):
    """Insert a row into a host table by its logical name."""

    def _insert(table: str, **values) -> None:
        with engine.begin() as conn:
            conn.execute(insert(host_metadata.tables[f"{TABLE_PREFIX}{table}"]).values(**values))

    return _insert


# ── Service fixtures ──────────────────────────────────────────────────


@pytest.fixture(name="store")
def store_fixture(engine) -> SqlRecordStore:
    return SqlRecordStore(engine, table_prefix=TABLE_PREFIX)


@pytest.fixture(name="catalog")
def catalog_fixture(store):
    return build_catalog(store)


@pytest.fixture(name="resolver")
def resolver_fixture(store) -> LocationResolver:
    return LocationResolver(store, SITE_URL)


@pytest.fixture(name="course_page")
def course_page_fixture(insert_row):
    """One course with one page whose content is "Hello World"."""
    insert_row("course", id=1, fullname="Intro to Testing", shortname="C101", summary="")
    insert_row("modules", id=15, name="page")
    insert_row("course_modules", id=42, course=1, module=15, instance=1)
    insert_row("page", id=1, course=1, name="Welcome", intro="", content="Hello World")


# ── HTTP client fixtures ──────────────────────────────────────────────


@pytest.fixture(name="client")
def client_fixture(engine, session):
    """FastAPI TestClient with the DB engine and session overridden."""

    def _get_session_override():
        yield session

    def _get_engine_override():
        return engine

    fastapi_app.dependency_overrides[get_session] = _get_session_override
    fastapi_app.dependency_overrides[get_engine] = _get_engine_override
    with TestClient(fastapi_app) as client:
        yield client
    fastapi_app.dependency_overrides.clear()
