"""FastAPI dependency injection for the record store, audit sink and engine."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.engine import Engine

from bulkreplace.config import get_settings
from bulkreplace.db import get_engine
from bulkreplace.services.audit import AuditSink, DatabaseAuditSink
from bulkreplace.services.engine import ReplaceEngine
from bulkreplace.services.store import RecordStore, SqlRecordStore


def get_record_store(engine: Engine = Depends(get_engine)) -> RecordStore:
    """Construct a record store over the host database.

    Built per request so reflected schemas never outlive one workflow step.
    """
    return SqlRecordStore(engine, table_prefix=get_settings().table_prefix)


def get_audit_sink(engine: Engine = Depends(get_engine)) -> AuditSink:
    return DatabaseAuditSink(engine)


def get_replace_engine(
    store: RecordStore = Depends(get_record_store),
    audit_sink: AuditSink = Depends(get_audit_sink),
) -> ReplaceEngine:
    """Construct a fresh ReplaceEngine (new stats, new log) for this request."""
    return ReplaceEngine.from_settings(store, get_settings(), audit_sink=audit_sink)
