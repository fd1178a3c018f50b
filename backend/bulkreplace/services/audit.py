"""Audit sinks record who ran which replace pass.

Sinks are fire-and-forget: ``record_safely`` logs a failing sink and
carries on, so auditing can never fail a replace.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy.engine import Engine
from sqlmodel import Session

from bulkreplace.models.audit import ReplacementAudit

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuditRecord:
    user_id: str | None
    term: str
    replacement_text: str
    case_sensitive: bool
    dry_run: bool
    items_replaced: int
    timestamp: datetime


class AuditSink(Protocol):
    def record_operation(self, record: AuditRecord) -> None: ...


class NullAuditSink:
    def record_operation(self, record: AuditRecord) -> None:
        return None


class DatabaseAuditSink:
    """Persists each operation as a ``bulkreplace_audit_log`` row."""

    __slots__ = ("engine",)

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def record_operation(self, record: AuditRecord) -> None:
        with Session(self.engine) as session:
            session.add(
                ReplacementAudit(
                    user_id=record.user_id,
                    search_term=record.term,
                    replacement_text=record.replacement_text,
                    case_sensitive=record.case_sensitive,
                    dry_run=record.dry_run,
                    items_replaced=record.items_replaced,
                    created_at=record.timestamp,
                )
            )
            session.commit()


def record_safely(sink: AuditSink, record: AuditRecord) -> bool:
    """Send ``record`` to ``sink``; returns False (and logs) on failure."""
    try:
        sink.record_operation(record)
    except Exception:
        logger.warning("Audit sink failed to record operation", exc_info=True)
        return False
    return True
