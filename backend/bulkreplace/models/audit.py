"""One audit row per replace pass (dry run or live)."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel
from sqlmodel import Field, SQLModel


class ReplacementAudit(SQLModel, table=True):
    __tablename__ = "bulkreplace_audit_log"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str | None = Field(default=None, index=True)
    search_term: str
    replacement_text: str = Field(default="")
    case_sensitive: bool = Field(default=False)
    dry_run: bool = Field(default=True)
    items_replaced: int = Field(default=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Pydantic schemas ---


class ReplacementAuditRead(BaseModel):
    id: str
    user_id: str | None
    search_term: str
    replacement_text: str
    case_sensitive: bool
    dry_run: bool
    items_replaced: int
    created_at: datetime

    model_config = {"from_attributes": True}
