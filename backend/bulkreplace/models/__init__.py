from __future__ import annotations

from bulkreplace.models.audit import ReplacementAudit  # noqa: F401
