"""User-facing progress messages collected during a scan or replace pass."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

logger = logging.getLogger(__name__)

MessageType = Literal["info", "success", "warning", "error"]

_LOG_LEVELS = {
    "info": logging.DEBUG,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True, slots=True)
class OutputMessage:
    message: str
    type: MessageType
    time: datetime


@dataclass
class OutputLog:
    """Ordered message list shown to the operator next to the results."""

    messages: list[OutputMessage] = field(default_factory=list)

    def add(self, message: str, type: MessageType = "info") -> None:
        self.messages.append(
            OutputMessage(message=message, type=type, time=datetime.now(timezone.utc))
        )
        logger.log(_LOG_LEVELS[type], "%s", message)

    def info(self, message: str) -> None:
        self.add(message, "info")

    def success(self, message: str) -> None:
        self.add(message, "success")

    def warning(self, message: str) -> None:
        self.add(message, "warning")

    def error(self, message: str) -> None:
        self.add(message, "error")
