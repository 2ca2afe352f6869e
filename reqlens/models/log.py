from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, Field

from reqlens.services.serializer import Serializer


class LogEntry(BaseModel):
    level: str
    message: str
    context: dict[str, Any] = Field(default_factory=dict)
    time: float = Field(default_factory=time.time)


class Log(BaseModel):
    """Ordered, append-only collection of log entries."""

    entries: list[LogEntry] = Field(default_factory=list)

    def log(
        self,
        level: str,
        message: Any,
        context: dict[str, Any] | None = None,
        serializer: Serializer | None = None,
    ) -> LogEntry:
        entry = LogEntry(
            level=str(level).lower(),
            message=message if isinstance(message, str) else repr(message),
            context=(serializer or Serializer()).normalize_each(context or {}),
        )
        self.entries.append(entry)
        return entry

    def merge(self, other: Log) -> Log:
        self.entries.extend(entry.model_copy(deep=True) for entry in other.entries)
        return self
