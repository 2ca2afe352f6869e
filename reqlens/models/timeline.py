from __future__ import annotations

import time

from pydantic import BaseModel, Field


def _now() -> float:
    return time.time()


class TimelineEvent(BaseModel):
    name: str
    description: str | None = None
    started_at: float | None = None
    ended_at: float | None = None

    def begin(self, at: float | None = None) -> TimelineEvent:
        # Repeated begins keep the first start time.
        if self.started_at is None:
            self.started_at = _now() if at is None else at
        return self

    def end(self, at: float | None = None) -> TimelineEvent:
        self.ended_at = _now() if at is None else at
        return self

    @property
    def duration(self) -> float | None:
        """Duration in milliseconds, or None unless both ends are set."""

        if self.started_at is None or self.ended_at is None:
            return None
        return (self.ended_at - self.started_at) * 1000.0


class Timeline(BaseModel):
    events: dict[str, TimelineEvent] = Field(default_factory=dict)

    def event(self, name: str, description: str | None = None) -> TimelineEvent:
        existing = self.events.get(name)
        if existing is None:
            existing = TimelineEvent(name=name, description=description or name)
            self.events[name] = existing
        return existing

    def merge(self, other: Timeline) -> Timeline:
        for name, event in other.events.items():
            self.events[name] = event.model_copy(deep=True)
        return self
