from __future__ import annotations

from collections import defaultdict
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar

import structlog


@dataclass(frozen=True)
class LifecycleEvent:
    name: ClassVar[str] = ""


@dataclass(frozen=True)
class ControllerStarted(LifecycleEvent):
    name: ClassVar[str] = "controller.start"


@dataclass(frozen=True)
class ControllerEnded(LifecycleEvent):
    name: ClassVar[str] = "controller.end"


@dataclass(frozen=True)
class LogEmitted(LifecycleEvent):
    name: ClassVar[str] = "log"

    level: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)


Handler = Callable[[LifecycleEvent], Any]


class EventBus:
    """Synchronous named-event dispatcher."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, name: str, handler: Handler) -> None:
        self._handlers[name].append(handler)

    def emit(self, event: LifecycleEvent) -> None:
        for handler in list(self._handlers.get(event.name, ())):
            handler(event)

    def has_listeners(self, name: str) -> bool:
        return bool(self._handlers.get(name))


# Bus of the request currently being handled in this context.
_ACTIVE_BUS: ContextVar[EventBus | None] = ContextVar("reqlens_active_bus", default=None)


def bind_event_bus(bus: EventBus) -> Token:
    return _ACTIVE_BUS.set(bus)


def reset_event_bus(token: Token) -> None:
    _ACTIVE_BUS.reset(token)


def get_active_bus() -> EventBus | None:
    return _ACTIVE_BUS.get()


def emit_to_active_bus(event: LifecycleEvent) -> bool:
    """Emit on the active bus; returns False when no request is being collected."""

    bus = _ACTIVE_BUS.get()
    if bus is None:
        return False
    try:
        bus.emit(event)
    except Exception:
        structlog.get_logger("reqlens.events").exception("event_handler_failed", event_name=event.name)
        return False
    return True
