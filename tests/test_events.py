import logging

import structlog

from reqlens.observability.logging import EventBusLogHandler
from reqlens.services.events import (
    ControllerStarted,
    EventBus,
    LogEmitted,
    bind_event_bus,
    emit_to_active_bus,
    get_active_bus,
    reset_event_bus,
)


def _collecting_bus() -> tuple[EventBus, list]:
    bus = EventBus()
    received: list = []
    bus.subscribe("log", received.append)
    return bus, received


def test_bus_dispatches_by_event_name() -> None:
    bus = EventBus()
    started: list = []
    bus.subscribe("controller.start", started.append)

    bus.emit(ControllerStarted())
    bus.emit(LogEmitted(level="info", message="ignored"))

    assert started == [ControllerStarted()]


def test_emit_without_active_bus_is_a_noop() -> None:
    assert get_active_bus() is None
    assert emit_to_active_bus(ControllerStarted()) is False


def test_active_bus_binding_is_reset() -> None:
    bus, received = _collecting_bus()
    token = bind_event_bus(bus)
    try:
        assert emit_to_active_bus(LogEmitted(level="info", message="hi")) is True
    finally:
        reset_event_bus(token)

    assert get_active_bus() is None
    assert [event.message for event in received] == ["hi"]


def test_failing_handler_does_not_propagate() -> None:
    bus = EventBus()

    def broken(event) -> None:
        raise RuntimeError("boom")

    bus.subscribe("controller.start", broken)
    token = bind_event_bus(bus)
    try:
        assert emit_to_active_bus(ControllerStarted()) is False
    finally:
        reset_event_bus(token)


def _record(name: str, msg, *, args=(), extra=None) -> logging.LogRecord:
    record = logging.LogRecord(name, logging.WARNING, __file__, 1, msg, args, None)
    for key, value in (extra or {}).items():
        setattr(record, key, value)
    return record


def test_log_handler_forwards_stdlib_records() -> None:
    bus, received = _collecting_bus()
    token = bind_event_bus(bus)
    try:
        EventBusLogHandler().handle(_record("app.users", "user %s missing", args=(7,), extra={"user_id": 7}))
    finally:
        reset_event_bus(token)

    assert len(received) == 1
    event = received[0]
    assert event.level == "warning"
    assert event.message == "user 7 missing"
    assert event.context == {"user_id": 7, "logger": "app.users"}


def test_log_handler_unpacks_structlog_event_dicts() -> None:
    bus, received = _collecting_bus()
    event_dict = {"event": "listing_users", "count": 2, "level": "warning", "timestamp": "now", "_record": None}
    token = bind_event_bus(bus)
    try:
        EventBusLogHandler().handle(_record("demo", event_dict))
    finally:
        reset_event_bus(token)

    assert received[0].message == "listing_users"
    assert received[0].context == {"count": 2, "logger": "demo"}


def test_log_handler_skips_own_records() -> None:
    bus, received = _collecting_bus()
    token = bind_event_bus(bus)
    try:
        EventBusLogHandler().handle(_record("reqlens.collector", "internal"))
    finally:
        reset_event_bus(token)

    assert received == []


def test_structlog_records_reach_the_bus(monkeypatch) -> None:
    handler = EventBusLogHandler()
    stdlib_logger = logging.getLogger("bridge-test")
    stdlib_logger.addHandler(handler)
    monkeypatch.setattr(stdlib_logger, "level", logging.INFO)
    monkeypatch.setattr(stdlib_logger, "propagate", False)

    logger = structlog.wrap_logger(
        stdlib_logger,
        processors=[structlog.processors.add_log_level, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
    )

    bus, received = _collecting_bus()
    token = bind_event_bus(bus)
    try:
        logger.info("cache_miss", key="users")
    finally:
        reset_event_bus(token)
        stdlib_logger.removeHandler(handler)

    assert [(e.level, e.message, e.context) for e in received] == [("info", "cache_miss", {"key": "users", "logger": "bridge-test"})]
