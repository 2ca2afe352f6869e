from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import structlog
from starlette.datastructures import MutableHeaders

from reqlens.config import Settings, get_settings
from reqlens.integrations.starlette import context_from_scope
from reqlens.models.record import RequestRecord
from reqlens.observability.store import RecordStore, get_store
from reqlens.services.collector import RequestDataCollector
from reqlens.services.events import ControllerEnded, ControllerStarted, EventBus, bind_event_bus, reset_event_bus
from reqlens.services.serializer import RedactionPolicy, Serializer


RECORD_ID_HEADER = "X-Reqlens-Id"


@dataclass
class CapturedResponse:
    status_code: int


class CollectorMiddleware:
    """Collects a RequestRecord for every HTTP request and stores it."""

    def __init__(
        self,
        app: Callable[..., Any],
        settings: Settings | None = None,
        store: RecordStore | None = None,
    ) -> None:
        self.app = app
        self._settings = settings
        self._store = store

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def store(self) -> RecordStore:
        return self._store or get_store()

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        settings = self.settings
        path = scope.get("path", "")
        # Avoid recording the records API itself.
        if path.startswith(settings.records_prefix):
            await self.app(scope, receive, send)
            return

        record = RequestRecord()
        events = EventBus()
        # Routing rewrites parts of the scope; collect against what the client sent.
        context = context_from_scope(dict(scope), events)
        collector = RequestDataCollector.from_config(
            context,
            settings.collector_config(),
            serializer=Serializer(depth_limit=settings.serializer_depth),
            redaction=RedactionPolicy(settings.redact_pattern),
        )
        collector.listen_to_events()

        structlog.contextvars.bind_contextvars(record_id=record.id)
        status_code: int = 500

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code

            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
                headers = MutableHeaders(scope=message)
                headers[RECORD_ID_HEADER] = record.id

            await send(message)

        token = bind_event_bus(events)
        try:
            events.emit(ControllerStarted())
            await self.app(scope, receive, send_wrapper)
        finally:
            events.emit(ControllerEnded())
            reset_event_bus(token)

            try:
                collector.set_response(CapturedResponse(status_code=status_code))
                self.store.save(collector.resolve(record))
            except Exception:
                # Collection problems must never change the response.
                structlog.get_logger("reqlens.middleware").exception("request_collection_failed")

            structlog.contextvars.unbind_contextvars("record_id")
