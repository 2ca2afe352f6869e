"""Request data collector.

Reads request, routing, session and auth state from an ``AppContext`` and
writes it onto a ``RequestRecord``. Timeline spans and log entries are
accumulated from lifecycle events between ``listen_to_events()`` and
``resolve()``.
"""

from __future__ import annotations

import inspect
from collections.abc import Mapping
from typing import Any, Protocol

import structlog

from reqlens.errors import ResponseNotSetError
from reqlens.models.log import Log
from reqlens.models.record import CollectorConfig, RequestRecord, RouteDescriptor
from reqlens.models.timeline import Timeline
from reqlens.services.context import AppContext, RouteEntry
from reqlens.services.events import LifecycleEvent, LogEmitted
from reqlens.services.serializer import RedactionPolicy, Serializer


ANONYMOUS_FUNCTION = "anonymous function"
CONTROLLER_EVENT = "Controller"

logger = structlog.get_logger("reqlens.collector")


class HasStatusCode(Protocol):
    status_code: int


# Plain data is not a handler.
_DATA_TYPES = (int, float, complex, bytes, bytearray, list, tuple, set, frozenset, Mapping)


def _qualified_name(cls: type) -> str:
    return f"{cls.__module__}:{cls.__qualname__}"


def describe_handler(handler: Any) -> str | None:
    """Textual identifier for a route handler."""

    if handler is None or isinstance(handler, _DATA_TYPES):
        return None
    if isinstance(handler, str):
        return handler
    if inspect.isfunction(handler) or inspect.ismethod(handler) or inspect.isbuiltin(handler):
        return ANONYMOUS_FUNCTION
    if inspect.isclass(handler):
        return _qualified_name(handler)
    return f"instance of {type(handler).__name__}"


def describe_middleware(middleware: Any) -> str:
    """Name of a route middleware entry: a string, a class, or a ``Middleware(cls, ...)`` wrapper."""

    if isinstance(middleware, str):
        return middleware
    cls = getattr(middleware, "cls", middleware)
    if inspect.isclass(cls):
        return _qualified_name(cls)
    return describe_handler(middleware) or repr(middleware)


class RequestDataCollector:
    def __init__(
        self,
        app: AppContext,
        collect_log: bool = True,
        collect_routes: bool = False,
        *,
        serializer: Serializer | None = None,
        redaction: RedactionPolicy | None = None,
    ) -> None:
        self.app = app
        self.config = CollectorConfig(collect_log=collect_log, collect_routes=collect_routes)
        self.serializer = serializer or Serializer()
        self.redaction = redaction or RedactionPolicy()

        self.response: HasStatusCode | None = None
        self.log = Log()
        self.timeline = Timeline()

    @classmethod
    def from_config(cls, app: AppContext, config: CollectorConfig, **kwargs: Any) -> RequestDataCollector:
        return cls(app, collect_log=config.collect_log, collect_routes=config.collect_routes, **kwargs)

    def resolve(self, record: RequestRecord) -> RequestRecord:
        record.method = self.get_method()
        record.uri = self.get_request_uri()
        record.controller = self.get_controller()
        record.headers = self.get_request_headers()
        record.response_status = self.get_response_status()
        record.routes = self.get_routes()
        record.session_data = self.get_session_data()

        self.resolve_authenticated_user(record)

        record.log.merge(self.log)
        record.timeline.merge(self.timeline)

        return record

    def reset(self) -> None:
        # The log buffer is kept on purpose; only the timeline starts over.
        self.timeline = Timeline()

    def set_response(self, response: HasStatusCode) -> RequestDataCollector:
        self.response = response
        return self

    def listen_to_events(self) -> None:
        self.app.events.subscribe("controller.start", self.on_controller_start)
        self.app.events.subscribe("controller.end", self.on_controller_end)

        if self.config.collect_log:
            self.app.events.subscribe("log", self.on_log)

    def on_controller_start(self, event: LifecycleEvent) -> None:
        self.timeline.event(CONTROLLER_EVENT).begin()

    def on_controller_end(self, event: LifecycleEvent) -> None:
        self.timeline.event(CONTROLLER_EVENT).end()

    def on_log(self, event: LifecycleEvent) -> None:
        if isinstance(event, LogEmitted):
            self.log.log(event.level, event.message, event.context, serializer=self.serializer)

    def get_method(self) -> str:
        if self.app.request is not None:
            return self.app.request.get_method()

        override = self.app.raw.form.get("_method")
        if override:
            return str(override).upper()
        return self.app.raw.method

    def get_path_info(self) -> str:
        if self.app.request is not None:
            return self.app.request.get_path_info()
        return self.app.raw.path_info()

    def get_request_uri(self) -> str:
        if self.app.request is not None:
            return self.app.request.get_request_uri()
        return self.app.raw.request_uri

    def get_request_headers(self) -> dict[str, str]:
        if self.app.request is not None:
            return dict(self.app.request.get_headers())
        return dict(self.app.raw.headers)

    def get_response_status(self) -> int:
        if self.response is None:
            raise ResponseNotSetError()
        return int(self.response.status_code)

    def get_controller(self) -> str | None:
        routes = self._route_table()
        route = routes.get(self.get_method() + self.get_path_info())
        if route is None:
            return None

        action = route.action
        if action.get("uses") is not None:
            handler = action["uses"]
        else:
            handler = action.get(0)

        return describe_handler(handler)

    def get_routes(self) -> list[RouteDescriptor]:
        if not self.config.collect_routes:
            return []

        return [self._describe_route(route) for route in self._route_table().values()]

    def get_session_data(self) -> dict[str, Any]:
        if self.app.session is None:
            logger.debug("session_unavailable")
            return {}

        return self.redaction.apply(self.serializer.normalize_each(self.app.session.all()))

    def resolve_authenticated_user(self, record: RequestRecord) -> None:
        if self.app.auth is None:
            return

        user = self.app.auth.user()
        if user is None:
            return

        email = getattr(user, "email", None)
        record.set_authenticated_user(
            email,
            getattr(user, "id", None),
            {
                "email": email,
                "name": getattr(user, "name", None),
            },
        )

    def _route_table(self) -> dict[str, RouteEntry]:
        if self.app.router is None:
            return {}
        return dict(self.app.router.get_routes())

    @staticmethod
    def _describe_route(route: RouteEntry) -> RouteDescriptor:
        action = route.action
        uses = action.get("uses")
        middleware = action.get("middleware")
        if isinstance(middleware, str):
            middleware = [middleware]

        return RouteDescriptor(
            method=route.method,
            uri=route.uri,
            name=action.get("as"),
            action=uses if isinstance(uses, str) else ANONYMOUS_FUNCTION,
            middleware=[describe_middleware(entry) for entry in middleware] if middleware is not None else None,
        )
