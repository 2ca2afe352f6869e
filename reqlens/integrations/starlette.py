"""Starlette/FastAPI implementations of the collector's host accessors."""

from __future__ import annotations

import inspect
from collections.abc import Iterator, Sequence
from typing import Any

from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.routing import BaseRoute, Mount, Route

from reqlens.services.context import AppContext, RawRequestContext, RouteEntry
from reqlens.services.events import EventBus


def _flatten_headers(headers: Headers) -> dict[str, str]:
    # Repeated headers are joined the way HTTP allows them to be folded.
    return {key: ", ".join(headers.getlist(key)) for key in headers.keys()}


def _query_string(scope: dict[str, Any]) -> str:
    return scope.get("query_string", b"").decode("latin-1")


def _request_uri(scope: dict[str, Any]) -> str:
    path = scope.get("path", "/")
    query = _query_string(scope)
    return f"{path}?{query}" if query else path


class StarletteRequestAccessor:
    def __init__(self, request: Request) -> None:
        self.request = request

    def get_method(self) -> str:
        return self.request.method

    def get_request_uri(self) -> str:
        return _request_uri(self.request.scope)

    def get_path_info(self) -> str:
        return self.request.scope.get("path", "/")

    def get_headers(self) -> dict[str, str]:
        return _flatten_headers(self.request.headers)


class StarletteSession:
    """Session populated by ``starlette.middleware.sessions.SessionMiddleware``."""

    def __init__(self, scope: dict[str, Any]) -> None:
        self.scope = scope

    def all(self) -> dict[str, Any]:
        return dict(self.scope.get("session") or {})


class StarletteAuth:
    """User populated by ``starlette.middleware.authentication.AuthenticationMiddleware``."""

    def __init__(self, scope: dict[str, Any]) -> None:
        self.scope = scope

    def user(self) -> Any | None:
        user = self.scope.get("user")
        if user is None or not getattr(user, "is_authenticated", False):
            return None
        return user


def endpoint_reference(endpoint: Any) -> Any:
    """``module:qualname`` for importable endpoints; anything else is returned unchanged."""

    if inspect.isfunction(endpoint) or inspect.ismethod(endpoint) or inspect.isclass(endpoint):
        qualname = getattr(endpoint, "__qualname__", "")
        if endpoint.__name__ == "<lambda>" or "<locals>" in qualname:
            return endpoint
        return f"{endpoint.__module__}:{qualname}"
    return endpoint


def _dependency_names(dependencies: Sequence[Any]) -> list[str] | None:
    """Names of FastAPI route dependencies, the per-route hooks FastAPI has in place of middleware."""

    names = []
    for dependency in dependencies:
        target = getattr(dependency, "dependency", dependency)
        reference = endpoint_reference(target)
        if isinstance(reference, str):
            names.append(reference)
        elif target is not None:
            names.append(getattr(target, "__qualname__", type(target).__name__))
    return names or None


class StarletteRouteTable:
    """Route provider over a Starlette application or router.

    Accepts either an object exposing ``.router`` (``Starlette``, ``FastAPI``)
    or one exposing ``.routes`` directly (``Router``).
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    def _base_routes(self) -> Sequence[BaseRoute]:
        router = getattr(self.app, "router", None)
        if router is not None and hasattr(router, "routes"):
            return router.routes
        return getattr(self.app, "routes", None) or []

    def get_routes(self) -> dict[str, RouteEntry]:
        return {entry.key: entry for entry in self._walk(self._base_routes())}

    def _walk(
        self,
        routes: Sequence[BaseRoute],
        prefix: str = "",
        name_prefix: str = "",
        dependencies: Sequence[Any] = (),
    ) -> Iterator[RouteEntry]:
        for route in routes:
            included = getattr(route, "original_router", None)
            if included is not None:
                # FastAPI keeps included routers as a wrapper around the original router.
                include_context = getattr(route, "include_context", None)
                yield from self._walk(
                    included.routes,
                    prefix + getattr(include_context, "prefix", ""),
                    name_prefix,
                    [*dependencies, *getattr(include_context, "dependencies", ())],
                )
            elif isinstance(route, Mount):
                mount_names = f"{name_prefix}{route.name}:" if route.name else name_prefix
                yield from self._walk(route.routes, prefix + route.path, mount_names, dependencies)
            elif isinstance(route, Route):
                action = {
                    "uses": endpoint_reference(route.endpoint),
                    "as": f"{name_prefix}{route.name}" if route.name else None,
                    "middleware": _dependency_names([*dependencies, *getattr(route, "dependencies", ())]),
                }
                for method in sorted(route.methods or ()):
                    yield RouteEntry(method=method, uri=prefix + route.path, action=action)


def raw_context_from_scope(scope: dict[str, Any]) -> RawRequestContext:
    return RawRequestContext(
        method=scope.get("method", "GET"),
        request_uri=_request_uri(scope),
        query_string=_query_string(scope),
        headers=_flatten_headers(Headers(scope=scope)),
    )


def context_from_scope(scope: dict[str, Any], events: EventBus, *, bind_request: bool = True) -> AppContext:
    """Build the collector's view of the application for one HTTP scope."""

    app = scope.get("app")

    return AppContext(
        events=events,
        raw=raw_context_from_scope(scope),
        request=StarletteRequestAccessor(Request(scope)) if bind_request else None,
        router=StarletteRouteTable(app) if app is not None else None,
        session=StarletteSession(scope) if "session" in scope else None,
        auth=StarletteAuth(scope) if "user" in scope else None,
    )
