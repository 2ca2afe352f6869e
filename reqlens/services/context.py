"""Explicit view of the host application handed to the collector.

Every capability other than the event bus and the raw request is optional; the
collector treats a ``None`` accessor as "not available in this application".
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from reqlens.services.events import EventBus


class RequestAccessor(Protocol):
    def get_method(self) -> str: ...

    def get_request_uri(self) -> str: ...

    def get_path_info(self) -> str: ...

    def get_headers(self) -> dict[str, str]: ...


class RouteProvider(Protocol):
    def get_routes(self) -> Mapping[str, RouteEntry]: ...


class SessionAccessor(Protocol):
    def all(self) -> Mapping[str, Any]: ...


class AuthAccessor(Protocol):
    def user(self) -> Any | None: ...


@dataclass(frozen=True)
class RouteEntry:
    """One registered route; ``action`` holds ``uses``/``as``/``middleware`` keys."""

    method: str
    uri: str
    action: Mapping[Any, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.method}{self.uri}"


@dataclass
class RawRequestContext:
    """Request data as reported by the server, without framework parsing."""

    method: str = "GET"
    request_uri: str = "/"
    query_string: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    form: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.query_string and "?" in self.request_uri:
            self.query_string = self.request_uri.split("?", 1)[1]

    def path_info(self) -> str:
        uri = self.request_uri.replace(f"?{self.query_string}", "")
        return "/" + uri.strip("/")


@dataclass
class AppContext:
    events: EventBus
    raw: RawRequestContext = field(default_factory=RawRequestContext)
    request: RequestAccessor | None = None
    router: RouteProvider | None = None
    session: SessionAccessor | None = None
    auth: AuthAccessor | None = None


class StaticRouteTable:
    """Route provider over a fixed list of entries."""

    def __init__(self, entries: list[RouteEntry] | None = None) -> None:
        self._entries = {entry.key: entry for entry in entries or []}

    def add(self, method: str, uri: str, **action: Any) -> RouteEntry:
        entry = RouteEntry(method=method.upper(), uri=uri, action=action)
        self._entries[entry.key] = entry
        return entry

    def get_routes(self) -> dict[str, RouteEntry]:
        return dict(self._entries)
