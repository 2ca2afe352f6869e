from __future__ import annotations

import time
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from reqlens.models.log import Log
from reqlens.models.timeline import Timeline


class CollectorConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    collect_log: bool = True
    collect_routes: bool = False


class RouteDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str
    uri: str
    name: str | None = None
    action: str
    middleware: list[str] | None = None


class AuthenticatedUser(BaseModel):
    id: Any = None
    display_key: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class RequestRecord(BaseModel):
    """Diagnostic data gathered for a single request."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    time: float = Field(default_factory=time.time)

    method: str | None = None
    uri: str | None = None
    controller: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    response_status: int | None = None
    routes: list[RouteDescriptor] = Field(default_factory=list)
    session_data: dict[str, Any] = Field(default_factory=dict)
    authenticated_user: AuthenticatedUser | None = None

    log: Log = Field(default_factory=Log)
    timeline: Timeline = Field(default_factory=Timeline)

    def set_authenticated_user(self, display_key: str | None, id: Any, attributes: dict[str, Any] | None = None) -> None:
        self.authenticated_user = AuthenticatedUser(
            id=id,
            display_key=display_key,
            attributes=dict(attributes or {}),
        )
