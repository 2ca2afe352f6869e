from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from reqlens.config import get_settings
from reqlens.main import create_app
from reqlens.observability.store import reset_store
from reqlens.services.context import AppContext, RawRequestContext, StaticRouteTable
from reqlens.services.events import EventBus
from tests.fakes import FakeRequest, HeaderAuthBackend


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SESSION_SECRET", "test-secret")
    get_settings.cache_clear()
    reset_store()

    yield

    reset_store()
    get_settings.cache_clear()


@pytest.fixture
def route_table() -> StaticRouteTable:
    table = StaticRouteTable()
    table.add("GET", "/users", uses="UserController@index", middleware=["auth"], **{"as": "users.index"})
    table.add("POST", "/users", uses="UserController@store")
    table.add("GET", "/ping", uses=lambda: "pong")
    return table


@pytest.fixture
def make_context(route_table: StaticRouteTable):
    def _make(**overrides: Any) -> AppContext:
        values: dict[str, Any] = {
            "events": EventBus(),
            "raw": RawRequestContext(method="GET", request_uri="/users?page=2", query_string="page=2"),
            "request": FakeRequest("GET", "/users?page=2", {"accept": "application/json"}),
            "router": route_table,
        }
        values.update(overrides)
        return AppContext(**values)

    return _make


@pytest.fixture
async def api_client() -> AsyncIterator[AsyncClient]:
    app = create_app(auth_backend=HeaderAuthBackend())
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
