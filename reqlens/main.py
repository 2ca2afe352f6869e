from __future__ import annotations

import logging
from typing import Any

import structlog
from fastapi import APIRouter, FastAPI, HTTPException, Request
from starlette.authentication import AuthenticationBackend
from starlette.middleware.authentication import AuthenticationMiddleware
from starlette.middleware.sessions import SessionMiddleware

from reqlens.api.records import build_router
from reqlens.config import get_settings
from reqlens.observability.logging import configure_logging
from reqlens.observability.middleware import CollectorMiddleware


_USERS: dict[int, dict[str, str]] = {
    1: {"name": "Ada Lovelace", "email": "ada@example.com"},
    2: {"name": "Alan Turing", "email": "alan@example.com"},
}

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/users", name="users.index")
async def list_users() -> list[dict[str, Any]]:
    structlog.get_logger("demo").info("listing_users", count=len(_USERS))
    return [{"id": user_id, **user} for user_id, user in _USERS.items()]


@router.get("/users/{user_id}", name="users.show")
async def show_user(user_id: int) -> dict[str, Any]:
    user = _USERS.get(user_id)
    if user is None:
        logging.getLogger("demo").warning("user %s not found", user_id)
        raise HTTPException(status_code=404, detail="User not found")
    return {"id": user_id, **user}


@router.post("/session")
async def store_in_session(request: Request) -> dict[str, str]:
    payload = await request.json()
    for key, value in payload.items():
        request.session[str(key)] = value
    return {"status": "ok"}


router.add_api_route("/ping", lambda: {"pong": True}, methods=["GET"], name="ping")


def create_app(auth_backend: AuthenticationBackend | None = None) -> FastAPI:
    """Demo application with request collection enabled."""

    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="reqlens demo", version="0.1.0")
    app.include_router(router)
    app.include_router(build_router(settings.records_prefix))

    # Registered first so it runs inside the session and auth middleware.
    app.add_middleware(CollectorMiddleware)
    app.add_middleware(SessionMiddleware, secret_key=settings.session_secret)
    if auth_backend is not None:
        app.add_middleware(AuthenticationMiddleware, backend=auth_backend)

    return app


app = create_app()
