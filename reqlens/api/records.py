from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from reqlens.config import get_settings
from reqlens.models.record import RequestRecord
from reqlens.observability.store import get_store


def _require_enabled() -> None:
    if not get_settings().enable_records_endpoint:
        raise HTTPException(status_code=404, detail="Not found")


def _dump(record: RequestRecord | None) -> dict[str, Any]:
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return record.model_dump(mode="json")


def build_router(prefix: str | None = None) -> APIRouter:
    router = APIRouter(prefix=prefix or get_settings().records_prefix, tags=["reqlens"])

    @router.get("/latest")
    async def latest_record() -> dict[str, Any]:
        _require_enabled()
        return _dump(get_store().latest())

    @router.get("/{record_id}")
    async def record_by_id(record_id: str) -> dict[str, Any]:
        _require_enabled()
        return _dump(get_store().get(record_id))

    return router
