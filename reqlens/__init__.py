"""Per-request diagnostic data collection for Starlette and FastAPI apps."""

from reqlens.models.record import CollectorConfig, RequestRecord, RouteDescriptor
from reqlens.services.collector import RequestDataCollector
from reqlens.services.context import AppContext, RawRequestContext, RouteEntry

__all__ = [
    "AppContext",
    "CollectorConfig",
    "RawRequestContext",
    "RequestDataCollector",
    "RequestRecord",
    "RouteDescriptor",
    "RouteEntry",
]
