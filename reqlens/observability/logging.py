from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from reqlens.services.events import LogEmitted, emit_to_active_bus


_CONFIGURED = False

_RESERVED_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}
_STRUCTLOG_META = frozenset({"event", "level", "timestamp", "logger"})


class EventBusLogHandler(logging.Handler):
    """Forwards log records to the event bus of the request being collected."""

    def emit(self, record: logging.LogRecord) -> None:
        # Our own records would feed back into the bus that produced them.
        if record.name == "reqlens" or record.name.startswith("reqlens."):
            return

        try:
            level = record.levelname.lower()
            message, context = self._unpack(record)
        except Exception:
            self.handleError(record)
            return

        emit_to_active_bus(LogEmitted(level=level, message=message, context=context))

    @staticmethod
    def _unpack(record: logging.LogRecord) -> tuple[str, dict[str, Any]]:
        if isinstance(record.msg, dict):
            # Rendered by structlog.stdlib.ProcessorFormatter.wrap_for_formatter.
            event_dict = record.msg
            context = {
                key: value
                for key, value in event_dict.items()
                if key not in _STRUCTLOG_META and not key.startswith("_")
            }
            context["logger"] = record.name
            return str(event_dict.get("event", "")), context

        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        context["logger"] = record.name
        return record.getMessage(), context


def configure_logging(level: int | str = logging.INFO, capture_events: bool = True) -> None:
    """Configure structlog + stdlib logging for JSON output.

    With ``capture_events`` the root logger also feeds request logs to the
    collector. Safe to call multiple times (no-op after first call).
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            # Let ProcessorFormatter render JSON for stdlib log records too.
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=pre_chain,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    if capture_events:
        root.addHandler(EventBusLogHandler())
    root.setLevel(level)

    # Keep uvicorn's own loggers consistent with our handler.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.handlers = [handler]
        logger.propagate = False
        logger.setLevel(level)

    _CONFIGURED = True
