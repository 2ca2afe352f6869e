from __future__ import annotations

from collections import OrderedDict
from threading import Lock

from reqlens.config import get_settings
from reqlens.models.record import RequestRecord


class RecordStore:
    """Thread-safe, process-local record storage (resets on restart).

    Holds at most ``limit`` records; the oldest record is evicted first.
    """

    def __init__(self, limit: int = 100) -> None:
        self._lock = Lock()
        self.limit = max(1, int(limit))
        self._records: OrderedDict[str, RequestRecord] = OrderedDict()

    def save(self, record: RequestRecord) -> None:
        with self._lock:
            self._records[record.id] = record
            self._records.move_to_end(record.id)
            while len(self._records) > self.limit:
                self._records.popitem(last=False)

    def get(self, record_id: str) -> RequestRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def latest(self) -> RequestRecord | None:
        with self._lock:
            if not self._records:
                return None
            return next(reversed(self._records.values()))

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def reset(self) -> None:
        with self._lock:
            self._records.clear()


_STORE: RecordStore | None = None


def get_store() -> RecordStore:
    global _STORE
    if _STORE is None:
        _STORE = RecordStore(limit=get_settings().store_limit)
    return _STORE


def reset_store() -> None:
    """Drop all stored records (used by tests)."""

    get_store().reset()
