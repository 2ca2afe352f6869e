from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from pydantic_core import PydanticSerializationError, to_jsonable_python


_SCALARS = (str, int, float, bool, type(None))


def _type_name(value: Any) -> str:
    cls = type(value)
    module = getattr(cls, "__module__", None)
    if module in (None, "builtins"):
        return cls.__qualname__
    return f"{module}.{cls.__qualname__}"


class Serializer:
    """Turns arbitrary values into JSON-safe data.

    Values that cannot be represented are replaced by a ``{"__class__": ...}``
    placeholder, and nesting beyond ``depth_limit`` collapses to ``"..."``.
    """

    def __init__(self, depth_limit: int = 10) -> None:
        self.depth_limit = depth_limit

    def normalize(self, value: Any, depth: int = 0) -> Any:
        if isinstance(value, _SCALARS):
            return value

        if depth >= self.depth_limit:
            return "..."

        if isinstance(value, Mapping):
            return {str(key): self.normalize(item, depth + 1) for key, item in value.items()}

        if isinstance(value, (list, tuple, set, frozenset)):
            return [self.normalize(item, depth + 1) for item in value]

        try:
            converted = to_jsonable_python(value, fallback=self._placeholder)
        except (PydanticSerializationError, ValueError, TypeError):
            return self._placeholder(value)

        if isinstance(converted, (Mapping, list)):
            return self.normalize(converted, depth)
        return converted

    def normalize_each(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return {str(key): self.normalize(value) for key, value in data.items()}

    @staticmethod
    def _placeholder(value: Any) -> dict[str, str]:
        return {"__class__": _type_name(value)}


class RedactionPolicy:
    """Replaces values whose key matches ``pattern`` (case-insensitive)."""

    def __init__(self, pattern: str = "pass", replacement: str = "*removed*") -> None:
        self.pattern = re.compile(pattern, re.IGNORECASE)
        self.replacement = replacement

    def matches(self, key: Any) -> bool:
        return bool(self.pattern.search(str(key)))

    def apply(self, data: Mapping[str, Any]) -> dict[str, Any]:
        redacted: dict[str, Any] = {}
        for key, value in data.items():
            if self.matches(key):
                redacted[key] = self.replacement
            elif isinstance(value, Mapping):
                redacted[key] = self.apply(value)
            else:
                redacted[key] = value
        return redacted
