"""Cache-safe normalizer — turns arbitrary values into JSON-storable structures.

Walks dicts, sequences, pydantic models and dataclasses, tracking containers
by identity so cyclic references collapse to a marker instead of recursing.
Values JSON cannot hold are swapped for stand-ins; nothing here raises for a
value's shape.
"""

import dataclasses
import math
from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel

CIRCULAR_MARKER = "[Circular Reference]"
FUNCTION_MARKER = "[Function]"

# Keeps the walk far from the interpreter recursion limit on pathological input
MAX_DEPTH = 64
DEPTH_MARKER = "[Max Depth]"


class CacheSafeNormalizer:
    """Visitor producing a structurally safe copy of a value."""

    def __init__(self, max_depth: int = MAX_DEPTH):
        self.max_depth = max_depth

    def normalize(self, value: Any) -> Any:
        return self._visit(value, set(), 0)

    def _visit(self, value: Any, active: set[int], depth: int) -> Any:
        if value is None or isinstance(value, (bool, str)):
            return value
        if isinstance(value, Enum):
            return self._visit(value.value, active, depth)
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return value if math.isfinite(value) else None
        if isinstance(value, Decimal):
            return str(value) if not value.is_finite() else float(value)
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="replace")
        if callable(value):
            return FUNCTION_MARKER

        if depth >= self.max_depth:
            return DEPTH_MARKER

        # Containers: guard against cycles along the current path
        marker = id(value)
        if marker in active:
            return CIRCULAR_MARKER
        active.add(marker)
        try:
            return self._visit_container(value, active, depth + 1)
        finally:
            active.discard(marker)

    def _visit_container(self, value: Any, active: set[int], depth: int) -> Any:
        if isinstance(value, BaseModel):
            return self._visit_mapping(vars(value), active, depth, model=value)
        if dataclasses.is_dataclass(value):
            fields = {f.name: getattr(value, f.name, None) for f in dataclasses.fields(value)}
            return self._visit_mapping(fields, active, depth)
        if isinstance(value, Mapping):
            return self._visit_mapping(value, active, depth)
        if isinstance(value, (list, tuple)):
            return [self._visit(item, active, depth) for item in value]
        if isinstance(value, (set, frozenset)):
            items = [self._visit(item, active, depth) for item in value]
            try:
                return sorted(items)
            except TypeError:
                return items
        if hasattr(value, "__dict__"):
            return self._visit_mapping(vars(value), active, depth)
        return str(value)

    def _visit_mapping(
        self,
        mapping: Mapping,
        active: set[int],
        depth: int,
        model: BaseModel | None = None,
    ) -> dict:
        aliases = {}
        if model is not None:
            aliases = {
                name: field.alias or name
                for name, field in type(model).model_fields.items()
            }

        cleaned: dict[str, Any] = {}
        for key, item in mapping.items():
            name = aliases.get(key, key) if isinstance(key, str) else self._key(key)
            cleaned[name] = self._visit(item, active, depth)
        return cleaned

    @staticmethod
    def _key(key: Any) -> str:
        if isinstance(key, Enum):
            key = key.value
        if isinstance(key, (datetime, date)):
            return key.isoformat()
        return str(key)


_default_normalizer = CacheSafeNormalizer()


def normalize_for_cache(value: Any) -> Any:
    return _default_normalizer.normalize(value)
