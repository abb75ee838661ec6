"""Canonical serialization used as the engine cache key."""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any


def _serialize(value: Any) -> str:
    if isinstance(value, Enum):
        return _serialize(value.value)
    if isinstance(value, Mapping):
        entries = sorted(((str(k), v) for k, v in value.items()), key=lambda kv: kv[0])
        return "{" + ",".join(f"{json.dumps(k)}:{_serialize(v)}" for k, v in entries) + "}"
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _serialize(
            {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        )
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_serialize(v) for v in value) + "]"
    if isinstance(value, (set, frozenset)):
        # Unordered collections: sort the serialized members.
        return "[" + ",".join(sorted(_serialize(v) for v in value)) + "]"
    if isinstance(value, (datetime, date)):
        return json.dumps(value.isoformat())
    if value is None or isinstance(value, (bool, int, float, str)):
        return json.dumps(value)
    # Tag other scalars with their type so Decimal("2.5") and "2.5" differ.
    return json.dumps({"$type": type(value).__qualname__, "v": str(value)}, sort_keys=True)


def stable_stringify(value: Any) -> str:
    """Serialize ``value`` deterministically, independent of mapping key order.

    Two structurally-equal values always produce the same string.
    """
    return _serialize(value)
