"""
JSON serialization helpers backed by orjson.

Stable dumps are used for hashing and cache keys. ``to_text`` renders a
capability's return value into the text handed back to the model.
"""

from __future__ import annotations

import dataclasses
from typing import Any

import orjson


def _type_id(obj_type: type) -> str:
    return f"{obj_type.__module__}.{obj_type.__name__}"


def canonicalize(obj: Any) -> Any:
    """
    Convert complex objects into JSON-friendly, deterministic structures.
    """
    if isinstance(obj, dict):
        return {str(k): canonicalize(obj[k]) for k in sorted(obj, key=str)}
    if isinstance(obj, (list, tuple)):
        return [canonicalize(v) for v in obj]
    if isinstance(obj, (set, frozenset)):
        return sorted((canonicalize(v) for v in obj), key=repr)
    if isinstance(obj, type):
        return {"__type__": _type_id(obj)}
    if hasattr(obj, "to_dict") and callable(obj.to_dict):
        return canonicalize(obj.to_dict())
    if dataclasses.is_dataclass(obj):
        return canonicalize(dataclasses.asdict(obj))
    return obj


def stable_json_dumps(obj: Any) -> str:
    """
    Dump an object to JSON with stable ordering for hashing.
    """
    return orjson.dumps(canonicalize(obj), option=orjson.OPT_SORT_KEYS, default=str).decode("utf-8")


def fast_json_dumps(obj: Any) -> bytes:
    """Non-canonical JSON serialization to bytes."""
    return orjson.dumps(obj, default=str)


def fast_json_loads(data: bytes | str) -> Any:
    return orjson.loads(data)


def to_text(value: Any) -> str:
    """
    Render a capability result as text for the model.

    Strings pass through untouched, ``None`` becomes an empty string and
    everything else is encoded as JSON.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if hasattr(value, "to_dict") and callable(value.to_dict):
        value = value.to_dict()
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    return orjson.dumps(value, option=orjson.OPT_NON_STR_KEYS, default=str).decode("utf-8")


__all__ = [
    "canonicalize",
    "stable_json_dumps",
    "fast_json_dumps",
    "fast_json_loads",
    "to_text",
]
