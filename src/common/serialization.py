"""Serialization utilities."""

from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any


def to_jsonable(value: Any) -> Any:
    """Recursively convert a value into JSON-compatible primitives.

    Datetimes become ISO strings, sets become sorted lists and dict keys
    become strings.
    """
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value))
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(to_jsonable(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def serialize_dataclass(obj) -> dict:
    """Serialize a dataclass to dict, converting datetimes to ISO strings."""
    return to_jsonable(obj)
