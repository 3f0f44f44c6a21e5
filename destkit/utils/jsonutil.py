"""
Helpers for working with loosely-typed JSON values.

Includes the UNDEFINED sentinel used by the mapping engine to mark values
that could not be resolved, and small lookup helpers shared by the
predicate evaluator and the transform engine.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

JSONPrimitive = str | int | float | bool | None
JSONValue = Any
JSONObject = dict[str, Any]
JSONArray = list[Any]


class _Undefined:
    """Marker for values that do not exist (distinct from JSON null)."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __copy__(self) -> _Undefined:
        return self

    def __deepcopy__(self, memo: dict) -> _Undefined:
        return self


UNDEFINED = _Undefined()

_SEGMENT = re.compile(r"([^.\[\]]+)|\[(\d+)\]")


def split_path(path: str) -> list[str | int]:
    """
    Split a dotted path into segments.

    "a.b[0].c" -> ["a", "b", 0, "c"]
    """
    segments: list[str | int] = []
    for name, index in _SEGMENT.findall(path):
        segments.append(int(index) if index else name)
    return segments


def get(obj: Any, path: str | Iterable[str | int]) -> Any:
    """
    Look up a nested value. Returns UNDEFINED when any segment is missing.

    Numeric segments index lists; string segments index mappings.
    A string segment made of digits also indexes lists ("items.0").
    """
    segments = split_path(path) if isinstance(path, str) else list(path)
    current = obj
    for segment in segments:
        if isinstance(current, Mapping):
            if segment in current:
                current = current[segment]
            elif str(segment) in current:
                current = current[str(segment)]
            else:
                return UNDEFINED
        elif isinstance(current, list):
            try:
                index = int(segment)
            except (TypeError, ValueError):
                return UNDEFINED
            if not -len(current) <= index < len(current):
                return UNDEFINED
            current = current[index]
        else:
            return UNDEFINED
    return current


def omit(obj: Mapping[str, Any], keys: Iterable[str]) -> dict[str, Any]:
    """Shallow copy of obj without the given keys."""
    excluded = set(keys)
    return {k: v for k, v in obj.items() if k not in excluded}


def remove_undefined(value: Any) -> Any:
    """Recursively drop UNDEFINED from dicts and lists."""
    if isinstance(value, dict):
        return {
            k: remove_undefined(v) for k, v in value.items() if v is not UNDEFINED
        }
    if isinstance(value, list):
        return [remove_undefined(v) for v in value if v is not UNDEFINED]
    return value


def real_type_of(value: Any) -> str:
    """JSON type name of a Python value ("undefined" for the sentinel)."""
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__
