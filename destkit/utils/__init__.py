"""Utility modules for destkit."""

from .jsonutil import (
    UNDEFINED,
    JSONArray,
    JSONObject,
    JSONValue,
    get,
    omit,
    real_type_of,
    remove_undefined,
    split_path,
)
from .timing import duration, time

__all__ = [
    "UNDEFINED",
    "JSONArray",
    "JSONObject",
    "JSONValue",
    "duration",
    "get",
    "omit",
    "real_type_of",
    "remove_undefined",
    "split_path",
    "time",
]
