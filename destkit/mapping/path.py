"""JSONPath-style references used by mapping directives ("$.a.b[0]")."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from destkit.errors import TransformError
from destkit.utils.jsonutil import get, split_path

_PATH_RE = re.compile(r"^\$(?:\.[^.\[\]]+|\[\d+\])*$")


def is_valid_path(path: Any) -> bool:
    return isinstance(path, str) and _PATH_RE.match(path) is not None


@lru_cache(maxsize=1024)
def parse_path(path: str) -> tuple[str | int, ...]:
    """
    Parse a "$"-rooted path into segments.

    Raises:
        TransformError: If the path does not start at the root "$"
    """
    if not is_valid_path(path):
        raise TransformError(f"Invalid path {path!r}, paths must start with '$'")
    return tuple(split_path(path[1:]))


def resolve_path(root: Any, path: str) -> Any:
    """Value at path, or UNDEFINED."""
    return get(root, parse_path(path))
