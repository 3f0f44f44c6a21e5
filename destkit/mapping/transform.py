"""
Mapping Transform Engine.

Converts an event into an action payload using a JSON template. Plain
values, lists and dicts are walked structurally; a dict whose sole key
starts with "@" is a directive:

    {"@path": "$.properties.email"}
    {"@literal": {"@path": "kept as-is"}}
    {"@template": "Hello {{traits.first_name}}"}
    {"@if": {"exists": {"@path": "$.userId"}, "then": {"@path": "$.userId"}, "else": "anon"}}
    {"@default": {"value": {"@path": "$.properties.plan"}, "fallback": null}}
    {"@merge": {"objects": [{"@path": "$.traits"}, {"@path": "$.properties"}], "direction": "right"}}
    {"@arrayPath": ["$.properties.products", {"sku": {"@path": "$.sku"}}]}

Directives always resolve against the root input, however deeply they are
nested. The one exception is the item template of @arrayPath, which is
resolved against each element of the array.

Unresolvable paths produce UNDEFINED, which is dropped from the enclosing
dict or list in a post-pass. Templates are validated structurally before
resolution, so a malformed template raises TransformError whatever the
input looks like, and a well-formed template never raises.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping
from typing import Any

from destkit.errors import TransformError
from destkit.utils.jsonutil import UNDEFINED, get, remove_undefined, split_path

from .path import is_valid_path, resolve_path


DIRECTIVE_PREFIX = "@"

_INTERPOLATION_RE = re.compile(r"\{\{\s*([^{}\s]+)\s*\}\}")


# =============================================================================
# Public API
# =============================================================================


def transform(template: Any, root: Any) -> Any:
    """
    Resolve a mapping template against an input.

    Args:
        template: JSON template, possibly containing directives
        root: The input that directives resolve against (usually the event)

    Returns:
        The resolved JSON value. A template that resolves to nothing at the
        top level yields None.

    Raises:
        TransformError: If the template contains a malformed directive
    """
    validate_template(template)
    resolved = remove_undefined(_resolve(template, root))
    return None if resolved is UNDEFINED else resolved


def validate_template(template: Any, location: str = "$") -> None:
    """
    Check a template's structure without resolving it.

    Raises:
        TransformError: On the first malformed directive found
    """
    if isinstance(template, Mapping):
        directive = _directive_key(template, location)
        if directive is not None:
            _VALIDATORS[directive](template[directive], f"{location}.{directive}")
            return
        for key, value in template.items():
            validate_template(value, f"{location}.{key}")
    elif isinstance(template, list):
        for i, item in enumerate(template):
            validate_template(item, f"{location}[{i}]")


def is_directive(value: Any) -> bool:
    return (
        isinstance(value, Mapping)
        and len(value) == 1
        and next(iter(value)).startswith(DIRECTIVE_PREFIX)
    )


# =============================================================================
# Resolution
# =============================================================================


def _directive_key(template: Mapping[str, Any], location: str) -> str | None:
    keys = [k for k in template if isinstance(k, str) and k.startswith(DIRECTIVE_PREFIX)]
    if not keys:
        return None
    if len(template) != 1:
        raise TransformError(
            f"Directive {keys[0]!r} must be the only key in its object", location=location
        )
    if keys[0] not in _RESOLVERS:
        raise TransformError(f"Unknown directive {keys[0]!r}", location=location)
    return keys[0]


def _resolve(template: Any, root: Any) -> Any:
    if isinstance(template, Mapping):
        if is_directive(template):
            directive, argument = next(iter(template.items()))
            return _RESOLVERS[directive](argument, root)
        return {key: _resolve(value, root) for key, value in template.items()}
    if isinstance(template, list):
        return [_resolve(item, root) for item in template]
    return template


def _resolve_path(argument: str, root: Any) -> Any:
    return resolve_path(root, argument)


def _resolve_literal(argument: Any, root: Any) -> Any:
    return argument


def _resolve_template(argument: str, root: Any) -> str:
    def replace(match: re.Match[str]) -> str:
        reference = match.group(1)
        if reference.startswith("$"):
            reference = reference[1:].lstrip(".")
        return _render(get(root, split_path(reference)))

    return _INTERPOLATION_RE.sub(replace, argument)


def _render(value: Any) -> str:
    if value is UNDEFINED or value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, dict | list):
        return json.dumps(remove_undefined(value), separators=(",", ":"), default=str)
    return str(value)


def _resolve_if(argument: Mapping[str, Any], root: Any) -> Any:
    if "exists" in argument:
        value = _resolve(argument["exists"], root)
        condition = value is not UNDEFINED and value is not None
    else:
        value = _resolve(argument["blank"], root)
        condition = value is UNDEFINED or value is None or value == ""

    branch = "then" if condition else "else"
    if branch not in argument:
        return UNDEFINED
    return _resolve(argument[branch], root)


def _resolve_default(argument: Mapping[str, Any], root: Any) -> Any:
    value = _resolve(argument["value"], root)
    if value is UNDEFINED or value is None:
        return _resolve(argument["fallback"], root)
    return value


def _resolve_merge(argument: Mapping[str, Any], root: Any) -> Any:
    objects = [_resolve(obj, root) for obj in argument["objects"]]
    if argument.get("direction", "right") == "left":
        objects.reverse()

    merged: dict[str, Any] = {}
    for obj in objects:
        if isinstance(obj, Mapping):
            merged.update(obj)
    return merged


def _resolve_array_path(argument: list[Any], root: Any) -> Any:
    items = resolve_path(root, argument[0])
    if isinstance(items, Mapping):
        items = [items]
    if not isinstance(items, list):
        return UNDEFINED
    if len(argument) == 1:
        return items
    item_template = argument[1]
    return [_resolve(item_template, item) for item in items]


# =============================================================================
# Validation
# =============================================================================


def _validate_path(argument: Any, location: str) -> None:
    if not is_valid_path(argument):
        raise TransformError(
            f"@path expects a string starting with '$', got {argument!r}", location=location
        )


def _validate_literal(argument: Any, location: str) -> None:
    return None


def _validate_template(argument: Any, location: str) -> None:
    if not isinstance(argument, str):
        raise TransformError("@template expects a string", location=location)


def _validate_if(argument: Any, location: str) -> None:
    if not isinstance(argument, Mapping):
        raise TransformError("@if expects an object", location=location)
    conditions = [k for k in ("exists", "blank") if k in argument]
    if len(conditions) != 1:
        raise TransformError("@if needs exactly one of 'exists' or 'blank'", location=location)
    unexpected = set(argument) - {"exists", "blank", "then", "else"}
    if unexpected:
        raise TransformError(f"@if has unexpected keys {sorted(unexpected)}", location=location)
    for key in (conditions[0], "then", "else"):
        if key in argument:
            validate_template(argument[key], f"{location}.{key}")


def _validate_default(argument: Any, location: str) -> None:
    if not isinstance(argument, Mapping) or set(argument) != {"value", "fallback"}:
        raise TransformError("@default expects {'value': ..., 'fallback': ...}", location=location)
    validate_template(argument["value"], f"{location}.value")
    validate_template(argument["fallback"], f"{location}.fallback")


def _validate_merge(argument: Any, location: str) -> None:
    if not isinstance(argument, Mapping) or not isinstance(argument.get("objects"), list):
        raise TransformError("@merge expects {'objects': [...]}", location=location)
    if argument.get("direction", "right") not in ("left", "right"):
        raise TransformError("@merge direction must be 'left' or 'right'", location=location)
    for i, obj in enumerate(argument["objects"]):
        validate_template(obj, f"{location}.objects[{i}]")


def _validate_array_path(argument: Any, location: str) -> None:
    if not isinstance(argument, list) or not 1 <= len(argument) <= 2:
        raise TransformError("@arrayPath expects [path] or [path, itemTemplate]", location=location)
    _validate_path(argument[0], f"{location}[0]")
    if len(argument) == 2:
        validate_template(argument[1], f"{location}[1]")


_RESOLVERS: dict[str, Callable[[Any, Any], Any]] = {
    "@path": _resolve_path,
    "@literal": _resolve_literal,
    "@template": _resolve_template,
    "@if": _resolve_if,
    "@default": _resolve_default,
    "@merge": _resolve_merge,
    "@arrayPath": _resolve_array_path,
}

_VALIDATORS: dict[str, Callable[[Any, str], None]] = {
    "@path": _validate_path,
    "@literal": _validate_literal,
    "@template": _validate_template,
    "@if": _validate_if,
    "@default": _validate_default,
    "@merge": _validate_merge,
    "@arrayPath": _validate_array_path,
}

DIRECTIVES = frozenset(_RESOLVERS)
