"""
JSON-Schema validation.

Thin wrapper around the `jsonschema` library that reports every violation
as a plain dict instead of stopping at the first one.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from jsonschema import Draft7Validator, FormatChecker
from jsonschema import exceptions as jsonschema_exceptions


def _location(path: Any) -> str:
    location = "$"
    for part in path:
        location += f"[{part}]" if isinstance(part, int) else f".{part}"
    return location


class SchemaValidator:
    """Compiled validator for one schema."""

    def __init__(self, schema: Mapping[str, Any]):
        """
        Raises:
            ValueError: If the schema itself is invalid
        """
        try:
            Draft7Validator.check_schema(schema)
        except jsonschema_exceptions.SchemaError as e:
            raise ValueError(f"Invalid JSON schema: {e.message}") from e
        self.schema = schema
        self._validator = Draft7Validator(schema, format_checker=FormatChecker())

    def validate(self, value: Any) -> list[dict[str, Any]]:
        """All violations for value, ordered by location. Empty when valid."""
        violations = [
            {
                "path": _location(error.absolute_path),
                "message": error.message,
                "validator": error.validator,
            }
            for error in self._validator.iter_errors(value)
        ]
        return sorted(violations, key=lambda v: (v["path"], v["message"]))


def validate(schema: Mapping[str, Any], value: Any) -> list[dict[str, Any]]:
    """One-off validation of value against schema."""
    return SchemaValidator(schema).validate(value)
