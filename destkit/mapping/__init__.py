"""
Mapping Transform Engine.

Pure conversion of (template, input) into a partner-shaped payload.
See transform.py for the directive reference.
"""

from destkit.utils.jsonutil import UNDEFINED

from .path import is_valid_path, parse_path, resolve_path
from .transform import DIRECTIVES, is_directive, transform, validate_template

__all__ = [
    "DIRECTIVES",
    "UNDEFINED",
    "is_directive",
    "is_valid_path",
    "parse_path",
    "resolve_path",
    "transform",
    "validate_template",
]
