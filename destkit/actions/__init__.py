"""
Action Step Pipeline.

Actions are immutable, ordered pipelines of steps:

    MapInputStep -> ValidateStep* -> CachedRequestStep* -> RequestStep

Build them with ActionBuilder, or declare them with ActionDefinition and
let the destination compile them.
"""

from .action import (
    Action,
    ActionBuilder,
    ActionDefinition,
    AutocompleteFn,
    AutocompleteItem,
    AutocompleteResponse,
    CachedRequestDefinition,
    dynamic_fields,
    password_fields,
)
from .input import NOT_SUBSCRIBED, ErrorInfo, ExecuteInput, StepResult
from .steps import CachedRequestStep, MapInputStep, RequestStep, Step, ValidateStep

__all__ = [
    "NOT_SUBSCRIBED",
    "Action",
    "ActionBuilder",
    "ActionDefinition",
    "AutocompleteFn",
    "AutocompleteItem",
    "AutocompleteResponse",
    "CachedRequestDefinition",
    "CachedRequestStep",
    "ErrorInfo",
    "ExecuteInput",
    "MapInputStep",
    "RequestStep",
    "Step",
    "StepResult",
    "ValidateStep",
    "dynamic_fields",
    "password_fields",
]
