"""
Values that flow through an action's step pipeline.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from typing import Any

from destkit.errors import DestinationError, classify_error, error_status

NOT_SUBSCRIBED = "not subscribed"

_RESERVED_STATE_KEYS = frozenset({"payload", "settings", "mapping", "state"})


@dataclass
class ExecuteInput:
    """
    Input for one action invocation.

    `payload` starts as the event and is replaced by the mapping step.
    `state` receives values resolved by cached request steps, keyed by
    the step's result field, so later steps can read them without the
    payload ever being touched.
    """

    payload: dict[str, Any]
    settings: dict[str, Any] = field(default_factory=dict)
    mapping: dict[str, Any] | None = None
    state: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        if key in _RESERVED_STATE_KEYS:
            return getattr(self, key)
        return self.state[key]

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"payload": self.payload, "settings": self.settings}
        if self.mapping is not None:
            result["mapping"] = self.mapping
        if self.state:
            result["state"] = self.state
        return result


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """Structured description of a failed subscription."""

    type: str
    message: str
    status: int = 500
    details: dict[str, Any] | None = None
    stack_trace: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException, include_trace: bool = False) -> ErrorInfo:
        details = None
        if isinstance(exc, DestinationError):
            details = exc.to_dict().get("details")
        message = exc.message if isinstance(exc, DestinationError) else str(exc) or type(exc).__name__
        return cls(
            type=classify_error(exc),
            message=message,
            status=error_status(exc),
            details=details,
            stack_trace="".join(traceback.format_exception(exc)) if include_trace else None,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type, "message": self.message, "status": self.status}
        if self.details is not None:
            result["details"] = self.details
        return result


@dataclass(frozen=True, slots=True)
class StepResult:
    """Outcome of one step, or of a whole subscription when it was skipped or failed."""

    output: Any = None
    error: ErrorInfo | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def skipped(self) -> bool:
        return self.output == NOT_SUBSCRIBED and self.error is None

    @classmethod
    def not_subscribed(cls) -> StepResult:
        return cls(output=NOT_SUBSCRIBED)

    @classmethod
    def failed(cls, exc: BaseException) -> StepResult:
        return cls(error=ErrorInfo.from_exception(exc))

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return {"output": self.output, "error": self.error.to_dict()}
        return {"output": self.output}
