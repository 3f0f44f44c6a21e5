"""
Error hierarchy for destkit.

Every failure the runtime raises on purpose derives from DestinationError,
which carries an HTTP-ish status so the app layer can map it to a response
without inspecting the exception type.

Propagation:
    - Subscription parsing and predicate parsing errors fail the whole event
    - Everything raised inside one subscription's pipeline is caught at the
      subscription boundary and recorded as an error StepResult
    - Transport errors from httpx propagate unmodified; they are classified
      as "RequestError" when tagged into a result
"""

from __future__ import annotations

from typing import Any

import httpx


class DestinationError(Exception):
    """Base exception for all destkit errors."""

    code: str = "DESTINATION_ERROR"
    status: int = 500

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status

    @property
    def kind(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "code": self.code,
            "message": self.message,
            "status": self.status,
        }


class PredicateParseError(DestinationError):
    """Raised when a subscription predicate cannot be parsed."""

    code = "PREDICATE_PARSE_ERROR"
    status = 400

    def __init__(self, message: str, *, position: int | None = None):
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.position = position


class PredicateEvaluationError(DestinationError):
    """Raised when a predicate cannot be evaluated against an event."""

    code = "PREDICATE_EVALUATION_ERROR"
    status = 400


class SubscriptionParseError(DestinationError):
    """Raised when settings.subscriptions is neither a JSON string nor a list."""

    code = "SUBSCRIPTION_PARSE_ERROR"
    status = 400


class UnknownActionError(DestinationError):
    """Raised when a subscription references an unregistered action slug."""

    code = "UNKNOWN_ACTION"
    status = 400

    def __init__(self, slug: str):
        super().__init__(f'"{slug}" is not a valid action')
        self.slug = slug


class DestinationNotFoundError(DestinationError):
    """Raised when a destination slug is not registered."""

    code = "DESTINATION_NOT_FOUND"
    status = 404

    def __init__(self, slug: str, available: list[str] | None = None):
        message = f'Destination "{slug}" not found'
        if available is not None:
            message = f"{message}. Available destinations: {available}"
        super().__init__(message)
        self.slug = slug


class UnsupportedActionError(DestinationError):
    """Raised when an action does not support the requested operation."""

    code = "UNSUPPORTED_ACTION"
    status = 400


class ValidationError(DestinationError):
    """Raised when a value fails JSON-Schema validation. Carries every violation."""

    code = "VALIDATION_ERROR"
    status = 400

    def __init__(self, target: str, violations: list[dict[str, Any]]):
        summary = "; ".join(v["message"] for v in violations) or "invalid value"
        super().__init__(f"Invalid {target}: {summary}")
        self.target = target
        self.violations = violations

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["details"] = {"target": self.target, "violations": self.violations}
        return result


class TransformError(DestinationError):
    """Raised for structurally invalid mapping directives (never for absent fields)."""

    code = "TRANSFORM_ERROR"
    status = 400

    def __init__(self, message: str, *, location: str = "$"):
        super().__init__(f"{message} at {location}")
        self.location = location


class RequestError(DestinationError):
    """Raised when a partner responds with a non-success status."""

    code = "REQUEST_ERROR"
    status = 502

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response: httpx.Response | None = None,
    ):
        super().__init__(message, status=status_code or 502)
        self.status_code = status_code
        self.response = response

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.status_code is not None:
            result["details"] = {"status_code": self.status_code}
        return result


class CredentialTestError(DestinationError):
    """Raised by credential tests. The message is always generic."""

    code = "INVALID_CREDENTIALS"
    status = 400

    def __init__(self) -> None:
        super().__init__("Credentials are invalid")


def classify_error(exc: BaseException) -> str:
    """Map an exception to the error kind reported in results."""
    if isinstance(exc, DestinationError):
        return exc.kind
    if isinstance(exc, httpx.HTTPError):
        return "RequestError"
    return "InternalError"


def error_status(exc: BaseException) -> int:
    if isinstance(exc, DestinationError):
        return exc.status
    if isinstance(exc, httpx.TimeoutException):
        return 504
    if isinstance(exc, httpx.HTTPError):
        return 502
    return 500
