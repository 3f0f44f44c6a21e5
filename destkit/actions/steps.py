"""
Pipeline steps.

Each step runs once per action invocation and produces exactly one
StepResult. Steps raise to halt the pipeline; the error is reported upward
unmodified.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

import httpx

from destkit.cache import TTLCache
from destkit.errors import ValidationError
from destkit.mapping import transform
from destkit.request import RequestClient, RequestFactory, response_to_output
from destkit.schema import SchemaValidator

from .input import ExecuteInput, StepResult

logger = logging.getLogger(__name__)

RequestFn = Callable[[RequestClient, ExecuteInput], Any]
KeyFn = Callable[[ExecuteInput], Any]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class Step(ABC):
    """Base class for pipeline steps."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def execute(self, data: ExecuteInput, requests: RequestFactory) -> StepResult:
        """
        Run the step.

        Raises:
            Exception: Halts the pipeline for this invocation
        """
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class MapInputStep(Step):
    """Replaces the payload with the mapping template resolved against it."""

    @property
    def name(self) -> str:
        return "map_input"

    async def execute(self, data: ExecuteInput, requests: RequestFactory) -> StepResult:
        if data.mapping is None:
            return StepResult(output="No mappings")
        data.payload = transform(data.mapping, data.payload)
        return StepResult(output="Mappings resolved")


class ValidateStep(Step):
    """Validates settings or payload against a JSON schema."""

    TARGETS = ("settings", "payload")

    def __init__(self, schema: Mapping[str, Any], target: str = "payload"):
        """
        Raises:
            ValueError: If target is unknown or the schema is invalid
        """
        if target not in self.TARGETS:
            raise ValueError(f"Validation target must be one of {self.TARGETS}, got {target!r}")
        self.target = target
        self.validator = SchemaValidator(schema)

    @property
    def name(self) -> str:
        return f"validate_{self.target}"

    async def execute(self, data: ExecuteInput, requests: RequestFactory) -> StepResult:
        violations = self.validator.validate(getattr(data, self.target))
        if violations:
            raise ValidationError(self.target, violations)
        return StepResult(output=f"{self.target.capitalize()} validated")


class CachedRequestStep(Step):
    """
    Resolves a value through the cache and stores it in data.state[as_].

    Example (look up a contact id once per email per minute):
        CachedRequestStep(
            ttl=60,
            key=lambda data: data.payload["email"],
            value=lambda request, data: find_contact(request, data.payload["email"]),
            as_="contact_id",
        )
    """

    def __init__(
        self,
        ttl: float,
        key: KeyFn,
        value: RequestFn,
        as_: str,
        cache: TTLCache | None = None,
    ):
        if not as_ or as_ in ("payload", "settings", "mapping", "state"):
            raise ValueError(f"Invalid result field {as_!r} for cached request")
        self.ttl = ttl
        self.key = key
        self.value = value
        self.as_ = as_
        self.cache = cache if cache is not None else TTLCache(name=f"cached_request:{as_}")

    @property
    def name(self) -> str:
        return f"cached_request({self.as_})"

    async def execute(self, data: ExecuteInput, requests: RequestFactory) -> StepResult:
        key = await _maybe_await(self.key(data))

        async with requests.client(data) as request:

            async def compute() -> Any:
                value = await _maybe_await(self.value(request, data))
                if isinstance(value, httpx.Response):
                    return response_to_output(value)
                return value

            if key is None:
                logger.debug(f"[{self.name}] No cache key, computing without cache")
                value = await compute()
            else:
                value = await self.cache.get_or_compute(str(key), self.ttl, compute)

        data.state[self.as_] = value
        return StepResult(output=value)


class RequestStep(Step):
    """Calls fn(request, data); the return value becomes the step output."""

    def __init__(self, fn: RequestFn, name: str = "request"):
        self.fn = fn
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    async def execute(self, data: ExecuteInput, requests: RequestFactory) -> StepResult:
        async with requests.client(data) as request:
            result = await _maybe_await(self.fn(request, data))
            if isinstance(result, httpx.Response):
                result = response_to_output(result)
        return StepResult(output=result)
