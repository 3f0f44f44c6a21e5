"""
Actions: immutable step pipelines.

An Action is built once, when its destination is constructed, and is never
mutated afterwards. Two ways to build one:

Fluent builder:
    action = (
        ActionBuilder("deleteContact")
        .validate_payload(payload_schema)
        .cached_request(ttl=60, key=..., value=..., as_="contact_id")
        .request(delete_contact)
        .build()
    )

Declarative definition (compiled by the destination):
    ActionDefinition(
        title="Track Page View",
        description="Send a page view event",
        default_subscription='type = "page"',
        fields={"url": {"type": "string", "required": True}},
        perform=lambda request, data: request.post("/track", json=data.payload),
    )

Every action starts with a MapInputStep, so the payload later steps see is
the mapping template resolved against the event.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from destkit.errors import UnsupportedActionError
from destkit.request import RequestClient, RequestExtension, RequestFactory
from destkit.schema import FieldType, InputField, fields_to_json_schema, normalize_fields
from destkit.schema.fields import FieldsInput

from .input import ExecuteInput, StepResult
from .steps import (
    CachedRequestStep,
    KeyFn,
    MapInputStep,
    RequestFn,
    RequestStep,
    Step,
    ValidateStep,
    _maybe_await,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Autocomplete
# =============================================================================


@dataclass(frozen=True, slots=True)
class AutocompleteItem:
    label: str
    value: Any

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "value": self.value}


@dataclass(frozen=True, slots=True)
class AutocompleteResponse:
    """Choices for a dynamic field, with an optional cursor for the next page."""

    items: tuple[AutocompleteItem, ...] = ()
    next_page: str | None = None

    @classmethod
    def from_value(cls, value: AutocompleteResponse | Mapping[str, Any]) -> AutocompleteResponse:
        if isinstance(value, AutocompleteResponse):
            return value
        items = tuple(
            item if isinstance(item, AutocompleteItem) else AutocompleteItem(item["label"], item["value"])
            for item in value.get("items", [])
        )
        return cls(items=items, next_page=value.get("next_page", value.get("nextPage")))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"items": [item.to_dict() for item in self.items]}
        if self.next_page is not None:
            result["next_page"] = self.next_page
        return result


AutocompleteFn = Callable[
    [RequestClient, ExecuteInput],
    "Awaitable[AutocompleteResponse | Mapping[str, Any]] | AutocompleteResponse | Mapping[str, Any]",
]


# =============================================================================
# Action
# =============================================================================


@dataclass(frozen=True)
class Action:
    """
    An immutable, ordered step pipeline plus its request extensions.

    Steps run strictly in order; the first raised error halts the pipeline
    and propagates to the caller.
    """

    slug: str
    steps: tuple[Step, ...]
    extensions: tuple[RequestExtension, ...] = ()
    title: str = ""
    description: str = ""
    default_subscription: str | None = None
    fields: tuple[InputField, ...] = ()
    hidden: bool = False
    autocomplete_handlers: Mapping[str, AutocompleteFn] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def step_names(self) -> list[str]:
        return [step.name for step in self.steps]

    @property
    def json_schema(self) -> dict[str, Any]:
        return fields_to_json_schema(self.fields)

    def _requests(self, requests: RequestFactory | None) -> RequestFactory:
        factory = requests if requests is not None else RequestFactory()
        return replace(factory, extensions=self.extensions)

    async def execute(
        self,
        data: ExecuteInput,
        *,
        requests: RequestFactory | None = None,
    ) -> list[StepResult]:
        """
        Run every step in order against data.

        Args:
            data: Input for this invocation; mutated by the steps
            requests: Transport/hook configuration from the runtime. The
                action's own extensions always replace any on the factory.

        Returns:
            One StepResult per step

        Raises:
            Exception: The first error raised by a step, unmodified
        """
        factory = self._requests(requests)
        results: list[StepResult] = []

        for index, step in enumerate(self.steps):
            logger.debug(f"[action:{self.slug}] Step {index + 1}/{len(self.steps)}: {step.name}")
            try:
                result = await step.execute(data, factory)
            except Exception as e:
                logger.info(f"[action:{self.slug}] Step '{step.name}' failed: {e}")
                raise
            results.append(result)

        return results

    async def autocomplete(
        self,
        field_key: str,
        data: ExecuteInput,
        *,
        requests: RequestFactory | None = None,
    ) -> AutocompleteResponse:
        """
        Run the autocomplete handler of a dynamic field.

        Raises:
            UnsupportedActionError: If the field has no handler
        """
        handler = self.autocomplete_handlers.get(field_key)
        if handler is None:
            raise UnsupportedActionError(
                f'Field "{field_key}" of action "{self.slug}" does not support autocomplete'
            )

        async with self._requests(requests).client(data) as request:
            value = await _maybe_await(handler(request, data))
        return AutocompleteResponse.from_value(value)

    def __repr__(self) -> str:
        return f"Action(slug='{self.slug}', steps={self.step_names})"


# =============================================================================
# Builder
# =============================================================================


class ActionBuilder:
    """
    Fluent builder producing an immutable Action.

    Request extensions are fixed by the owning destination and passed in
    at construction; actions cannot add their own.
    """

    def __init__(self, slug: str = "", extensions: Iterable[RequestExtension] = ()):
        self._slug = slug
        self._extensions = tuple(extensions)
        self._steps: list[Step] = []
        self._fields: list[InputField] = []
        self._autocomplete: dict[str, AutocompleteFn] = {}
        self._title = ""
        self._description = ""
        self._default_subscription: str | None = None
        self._hidden = False

    def describe(
        self,
        title: str = "",
        description: str = "",
        default_subscription: str | None = None,
        hidden: bool = False,
    ) -> ActionBuilder:
        self._title = title
        self._description = description
        self._default_subscription = default_subscription
        self._hidden = hidden
        return self

    def fields(self, fields: FieldsInput) -> ActionBuilder:
        """Declare input fields (used for schema export and autocomplete checks)."""
        self._fields = normalize_fields(fields)
        return self

    def validate_settings(self, schema: Mapping[str, Any]) -> ActionBuilder:
        self._steps.append(ValidateStep(schema, "settings"))
        return self

    def validate_payload(self, schema: Mapping[str, Any]) -> ActionBuilder:
        self._steps.append(ValidateStep(schema, "payload"))
        return self

    def cached_request(
        self,
        *,
        ttl: float,
        key: KeyFn,
        value: RequestFn,
        as_: str,
    ) -> ActionBuilder:
        self._steps.append(CachedRequestStep(ttl=ttl, key=key, value=value, as_=as_))
        return self

    def request(self, fn: RequestFn, name: str = "request") -> ActionBuilder:
        self._steps.append(RequestStep(fn, name=name))
        return self

    def step(self, step: Step) -> ActionBuilder:
        self._steps.append(step)
        return self

    def autocomplete(self, field_key: str, fn: AutocompleteFn) -> ActionBuilder:
        self._autocomplete[field_key] = fn
        return self

    def build(self) -> Action:
        """
        Freeze the builder into an Action.

        Raises:
            ValueError: If an autocomplete handler targets a field that is
                declared but not marked dynamic
        """
        declared = {f.key: f for f in self._fields}
        for key in self._autocomplete:
            if key in declared and not declared[key].dynamic:
                raise ValueError(f"Autocomplete handler for non-dynamic field {key!r}")

        return Action(
            slug=self._slug,
            steps=(MapInputStep(), *self._steps),
            extensions=self._extensions,
            title=self._title,
            description=self._description,
            default_subscription=self._default_subscription,
            fields=tuple(self._fields),
            hidden=self._hidden,
            autocomplete_handlers=MappingProxyType(dict(self._autocomplete)),
        )


# =============================================================================
# Declarative Definition
# =============================================================================


@dataclass(frozen=True)
class CachedRequestDefinition:
    """Declarative form of a cached request step."""

    ttl: float
    key: KeyFn
    value: RequestFn
    as_: str


@dataclass(frozen=True)
class ActionDefinition:
    """
    Declarative action supplied by a partner integration.

    `fields` compile to a payload ValidateStep and `perform` to the final
    RequestStep. Cached requests run between the two.
    """

    title: str
    description: str
    perform: RequestFn
    fields: Any = None
    default_subscription: str | None = None
    cached_requests: Sequence[CachedRequestDefinition] = ()
    autocomplete: Mapping[str, AutocompleteFn] = field(default_factory=dict)
    hidden: bool = False

    def build(
        self,
        slug: str,
        extensions: Iterable[RequestExtension] = (),
        settings_schema: Mapping[str, Any] | None = None,
    ) -> Action:
        fields = normalize_fields(self.fields)
        builder = (
            ActionBuilder(slug, extensions)
            .describe(self.title, self.description, self.default_subscription, self.hidden)
            .fields(fields)
        )

        if settings_schema is not None:
            builder.validate_settings(settings_schema)
        if fields:
            builder.validate_payload(fields_to_json_schema(fields))
        for cached in self.cached_requests:
            builder.cached_request(ttl=cached.ttl, key=cached.key, value=cached.value, as_=cached.as_)
        builder.request(self.perform, name="perform")

        for key, handler in self.autocomplete.items():
            builder.autocomplete(key, handler)

        action = builder.build()
        logger.debug(f"[action:{slug}] Built with steps {action.step_names}")
        return action


def dynamic_fields(action: Action) -> list[str]:
    return [f.key for f in action.fields if f.dynamic]


def password_fields(action: Action) -> list[str]:
    return [f.key for f in action.fields if f.type is FieldType.PASSWORD]
