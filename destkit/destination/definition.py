"""
Declarative destination definitions.

A partner integration is a module exposing a DestinationDefinition:

    destination = DestinationDefinition(
        name="Acme",
        slug="acme",
        authentication=Authentication(
            fields={"apiKey": {"type": "password", "required": True}},
            test_credentials=lambda request, data: request.get("/me"),
        ),
        extend_request=[bearer_auth],
        actions={"trackPageView": track_page_view},
    )

Actions may be given as an ActionDefinition or as a function that receives
an ActionBuilder (already carrying the destination's request extensions)
and returns it configured.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from destkit.actions import ActionBuilder, ActionDefinition
from destkit.actions.steps import RequestFn
from destkit.request import RequestExtension
from destkit.schema import InputField, fields_to_json_schema, normalize_fields, private_field_keys

ActionSpec = Union[ActionDefinition, Callable[[ActionBuilder], ActionBuilder]]


@dataclass(frozen=True)
class Authentication:
    """Settings fields a destination needs, and how to check them."""

    fields: Any = None
    test_credentials: RequestFn | None = None
    scheme: str = "custom"

    @property
    def input_fields(self) -> list[InputField]:
        return normalize_fields(self.fields)

    @property
    def settings_schema(self) -> dict[str, Any] | None:
        fields = self.input_fields
        if not fields:
            return None
        return fields_to_json_schema(fields, additional_properties=True)

    @property
    def private_keys(self) -> list[str]:
        return private_field_keys(self.fields)


@dataclass(frozen=True)
class DestinationDefinition:
    name: str
    slug: str = ""
    description: str = ""
    authentication: Authentication | None = None
    extend_request: Sequence[RequestExtension] = ()
    actions: Mapping[str, ActionSpec] = field(default_factory=dict)
    presets: Sequence[Mapping[str, Any]] = ()

    @property
    def key(self) -> str:
        """Registry key: the slug, or the name when no slug is set."""
        return self.slug or self.name
