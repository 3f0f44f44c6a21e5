"""
Destination Runtime.

Receives one event plus destination settings, fans out over the
subscriptions embedded in the settings, and returns the flattened step
results in subscription declaration order.

Error isolation:
    - Malformed settings.subscriptions or a malformed predicate fails the
      whole event (raised before any action runs)
    - Anything raised while evaluating or running one subscription becomes
      a single error StepResult for that subscription; the others still run

Every matched subscription (successful or failed) is appended to the
request Context with its duration and a redacted copy of its input.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from types import MappingProxyType
from typing import Any

import httpx

from destkit.actions import (
    Action,
    ActionBuilder,
    ActionDefinition,
    AutocompleteResponse,
    ExecuteInput,
    StepResult,
    ValidateStep,
)
from destkit.actions.steps import _maybe_await
from destkit.context import Context, SubscriptionRecord
from destkit.errors import CredentialTestError, UnknownActionError, UnsupportedActionError
from destkit.request import RequestFactory
from destkit.subscriptions import (
    Subscription,
    get_destination_settings,
    get_subscriptions,
    parse_subscriptions,
)
from destkit.utils import duration, time

from .definition import ActionSpec, DestinationDefinition
from .redact import REDACTED, redact_settings

logger = logging.getLogger(__name__)

CREDENTIAL_TEST_TIMEOUT = 3.0


class Destination:
    """
    Runtime for one DestinationDefinition.

    Actions are compiled once, here, and exposed through a read-only
    mapping; nothing about a Destination changes after construction
    except the captured responses.

    Example:
        destination = Destination(definition)
        results = await destination.on_event(context, event, settings)
    """

    def __init__(
        self,
        definition: DestinationDefinition,
        *,
        requests: RequestFactory | None = None,
        redaction_placeholder: str = REDACTED,
        credential_test_timeout: float = CREDENTIAL_TEST_TIMEOUT,
        capture_responses: bool = False,
    ):
        self.definition = definition
        self.redaction_placeholder = redaction_placeholder
        self.credential_test_timeout = credential_test_timeout
        self.extensions = tuple(definition.extend_request)
        self.responses: list[httpx.Response] = []

        factory = requests if requests is not None else RequestFactory()
        if capture_responses:
            factory = replace(factory, response_hooks=(*factory.response_hooks, self._capture_response))
        self.requests = factory

        auth = definition.authentication
        self.settings_schema = auth.settings_schema if auth is not None else None
        self._auth_private_keys = tuple(auth.private_keys) if auth is not None else ()

        self.actions: Mapping[str, Action] = MappingProxyType(
            {slug: self._build_action(slug, spec) for slug, spec in definition.actions.items()}
        )
        logger.info(f"[destination:{self.slug}] Loaded with actions {list(self.actions)}")

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def slug(self) -> str:
        return self.definition.key

    def _build_action(self, slug: str, spec: ActionSpec) -> Action:
        if isinstance(spec, ActionDefinition):
            return spec.build(slug, self.extensions, self.settings_schema)
        if callable(spec):
            return spec(ActionBuilder(slug, self.extensions)).build()
        raise TypeError(f"Action {slug!r} must be an ActionDefinition or a builder function")

    async def _capture_response(self, response: httpx.Response) -> None:
        await response.aread()
        self.responses.append(response)

    def get_action(self, slug: str) -> Action:
        """
        Raises:
            UnknownActionError: If no action is registered under slug
        """
        action = self.actions.get(slug)
        if action is None:
            raise UnknownActionError(slug)
        return action

    def default_subscriptions(self) -> list[Subscription]:
        """Presets plus one subscription per action with a default predicate."""
        raw: list[dict[str, Any]] = [dict(preset) for preset in self.definition.presets]
        for slug, action in self.actions.items():
            if action.default_subscription and not action.hidden:
                raw.append({"partnerAction": slug, "subscribe": action.default_subscription})
        return parse_subscriptions(raw)

    def private_keys(self, private_settings: Iterable[str] = ()) -> list[str]:
        return [*private_settings, *self._auth_private_keys]

    # =========================================================================
    # Event handling
    # =========================================================================

    async def on_event(
        self,
        context: Context,
        event: Mapping[str, Any],
        settings: Mapping[str, Any] | None = None,
        private_settings: Iterable[str] = (),
    ) -> list[StepResult]:
        """
        Run every subscription in settings against event.

        Args:
            context: Request context receiving one record per matched subscription
            event: The incoming event; never mutated
            settings: Destination settings with embedded subscriptions
            private_settings: Setting keys to redact from instrumentation

        Returns:
            Flattened step results in subscription declaration order

        Raises:
            SubscriptionParseError: If settings.subscriptions is malformed
            PredicateParseError: If any subscription predicate is malformed
        """
        settings = settings or {}
        subscriptions = get_subscriptions(settings)
        destination_settings = get_destination_settings(settings)
        private_keys = self.private_keys(private_settings)

        logger.debug(f"[destination:{self.slug}] Running {len(subscriptions)} subscription(s)")

        grouped = await asyncio.gather(
            *(
                self._on_subscription(context, subscription, event, destination_settings, private_keys)
                for subscription in subscriptions
            )
        )
        return [result for results in grouped for result in results]

    async def _on_subscription(
        self,
        context: Context,
        subscription: Subscription,
        event: Mapping[str, Any],
        settings: dict[str, Any],
        private_keys: list[str],
    ) -> list[StepResult]:
        started_at = time()
        data = ExecuteInput(
            payload=copy.deepcopy(dict(event)),
            settings=copy.deepcopy(settings),
            mapping=copy.deepcopy(subscription.mapping),
        )

        try:
            if not subscription.is_subscribed(event):
                return [StepResult.not_subscribed()]
            action = self.get_action(subscription.action)
            results = await action.execute(data, requests=self.requests)
        except Exception as e:
            logger.warning(
                f"[destination:{self.slug}] Subscription '{subscription.name or subscription.action}' "
                f"failed: {type(e).__name__}: {e}"
            )
            results = [StepResult.failed(e)]

        await context.append(
            SubscriptionRecord(
                duration=duration(started_at, time()),
                destination=self.name,
                action=subscription.action,
                input=replace(
                    data,
                    settings=redact_settings(data.settings, private_keys, self.redaction_placeholder),
                ),
                output=results,
            )
        )
        return results

    # =========================================================================
    # Credentials and autocomplete
    # =========================================================================

    async def test_credentials(self, settings: Mapping[str, Any]) -> None:
        """
        Validate settings and run the destination's credential test request.

        Raises:
            CredentialTestError: If settings fail validation or the credential
                request fails for any reason
        """
        data = ExecuteInput(payload={}, settings=get_destination_settings(settings))
        factory = replace(self.requests, extensions=self.extensions).with_base(
            timeout=self.credential_test_timeout,
            headers={"User-Agent": None},
        )
        auth = self.definition.authentication

        try:
            if self.settings_schema is not None:
                await ValidateStep(self.settings_schema, "settings").execute(data, factory)
            if auth is None or auth.test_credentials is None:
                return
            async with factory.client(data) as request:
                await _maybe_await(auth.test_credentials(request, data))
        except Exception as e:
            logger.info(f"[destination:{self.slug}] Credential test failed: {type(e).__name__}: {e}")
            raise CredentialTestError() from e

    async def autocomplete(
        self,
        action_slug: str,
        field_key: str,
        settings: Mapping[str, Any],
        payload: Mapping[str, Any] | None = None,
    ) -> AutocompleteResponse:
        """
        Run a dynamic field's autocomplete handler.

        Raises:
            UnknownActionError: If the action is not registered
            UnsupportedActionError: If the field is not dynamic or has no handler
        """
        action = self.get_action(action_slug)
        declared = {f.key: f for f in action.fields}
        if field_key in declared and not declared[field_key].dynamic:
            raise UnsupportedActionError(
                f'Field "{field_key}" of action "{action_slug}" is not dynamic'
            )

        data = ExecuteInput(
            payload=dict(payload or {}),
            settings=get_destination_settings(settings),
        )
        return await action.autocomplete(field_key, data, requests=self.requests)

    def __repr__(self) -> str:
        return f"<Destination slug={self.slug!r} actions={list(self.actions)}>"
