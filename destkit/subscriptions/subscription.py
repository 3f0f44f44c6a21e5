"""
Subscriptions: parsing settings.subscriptions into canonical values.

settings.subscriptions may be a JSON-encoded string or an already-parsed
list. It is decoded once here; the runtime never branches on raw shape.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from destkit.errors import DestinationError, SubscriptionParseError
from destkit.utils.jsonutil import omit

from .parser import parse_predicate
from .predicate import Predicate

logger = logging.getLogger(__name__)

SUBSCRIPTIONS_KEY = "subscriptions"


@dataclass(frozen=True)
class Subscription:
    """A predicate paired with an action slug and an optional mapping template."""

    action: str
    predicate: Predicate
    subscribe: str | dict[str, Any]
    mapping: dict[str, Any] | None = None
    name: str = ""
    enabled: bool = True

    def is_subscribed(self, event: Mapping[str, Any]) -> bool:
        return self.enabled and self.predicate(event)

    @classmethod
    def from_dict(cls, data: Any, index: int = 0) -> Subscription:
        """
        Build a Subscription from its settings encoding.

        Accepts `partnerAction` (or `actionSlug`) for the slug and
        `subscribe` (or `predicate`) for the predicate.

        Raises:
            SubscriptionParseError: If required keys are missing or mistyped
            PredicateParseError: If the predicate is malformed
        """
        if not isinstance(data, Mapping):
            raise SubscriptionParseError(f"Subscription {index} must be an object")

        action = data.get("partnerAction", data.get("actionSlug"))
        if not isinstance(action, str) or not action:
            raise SubscriptionParseError(f"Subscription {index} is missing 'partnerAction'")

        subscribe = data.get("subscribe", data.get("predicate"))
        if subscribe is None:
            raise SubscriptionParseError(f"Subscription {index} is missing 'subscribe'")

        mapping = data.get("mapping")
        if mapping is not None and not isinstance(mapping, Mapping):
            raise SubscriptionParseError(f"Subscription {index} mapping must be an object")

        enabled = data.get("enabled", True)
        if not isinstance(enabled, bool):
            raise SubscriptionParseError(f"Subscription {index} enabled must be a boolean")

        return cls(
            action=action,
            predicate=parse_predicate(subscribe),
            subscribe=subscribe if isinstance(subscribe, str) else dict(subscribe),
            mapping=dict(mapping) if mapping is not None else None,
            name=str(data.get("name", "")),
            enabled=enabled,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "partnerAction": self.action,
            "subscribe": self.subscribe,
            "enabled": self.enabled,
        }
        if self.name:
            result["name"] = self.name
        if self.mapping is not None:
            result["mapping"] = self.mapping
        return result


def parse_subscriptions(raw: Any) -> list[Subscription]:
    """
    Decode settings.subscriptions.

    Args:
        raw: JSON string, list of subscription objects, or None

    Returns:
        Subscriptions in declaration order (empty when raw is None)

    Raises:
        SubscriptionParseError: If raw is neither a string nor a list
    """
    if raw is None:
        return []

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SubscriptionParseError(f"Subscriptions are not valid JSON: {e.msg}") from e

    if not isinstance(raw, list):
        raise SubscriptionParseError(
            f"Subscriptions must be a list or a JSON-encoded list, got {type(raw).__name__}"
        )

    subscriptions = [Subscription.from_dict(item, i) for i, item in enumerate(raw)]
    logger.debug(f"[subscriptions] Parsed {len(subscriptions)} subscriptions")
    return subscriptions


def get_subscriptions(settings: Mapping[str, Any]) -> list[Subscription]:
    """Parse the subscriptions embedded in destination settings."""
    if not isinstance(settings, Mapping):
        raise SubscriptionParseError("Settings must be an object")
    try:
        return parse_subscriptions(settings.get(SUBSCRIPTIONS_KEY))
    except DestinationError:
        logger.warning("[subscriptions] Could not parse settings.subscriptions")
        raise


def get_destination_settings(settings: Mapping[str, Any]) -> dict[str, Any]:
    """Settings with the subscriptions key stripped."""
    return omit(settings, [SUBSCRIPTIONS_KEY])
