"""
Subscription predicates.

Decides which actions fire for a given event. Predicates are decoded once
into canonical nodes and evaluated as total functions over the event.

Usage:
    from destkit.subscriptions import matches

    matches('type = "track" and event = "Signed Up"', event)
"""

from .parser import decode_typed, matches, parse_predicate, parse_shorthand, tokenize
from .predicate import Comparison, Group, MatchAll, Not, Predicate
from .subscription import (
    SUBSCRIPTIONS_KEY,
    Subscription,
    get_destination_settings,
    get_subscriptions,
    parse_subscriptions,
)

__all__ = [
    "SUBSCRIPTIONS_KEY",
    "Comparison",
    "Group",
    "MatchAll",
    "Not",
    "Predicate",
    "Subscription",
    "decode_typed",
    "get_destination_settings",
    "get_subscriptions",
    "matches",
    "parse_predicate",
    "parse_shorthand",
    "parse_subscriptions",
    "tokenize",
]
