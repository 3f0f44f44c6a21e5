"""
Canonical predicate nodes.

Predicates arrive either as shorthand strings (`type = "track"`) or as typed
dicts. Both are decoded once by the parser into the frozen nodes defined
here, and only these nodes are ever evaluated.

Evaluation is total: absent fields never raise.
    - "=" and ordering comparisons on an absent field are False
    - "!=" and "not_contains" on an absent field are True
    - "exists" is False for absent or null fields
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from destkit.errors import PredicateEvaluationError
from destkit.utils.jsonutil import UNDEFINED, get

EQUALS = "="
NOT_EQUALS = "!="
EXISTS = "exists"
NOT_EXISTS = "not_exists"
CONTAINS = "contains"
NOT_CONTAINS = "not_contains"
STARTS_WITH = "starts_with"
ENDS_WITH = "ends_with"
LESS_THAN = "<"
LESS_EQUAL = "<="
GREATER_THAN = ">"
GREATER_EQUAL = ">="

UNARY_OPERATORS = frozenset({EXISTS, NOT_EXISTS})
BINARY_OPERATORS = frozenset({
    EQUALS,
    NOT_EQUALS,
    CONTAINS,
    NOT_CONTAINS,
    STARTS_WITH,
    ENDS_WITH,
    LESS_THAN,
    LESS_EQUAL,
    GREATER_THAN,
    GREATER_EQUAL,
})
OPERATORS = UNARY_OPERATORS | BINARY_OPERATORS


class Predicate(ABC):
    """Base class for parsed predicate nodes."""

    @abstractmethod
    def evaluate(self, event: Mapping[str, Any]) -> bool:
        ...

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        ...

    def __call__(self, event: Mapping[str, Any]) -> bool:
        if not isinstance(event, Mapping):
            raise PredicateEvaluationError(
                f"Cannot evaluate predicate against {type(event).__name__}, expected an object"
            )
        return self.evaluate(event)


@dataclass(frozen=True)
class MatchAll(Predicate):
    """Matches every event."""

    def evaluate(self, event: Mapping[str, Any]) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {"type": "all"}


@dataclass(frozen=True)
class Comparison(Predicate):
    """Compares the value at `path` in the event against `value`."""

    path: tuple[str | int, ...]
    operator: str
    value: Any = None

    @property
    def field(self) -> str:
        return ".".join(str(p) for p in self.path)

    def evaluate(self, event: Mapping[str, Any]) -> bool:
        actual = get(event, self.path)
        op = self.operator

        if op == EXISTS:
            return actual is not UNDEFINED and actual is not None
        if op == NOT_EXISTS:
            return actual is UNDEFINED or actual is None
        if op == EQUALS:
            return actual is not UNDEFINED and _equals(actual, self.value)
        if op == NOT_EQUALS:
            return actual is UNDEFINED or not _equals(actual, self.value)
        if op == CONTAINS:
            return _contains(actual, self.value)
        if op == NOT_CONTAINS:
            return not _contains(actual, self.value)
        if op == STARTS_WITH:
            return isinstance(actual, str) and isinstance(self.value, str) and actual.startswith(self.value)
        if op == ENDS_WITH:
            return isinstance(actual, str) and isinstance(self.value, str) and actual.endswith(self.value)
        return _ordering(actual, op, self.value)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": "field", "name": self.field, "operator": self.operator}
        if self.operator in BINARY_OPERATORS:
            result["value"] = self.value
        return result


@dataclass(frozen=True)
class Group(Predicate):
    """Boolean AND/OR over child predicates."""

    operator: str
    children: tuple[Predicate, ...]

    def evaluate(self, event: Mapping[str, Any]) -> bool:
        if self.operator == "and":
            return all(child.evaluate(event) for child in self.children)
        return any(child.evaluate(event) for child in self.children)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "group",
            "operator": self.operator,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True)
class Not(Predicate):
    """Negates a child predicate."""

    child: Predicate

    def evaluate(self, event: Mapping[str, Any]) -> bool:
        return not self.child.evaluate(event)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "not", "children": [self.child.to_dict()]}


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _equals(actual: Any, expected: Any) -> bool:
    # True == 1 in Python; JSON treats them as distinct
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    return actual == expected


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return isinstance(expected, str) and expected in actual
    if isinstance(actual, list):
        return any(_equals(item, expected) for item in actual)
    return False


def _ordering(actual: Any, op: str, expected: Any) -> bool:
    comparable = (_is_number(actual) and _is_number(expected)) or (
        isinstance(actual, str) and isinstance(expected, str)
    )
    if not comparable:
        return False
    if op == LESS_THAN:
        return actual < expected
    if op == LESS_EQUAL:
        return actual <= expected
    if op == GREATER_THAN:
        return actual > expected
    return actual >= expected
