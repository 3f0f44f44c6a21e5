"""
Predicate parsing.

Decodes the two accepted predicate encodings into canonical nodes:

Shorthand strings:
    type = "track"
    type = "track" and event = "Order Completed"
    not (properties.plan = "free" or traits.email not_exists)
    properties.revenue >= 100
    all

Typed dicts:
    {"type": "group", "operator": "and", "children": [
        {"type": "event-type", "operator": "=", "value": "track"},
        {"type": "event-property", "name": "plan", "operator": "exists"},
    ]}

Anything malformed raises PredicateParseError; nothing is silently treated
as matching or not matching.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from destkit.errors import PredicateParseError
from destkit.utils.jsonutil import split_path

from .predicate import (
    BINARY_OPERATORS,
    OPERATORS,
    UNARY_OPERATORS,
    Comparison,
    Group,
    MatchAll,
    Not,
    Predicate,
)

# =============================================================================
# Tokenizer
# =============================================================================

_TOKEN_SPEC = [
    ("WS", r"\s+"),
    ("STRING", r'"(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\''),
    ("NUMBER", r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?"),
    ("OP", r"!=|<=|>=|==|=|<|>"),
    ("LPAREN", r"\("),
    ("RPAREN", r"\)"),
    ("WORD", r"[A-Za-z_$][\w$\-]*(?:\.[\w$\-]+|\[\d+\])*"),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))

_KEYWORD_OPERATORS = {"exists", "not_exists", "contains", "not_contains", "starts_with", "ends_with"}
_RESERVED = {"and", "or", "not", "true", "false", "null"} | _KEYWORD_OPERATORS


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


def tokenize(source: str) -> list[Token]:
    tokens: list[Token] = []
    position = 0
    while position < len(source):
        match = _TOKEN_RE.match(source, position)
        if match is None:
            raise PredicateParseError(
                f"Unexpected character {source[position]!r}", position=position
            )
        kind = match.lastgroup or ""
        if kind != "WS":
            tokens.append(Token(kind, match.group(), position))
        position = match.end()
    return tokens


def _unquote(token: Token) -> str:
    text = token.text
    if text.startswith('"'):
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise PredicateParseError(f"Invalid string literal {text}", position=token.position) from e
    return re.sub(r"\\(.)", r"\1", text[1:-1])


# =============================================================================
# Shorthand Parser
# =============================================================================


class _ShorthandParser:
    """Recursive-descent parser for the shorthand grammar."""

    def __init__(self, source: str):
        self.source = source
        self.tokens = tokenize(source)
        self.index = 0

    def parse(self) -> Predicate:
        if not self.tokens:
            raise PredicateParseError("Empty predicate")

        if len(self.tokens) == 1 and self.tokens[0].text.lower() == "all":
            return MatchAll()

        node = self._or()
        if self.index < len(self.tokens):
            token = self.tokens[self.index]
            raise PredicateParseError(f"Unexpected token {token.text!r}", position=token.position)
        return node

    def _peek(self) -> Token | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def _next(self, expected: str) -> Token:
        token = self._peek()
        if token is None:
            raise PredicateParseError(f"Unexpected end of predicate, expected {expected}")
        self.index += 1
        return token

    def _keyword(self, word: str) -> bool:
        token = self._peek()
        if token is not None and token.kind == "WORD" and token.text.lower() == word:
            self.index += 1
            return True
        return False

    def _or(self) -> Predicate:
        children = [self._and()]
        while self._keyword("or"):
            children.append(self._and())
        return children[0] if len(children) == 1 else Group("or", tuple(children))

    def _and(self) -> Predicate:
        children = [self._unary()]
        while self._keyword("and"):
            children.append(self._unary())
        return children[0] if len(children) == 1 else Group("and", tuple(children))

    def _unary(self) -> Predicate:
        if self._keyword("not"):
            return Not(self._unary())

        token = self._peek()
        if token is not None and token.kind == "LPAREN":
            self.index += 1
            node = self._or()
            closing = self._next("')'")
            if closing.kind != "RPAREN":
                raise PredicateParseError(
                    f"Expected ')' but found {closing.text!r}", position=closing.position
                )
            return node

        return self._comparison()

    def _comparison(self) -> Predicate:
        field = self._next("a field name")
        if field.kind != "WORD" or field.text.lower() in _RESERVED:
            raise PredicateParseError(
                f"Expected a field name but found {field.text!r}", position=field.position
            )

        op_token = self._next("an operator")
        if op_token.kind == "OP":
            operator = "=" if op_token.text == "==" else op_token.text
        elif op_token.kind == "WORD" and op_token.text.lower() in _KEYWORD_OPERATORS:
            operator = op_token.text.lower()
        else:
            raise PredicateParseError(
                f"Expected an operator but found {op_token.text!r}", position=op_token.position
            )

        path = tuple(split_path(field.text))
        if operator in UNARY_OPERATORS:
            return Comparison(path, operator)
        return Comparison(path, operator, self._value())

    def _value(self) -> Any:
        token = self._next("a value")
        if token.kind == "STRING":
            return _unquote(token)
        if token.kind == "NUMBER":
            return int(token.text) if re.fullmatch(r"-?\d+", token.text) else float(token.text)
        if token.kind == "WORD":
            literal = token.text.lower()
            if literal == "true":
                return True
            if literal == "false":
                return False
            if literal == "null":
                return None
        raise PredicateParseError(f"Expected a value but found {token.text!r}", position=token.position)


def parse_shorthand(source: str) -> Predicate:
    """Parse a shorthand predicate string."""
    return _ShorthandParser(source).parse()


# =============================================================================
# Typed Decoder
# =============================================================================

_SCOPED_TYPES = {
    "event-property": ("properties",),
    "event-trait": ("traits",),
    "event-context": ("context",),
    "field": (),
}
_FIXED_FIELDS = {
    "event-type": ("type",),
    "event": ("event",),
    "name": ("name",),
}


def decode_typed(node: Mapping[str, Any], location: str = "$") -> Predicate:
    """Decode a typed predicate dict."""
    if not isinstance(node, Mapping):
        raise PredicateParseError(f"Predicate node at {location} must be an object")

    node_type = node.get("type")
    if node_type == "all":
        return MatchAll()

    if node_type == "group":
        operator = str(node.get("operator", "")).lower()
        if operator not in ("and", "or"):
            raise PredicateParseError(f"Group at {location} needs operator 'and' or 'or'")
        children = node.get("children")
        if not isinstance(children, list) or not children:
            raise PredicateParseError(f"Group at {location} needs a non-empty children list")
        return Group(
            operator,
            tuple(decode_typed(child, f"{location}.children[{i}]") for i, child in enumerate(children)),
        )

    if node_type == "not":
        children = node.get("children")
        if "child" in node:
            children = [node["child"]]
        if not isinstance(children, list) or len(children) != 1:
            raise PredicateParseError(f"Not at {location} needs exactly one child")
        return Not(decode_typed(children[0], f"{location}.children[0]"))

    if node_type in _FIXED_FIELDS:
        path = _FIXED_FIELDS[node_type]
    elif node_type in _SCOPED_TYPES:
        name = node.get("name")
        if not isinstance(name, str) or not name:
            raise PredicateParseError(f"{node_type} at {location} needs a 'name'")
        path = _SCOPED_TYPES[node_type] + tuple(split_path(name))
    else:
        raise PredicateParseError(f"Unknown predicate type {node_type!r} at {location}")

    operator = node.get("operator", "=")
    if operator == "==":
        operator = "="
    if operator not in OPERATORS:
        raise PredicateParseError(f"Unknown operator {operator!r} at {location}")
    if operator in BINARY_OPERATORS:
        if "value" not in node:
            raise PredicateParseError(f"Operator {operator!r} at {location} needs a 'value'")
        return Comparison(path, operator, node["value"])
    return Comparison(path, operator)


def parse_predicate(predicate: str | Mapping[str, Any] | Predicate) -> Predicate:
    """Decode any accepted predicate encoding into canonical nodes."""
    if isinstance(predicate, Predicate):
        return predicate
    if isinstance(predicate, str):
        return parse_shorthand(predicate)
    if isinstance(predicate, Mapping):
        return decode_typed(predicate)
    raise PredicateParseError(
        f"Predicate must be a string or an object, got {type(predicate).__name__}"
    )


def matches(predicate: str | Mapping[str, Any] | Predicate, event: Mapping[str, Any]) -> bool:
    """Parse (if needed) and evaluate a predicate against an event."""
    return parse_predicate(predicate)(event)
