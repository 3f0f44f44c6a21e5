"""
Tests for subscription predicates and subscription parsing.
"""
import json

import pytest

from destkit.errors import PredicateEvaluationError, PredicateParseError, SubscriptionParseError
from destkit.subscriptions import (
    Comparison,
    Group,
    MatchAll,
    Not,
    Subscription,
    decode_typed,
    get_destination_settings,
    get_subscriptions,
    matches,
    parse_predicate,
    parse_shorthand,
    parse_subscriptions,
    tokenize,
)


@pytest.fixture
def event():
    return {
        "type": "track",
        "event": "Order Completed",
        "userId": None,
        "properties": {
            "revenue": 120.5,
            "count": 3,
            "coupon": "SPRING-SALE",
            "tags": ["new", "vip"],
            "active": True,
        },
        "traits": {"email": "ada@example.com"},
        "context": {"library": {"name": "analytics.js"}},
    }


# =============================================================================
# Shorthand Parsing
# =============================================================================


class TestShorthandParsing:
    """Tests for the shorthand predicate grammar."""

    def test_simple_comparison(self):
        node = parse_shorthand('type = "track"')
        assert node == Comparison(("type",), "=", "track")

    def test_double_equals_is_equals(self):
        assert parse_shorthand('type == "track"') == Comparison(("type",), "=", "track")

    def test_nested_path_and_index(self):
        node = parse_shorthand('properties.tags[0] = "new"')
        assert node == Comparison(("properties", "tags", 0), "=", "new")

    def test_number_literals(self):
        assert parse_shorthand("properties.count = 3").value == 3
        assert isinstance(parse_shorthand("properties.count = 3").value, int)
        assert parse_shorthand("properties.revenue >= 99.5").value == 99.5

    def test_keyword_literals(self):
        assert parse_shorthand("properties.active = true").value is True
        assert parse_shorthand("properties.active = false").value is False
        assert parse_shorthand("userId = null").value is None

    def test_single_quoted_string(self):
        assert parse_shorthand("event = 'Signed Up'").value == "Signed Up"

    def test_unary_operator(self):
        assert parse_shorthand("traits.email exists") == Comparison(("traits", "email"), "exists")

    def test_and_binds_tighter_than_or(self):
        node = parse_shorthand('type = "a" or type = "b" and event = "c"')
        assert isinstance(node, Group)
        assert node.operator == "or"
        assert isinstance(node.children[1], Group)
        assert node.children[1].operator == "and"

    def test_parentheses_and_not(self):
        node = parse_shorthand('not (type = "page" or type = "screen")')
        assert isinstance(node, Not)
        assert isinstance(node.child, Group)

    def test_all(self):
        assert parse_shorthand("all") == MatchAll()

    @pytest.mark.parametrize(
        "source",
        [
            "",
            'type = ',
            'type "track"',
            '= "track"',
            '(type = "track"',
            'type = "track" )',
            'type = "track" and',
            'type ~ "track"',
            "and = 1",
        ],
    )
    def test_malformed_raises(self, source):
        with pytest.raises(PredicateParseError):
            parse_shorthand(source)

    def test_error_reports_position(self):
        with pytest.raises(PredicateParseError) as exc_info:
            parse_shorthand('type = "track" ~')
        assert exc_info.value.position == 15

    def test_tokenize_skips_whitespace(self):
        tokens = tokenize('type   =  "x"')
        assert [t.kind for t in tokens] == ["WORD", "OP", "STRING"]


# =============================================================================
# Typed Decoding
# =============================================================================


class TestTypedDecoding:
    """Tests for the typed predicate encoding."""

    def test_event_type(self):
        node = decode_typed({"type": "event-type", "operator": "=", "value": "track"})
        assert node == Comparison(("type",), "=", "track")

    def test_scoped_property(self):
        node = decode_typed({"type": "event-property", "name": "plan", "operator": "exists"})
        assert node == Comparison(("properties", "plan"), "exists")

    def test_group(self, event):
        node = decode_typed(
            {
                "type": "group",
                "operator": "and",
                "children": [
                    {"type": "event-type", "operator": "=", "value": "track"},
                    {"type": "event-trait", "name": "email", "operator": "exists"},
                ],
            }
        )
        assert node(event) is True

    def test_not_accepts_child_key(self, event):
        node = decode_typed({"type": "not", "child": {"type": "event", "value": "Signed Up"}})
        assert node(event) is True

    @pytest.mark.parametrize(
        "node",
        [
            {"type": "mystery"},
            {"type": "group", "operator": "xor", "children": [{"type": "all"}]},
            {"type": "group", "operator": "and", "children": []},
            {"type": "not", "children": []},
            {"type": "event-property", "operator": "exists"},
            {"type": "event-type", "operator": "like", "value": "x"},
            {"type": "event-type", "operator": "="},
        ],
    )
    def test_malformed_raises(self, node):
        with pytest.raises(PredicateParseError):
            decode_typed(node)

    def test_to_dict_shape(self):
        node = parse_shorthand('type = "track" and properties.plan exists')
        assert node.to_dict() == {
            "type": "group",
            "operator": "and",
            "children": [
                {"type": "field", "name": "type", "operator": "=", "value": "track"},
                {"type": "field", "name": "properties.plan", "operator": "exists"},
            ],
        }

    def test_parse_predicate_rejects_other_types(self):
        with pytest.raises(PredicateParseError):
            parse_predicate(42)


# =============================================================================
# Evaluation
# =============================================================================


class TestEvaluation:
    """Tests for predicate evaluation semantics."""

    @pytest.mark.parametrize(
        "predicate,expected",
        [
            ('type = "track"', True),
            ('type = "page"', False),
            ('type != "page"', True),
            ("properties.revenue > 100", True),
            ("properties.revenue <= 100", False),
            ("properties.count >= 3", True),
            ('properties.coupon starts_with "SPRING"', True),
            ('properties.coupon ends_with "SALE"', True),
            ('properties.coupon contains "-"', True),
            ('properties.tags contains "vip"', True),
            ('properties.tags not_contains "old"', True),
            ("properties.active = true", True),
            ("properties.active = 1", False),
            ('event = "Order Completed" and traits.email exists', True),
            ('type = "page" or traits.email exists', True),
            ('not type = "track"', False),
            ("all", True),
        ],
    )
    def test_matches(self, event, predicate, expected):
        assert matches(predicate, event) is expected

    @pytest.mark.parametrize(
        "predicate,expected",
        [
            ('properties.missing = "x"', False),
            ('properties.missing != "x"', True),
            ("properties.missing > 1", False),
            ("properties.missing exists", False),
            ("properties.missing not_exists", True),
            ('properties.missing contains "x"', False),
            ('properties.missing not_contains "x"', True),
            ('a.b.c.d = "x"', False),
        ],
    )
    def test_absent_fields_never_raise(self, event, predicate, expected):
        assert matches(predicate, event) is expected

    def test_null_field_does_not_exist(self, event):
        assert matches("userId exists", event) is False
        assert matches("userId = null", event) is True

    def test_ordering_across_types_is_false(self, event):
        assert matches('properties.count > "2"', event) is False

    def test_non_object_event_raises(self):
        with pytest.raises(PredicateEvaluationError):
            matches('type = "track"', ["not", "an", "event"])


# =============================================================================
# Subscriptions
# =============================================================================


class TestSubscriptions:
    """Tests for subscription parsing from settings."""

    raw = [
        {
            "subscribe": 'type = "track"',
            "partnerAction": "trackEvent",
            "mapping": {"name": {"@path": "$.event"}},
        },
        {"subscribe": {"type": "all"}, "partnerAction": "identify", "name": "Everything"},
    ]

    def test_from_list(self):
        subscriptions = parse_subscriptions(self.raw)
        assert [s.action for s in subscriptions] == ["trackEvent", "identify"]
        assert subscriptions[0].mapping == {"name": {"@path": "$.event"}}
        assert subscriptions[1].name == "Everything"

    def test_json_string_equals_list(self):
        from_string = parse_subscriptions(json.dumps(self.raw))
        from_list = parse_subscriptions(self.raw)
        assert from_string == from_list

    def test_none_is_empty(self):
        assert parse_subscriptions(None) == []

    @pytest.mark.parametrize("raw", ["{not json", '{"a": 1}', 42, [{"subscribe": "all"}], ["x"]])
    def test_malformed_raises(self, raw):
        with pytest.raises(SubscriptionParseError):
            parse_subscriptions(raw)

    def test_malformed_predicate_raises_parse_error(self):
        with pytest.raises(PredicateParseError):
            parse_subscriptions([{"subscribe": "type =", "partnerAction": "x"}])

    def test_disabled_subscription_never_matches(self, event):
        subscription = Subscription.from_dict(
            {"subscribe": "all", "partnerAction": "x", "enabled": False}
        )
        assert subscription.is_subscribed(event) is False

    @pytest.mark.parametrize("enabled", ["false", 0, None])
    def test_non_boolean_enabled_raises(self, enabled):
        with pytest.raises(SubscriptionParseError):
            Subscription.from_dict({"subscribe": "all", "partnerAction": "x", "enabled": enabled})

    def test_alias_keys(self):
        subscription = Subscription.from_dict({"predicate": "all", "actionSlug": "x"})
        assert subscription.action == "x"

    def test_get_subscriptions_and_destination_settings(self):
        settings = {"apiKey": "secret", "subscriptions": json.dumps(self.raw)}
        assert len(get_subscriptions(settings)) == 2
        assert get_destination_settings(settings) == {"apiKey": "secret"}
        assert "subscriptions" in settings

    def test_missing_subscriptions_key_is_empty(self):
        assert get_subscriptions({"apiKey": "secret"}) == []
