"""
Tests for the request context and observability helpers.
"""
import asyncio
import json
import logging

import pytest

from destkit.actions import ExecuteInput, StepResult
from destkit.context import Context, NoopContext, SubscriptionRecord
from destkit.observability import InMemoryStats, JSONLogger, LogLevel, get_stats, set_stats


def make_record(action="track"):
    return SubscriptionRecord(
        duration=1.5,
        destination="Acme",
        action=action,
        input=ExecuteInput(payload={"a": 1}, settings={"apiKey": "***"}),
        output=[StepResult(output="ok")],
    )


@pytest.fixture
def stats():
    return InMemoryStats()


@pytest.fixture
def context(stats):
    return Context(logger=JSONLogger(name="destkit.test"), stats=stats)


# =============================================================================
# Fields
# =============================================================================


class TestContextFields:
    def test_fields_start_empty_in_fixed_order(self, context):
        names = list(context.fields)
        assert names[0] == "http_req_method"
        assert names[-1] == "subscriptions"
        assert context.get("req_duration") is None
        assert context.subscriptions == []

    def test_set_and_get(self, context):
        context.set("req_destination", "acme")
        assert context.get("req_destination") == "acme"

    def test_set_unknown_field(self, context):
        with pytest.raises(KeyError):
            context.set("subscriptions", [])

    def test_get_error(self, context):
        assert context.get_error() is None
        error = RuntimeError("boom")
        context.set("error", error)
        assert context.get_error() is error

    @pytest.mark.asyncio
    async def test_concurrent_appends(self, context):
        await asyncio.gather(*(context.append(make_record(f"a{i}")) for i in range(10)))
        assert sorted(r.action for r in context.subscriptions) == sorted(f"a{i}" for i in range(10))

    @pytest.mark.asyncio
    async def test_to_dict_serializes_records(self, context):
        await context.append(make_record())
        context.set("error", ValueError("bad"))
        data = context.to_dict()
        assert data["subscriptions"] == [
            {
                "duration": 1.5,
                "destination": "Acme",
                "action": "track",
                "input": {"payload": {"a": 1}, "settings": {"apiKey": "***"}},
                "output": [{"output": "ok"}],
            }
        ]
        assert data["error"] == "ValueError('bad')"


# =============================================================================
# Logging
# =============================================================================


class TestContextLog:
    def test_log_emits_json_with_fields(self, context, caplog):
        context.set("req_destination", "acme")
        with caplog.at_level(logging.INFO, logger="destkit.test"):
            context.log("info", "Event handled", {"extra": 1})

        record = json.loads(caplog.records[-1].getMessage())
        assert record["level"] == "info"
        assert record["message"] == "Event handled"
        assert record["req_destination"] == "acme"
        assert record["extra"] == 1

    def test_warn_alias(self, context, caplog):
        with caplog.at_level(logging.WARNING, logger="destkit.test"):
            context.log("warn", "careful")
        assert caplog.records[-1].levelno == logging.WARNING

    def test_noop_context_does_not_log(self, caplog):
        with caplog.at_level(logging.DEBUG):
            NoopContext().log(LogLevel.ERROR, "silent")
        assert not any("silent" in r.getMessage() for r in caplog.records)

    def test_json_logger_with_context(self, caplog):
        logger = JSONLogger(name="destkit.test").with_context(service="destkit")
        with caplog.at_level(logging.INFO, logger="destkit.test"):
            logger.info("hello", count=2)
        record = json.loads(caplog.records[-1].getMessage())
        assert record["service"] == "destkit"
        assert record["count"] == 2


# =============================================================================
# Metrics
# =============================================================================


class TestContextMetrics:
    def test_send_metrics_tags(self, context, stats):
        context.set("http_req_method", "POST")
        context.set("http_req_path", "/v1/destinations/:slug/events")
        context.set("http_req_headers", {"user-agent": "pytest"})
        context.set("http_res_status", 200)
        context.set("req_duration", 12.5)
        context.set("http_res_size", 42)
        context.send_metrics()

        assert stats.count("request") == 1
        assert stats.values("request_duration") == [12.5]
        assert stats.values("response_size") == [42]
        assert stats.count("error") == 0
        tags = stats.points[0].tags
        assert "status_code:200" in tags
        assert "status_group:2xx" in tags
        assert "endpoint:POST /v1/destinations/_slug/events" in tags
        assert "user_agent:pytest" in tags

    def test_error_metric_and_default_status(self, context, stats):
        context.set("error", RuntimeError("boom"))
        context.send_metrics()
        assert stats.count("error") == 1
        assert "status_group:5xx" in stats.points[0].tags
        assert stats.values("response_size") == []

    def test_noop_context_sends_nothing(self, stats):
        NoopContext(stats=stats).send_metrics()
        assert stats.points == []


class TestInMemoryStats:
    def test_get_stats(self, stats):
        stats.increment("request")
        stats.increment("request", 2)
        stats.histogram("request_duration", 10)
        stats.histogram("request_duration", 30)
        summary = stats.get_stats()
        assert summary["counters"] == {"request": 3}
        assert summary["histograms"]["request_duration"] == {"count": 2, "avg": 20.0, "max": 30}

    def test_max_points(self):
        stats = InMemoryStats(max_points=3)
        for i in range(5):
            stats.increment("x", i)
        assert [p.value for p in stats.points] == [2, 3, 4]

    def test_reset(self, stats):
        stats.increment("x")
        stats.reset()
        assert stats.points == []

    def test_set_stats(self, stats):
        previous = get_stats()
        try:
            set_stats(stats)
            assert get_stats() is stats
            assert Context().stats is stats
        finally:
            set_stats(previous)
