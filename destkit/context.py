"""
Request context for destkit.

One Context is created per external request. It gathers what happened
while the request was handled (HTTP metadata, timing, the error if any,
and a record per executed subscription) so it can be emitted as one
structured log line and one set of metrics at the end.

Field order is fixed so log output stays stable across requests.
"""

from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass, field
from typing import Any

from destkit.actions.input import ExecuteInput, StepResult
from destkit.observability import JSONLogger, LogLevel, StatsClient, get_stats


@dataclass
class SubscriptionRecord:
    """Instrumentation record for one executed subscription."""

    duration: float
    destination: str
    action: str
    input: ExecuteInput
    output: list[StepResult]

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration": self.duration,
            "destination": self.destination,
            "action": self.action,
            "input": self.input.to_dict(),
            "output": [result.to_dict() for result in self.output],
        }


SETTABLE_FIELDS = (
    "http_req_method",
    "http_req_path",
    "http_req_query",
    "http_req_headers",
    "http_req_ip",
    "http_res_status",
    "http_res_headers",
    "http_res_size",
    "req_route",
    "req_duration",
    "req_source",
    "req_destination",
    "error",
)


def _initial_fields() -> dict[str, Any]:
    fields: dict[str, Any] = {name: None for name in SETTABLE_FIELDS}
    fields["subscriptions"] = []
    return fields


@dataclass
class Context:
    """
    Request-scoped instrumentation.

    Scalar fields are overwritten with set(); subscription records are
    appended under a lock because subscriptions run concurrently.
    """

    logger: JSONLogger = field(default_factory=JSONLogger)
    stats: StatsClient = field(default_factory=get_stats)
    fields: dict[str, Any] = field(default_factory=_initial_fields)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def set(self, name: str, value: Any) -> None:
        """
        Set a scalar field, overwriting any existing value.

        Raises:
            KeyError: If name is not a settable field
        """
        if name not in SETTABLE_FIELDS:
            raise KeyError(f"Unknown context field: {name}")
        self.fields[name] = value

    def get(self, name: str) -> Any:
        return self.fields[name]

    async def append(self, record: SubscriptionRecord) -> None:
        async with self._lock:
            self.fields["subscriptions"].append(record)

    @property
    def subscriptions(self) -> list[SubscriptionRecord]:
        return list(self.fields["subscriptions"])

    def get_error(self) -> Any:
        """The request error, if one was set."""
        return self.fields["error"]

    def to_dict(self) -> dict[str, Any]:
        result = {name: self.fields[name] for name in SETTABLE_FIELDS}
        if isinstance(result["error"], BaseException):
            result["error"] = repr(result["error"])
        result["subscriptions"] = [record.to_dict() for record in self.fields["subscriptions"]]
        return result

    def log(self, level: LogLevel | str, message: str, data: dict[str, Any] | None = None) -> None:
        """Emit one structured log line with every context field plus data."""
        payload = self.to_dict()
        if data:
            payload.update(copy.deepcopy(data))
        self.logger.log(level, message, payload)

    def _tags(self) -> list[str]:
        status_code = self.fields["http_res_status"] or 500
        status_group = f"{status_code // 100}xx"
        endpoint = f"{self.fields['http_req_method']} {self.fields['http_req_path']}".replace(":", "_")
        headers = self.fields["http_req_headers"] or {}
        user_agent = headers.get("user-agent", "unknown")
        return [
            f"status_code:{status_code}",
            f"status_group:{status_group}",
            f"endpoint:{endpoint}",
            f"user_agent:{user_agent}",
        ]

    def send_metrics(self) -> None:
        """Send the request metrics to the stats client."""
        tags = self._tags()
        self.stats.increment("request", 1, tags)
        self.stats.histogram("request_duration", self.fields["req_duration"] or 0, tags)

        response_size = self.fields["http_res_size"]
        if response_size:
            self.stats.histogram("response_size", response_size, tags)

        if self.fields["error"] is not None:
            self.stats.increment("error", 1, tags)


class NoopContext(Context):
    """Context that still records subscriptions but never logs or sends metrics."""

    def log(self, level: LogLevel | str, message: str, data: dict[str, Any] | None = None) -> None:
        pass

    def send_metrics(self) -> None:
        pass
