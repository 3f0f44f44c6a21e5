"""
Observability for destkit.

Structured JSON logging through stdlib logging, and a minimal stats client
interface for request metrics.

Metrics backends are external collaborators: anything implementing the
StatsClient protocol can be handed to a Context. InMemoryStats is the
default and is what tests assert against.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


# =============================================================================
# Log Levels
# =============================================================================


class LogLevel(Enum):
    """Standard log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @classmethod
    def coerce(cls, level: LogLevel | str) -> LogLevel:
        if isinstance(level, LogLevel):
            return level
        normalized = level.lower()
        if normalized == "warn":
            normalized = "warning"
        return cls(normalized)


# =============================================================================
# JSON Logger
# =============================================================================


@dataclass
class JSONLogger:
    """
    Structured logger that outputs JSON-formatted logs.

    Example output:
        {"timestamp": "2026-01-02T10:30:00+00:00", "level": "info",
         "message": "Subscriptions executed", "req_destination": "acme",
         "subscriptions": [...]}
    """

    name: str = "destkit"
    extra_context: dict[str, Any] = field(default_factory=dict)
    _python_logger: logging.Logger | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self._python_logger = logging.getLogger(self.name)

    def log(self, level: LogLevel | str, message: str, context: dict[str, Any] | None = None) -> None:
        level = LogLevel.coerce(level)
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.value,
            "message": message,
            **self.extra_context,
            **(context or {}),
        }
        json_str = json.dumps(record, default=str)
        getattr(self._python_logger, level.value)(json_str)

    def debug(self, message: str, **context: Any) -> None:
        self.log(LogLevel.DEBUG, message, context)

    def info(self, message: str, **context: Any) -> None:
        self.log(LogLevel.INFO, message, context)

    def warning(self, message: str, **context: Any) -> None:
        self.log(LogLevel.WARNING, message, context)

    def error(self, message: str, **context: Any) -> None:
        self.log(LogLevel.ERROR, message, context)

    def with_context(self, **extra: Any) -> JSONLogger:
        """Create a new logger with additional context."""
        return JSONLogger(name=self.name, extra_context={**self.extra_context, **extra})


# =============================================================================
# Stats
# =============================================================================


class StatsClient(Protocol):
    """Protocol for metrics sinks (statsd-style counters and histograms)."""

    def increment(self, metric: str, value: float = 1, tags: Sequence[str] = ()) -> None:
        ...

    def histogram(self, metric: str, value: float, tags: Sequence[str] = ()) -> None:
        ...


@dataclass(frozen=True, slots=True)
class MetricPoint:
    kind: str
    metric: str
    value: float
    tags: tuple[str, ...]


@dataclass
class InMemoryStats:
    """
    StatsClient that keeps every point in memory.

    Thread-safe, so it can be shared by the app and background tasks.
    """

    max_points: int = 10000
    points: list[MetricPoint] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _record(self, kind: str, metric: str, value: float, tags: Sequence[str]) -> None:
        with self._lock:
            self.points.append(MetricPoint(kind, metric, value, tuple(tags)))
            if len(self.points) > self.max_points:
                self.points = self.points[-self.max_points:]

    def increment(self, metric: str, value: float = 1, tags: Sequence[str] = ()) -> None:
        self._record("increment", metric, value, tags)

    def histogram(self, metric: str, value: float, tags: Sequence[str] = ()) -> None:
        self._record("histogram", metric, value, tags)

    def count(self, metric: str) -> float:
        """Sum of all increments of metric."""
        with self._lock:
            return sum(p.value for p in self.points if p.kind == "increment" and p.metric == metric)

    def values(self, metric: str) -> list[float]:
        """Every histogram value recorded for metric."""
        with self._lock:
            return [p.value for p in self.points if p.kind == "histogram" and p.metric == metric]

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            counters: dict[str, float] = {}
            histograms: dict[str, list[float]] = {}
            for point in self.points:
                if point.kind == "increment":
                    counters[point.metric] = counters.get(point.metric, 0) + point.value
                else:
                    histograms.setdefault(point.metric, []).append(point.value)
        return {
            "counters": counters,
            "histograms": {
                name: {
                    "count": len(values),
                    "avg": sum(values) / len(values),
                    "max": max(values),
                }
                for name, values in histograms.items()
            },
        }

    def reset(self) -> None:
        with self._lock:
            self.points.clear()


# Global stats instance (can be replaced with an actual metrics backend)
_stats: StatsClient = InMemoryStats()


def get_stats() -> StatsClient:
    """Get the process-wide stats client."""
    return _stats


def set_stats(client: StatsClient) -> None:
    """Replace the process-wide stats client."""
    global _stats
    _stats = client
    logger.debug(f"[observability] Stats client set to {type(client).__name__}")
