"""Wall-clock helpers for measuring subscription durations."""

from __future__ import annotations

import time as _time


def time() -> float:
    """Monotonic timestamp in seconds."""
    return _time.perf_counter()


def duration(started_at: float, ended_at: float) -> float:
    """Elapsed milliseconds between two timestamps from time()."""
    return (ended_at - started_at) * 1000
