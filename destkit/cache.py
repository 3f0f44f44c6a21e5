"""
TTL cache with single-flight computation.

Used by CachedRequestStep to avoid repeating lookups (e.g. "find the
contact id for this email") across events.

Guarantees:
    - A hit within ttl returns the stored value without calling compute
    - At most one compute per key runs at a time; concurrent callers for
      the same key await that computation and share its outcome, success
      or failure
    - Failures are never cached, so the next call retries
    - Expired entries are evicted lazily, on the next access to that key

Entries live in process memory only. Different keys compute fully in
parallel.

Usage:
    cache = TTLCache(name="contact_ids")
    contact_id = await cache.get_or_compute(email, 60, lambda: lookup(email))
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A cached value and the clock reading at which it expires."""

    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class TTLCache:
    """
    In-memory keyed cache with per-key single-flight.

    Attributes:
        name: Label used in log lines
        clock: Monotonic clock in seconds, injectable for tests
    """

    name: str = "cache"
    clock: Callable[[], float] = time.monotonic

    hits: int = 0
    misses: int = 0
    shared: int = 0

    _entries: dict[str, CacheEntry] = field(default_factory=dict, repr=False)
    _inflight: dict[str, asyncio.Future[Any]] = field(default_factory=dict, repr=False)

    async def get_or_compute(
        self,
        key: str,
        ttl: float,
        compute: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Return the cached value for key, computing it on a miss.

        Args:
            key: Cache key
            ttl: Seconds the computed value stays fresh (<= 0 disables storing)
            compute: Zero-argument coroutine factory producing the value

        Raises:
            Exception: Whatever compute raised, for the computing caller and
                every caller that was waiting on it
        """
        entry = self._entries.get(key)
        if entry is not None:
            if not entry.is_expired(self.clock()):
                self.hits += 1
                return entry.value
            del self._entries[key]
            logger.debug(f"[{self.name}] Evicted expired entry for key={key!r}")

        inflight = self._inflight.get(key)
        if inflight is not None:
            self.shared += 1
            return await asyncio.shield(inflight)

        self.misses += 1
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future

        try:
            value = await compute()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark as retrieved; waiters (if any) still receive it
            future.exception()
            logger.debug(f"[{self.name}] Compute failed for key={key!r}: {e}")
            raise
        else:
            if ttl > 0:
                self._entries[key] = CacheEntry(key, value, self.clock() + ttl)
            future.set_result(value)
            return value
        finally:
            self._inflight.pop(key, None)

    def get(self, key: str, default: Any = None) -> Any:
        """Fresh cached value for key without computing."""
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self.clock()):
            return default
        return entry.value

    def invalidate(self, key: str) -> bool:
        """Drop key. Returns True if an entry was removed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def in_flight(self, key: str) -> bool:
        return key in self._inflight

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self.clock())

    def __len__(self) -> int:
        return len(self._entries)
