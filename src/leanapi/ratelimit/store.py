"""Rate limit storage: sliding-window hit counters keyed by client.

A store records hits per key and answers three questions for a
``(limit, window)`` pair: how many requests remain after a hit, whether
another request is allowed, and how long until one is. Windows are
measured in whole seconds; timestamps older than ``now - window`` drop
out of the count.

Stores are synchronous. ``RateLimitMiddleware`` calls them through
``anyio.to_thread`` so file locks never block the event loop.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, TypeAlias, runtime_checkable

Clock: TypeAlias = Callable[[], float]


@dataclass(frozen=True, slots=True)
class HitResult:
    """Outcome of recording one hit.

    ``remaining`` is never negative. ``reset_at`` is the unix time at
    which the oldest hit in the window expires.
    """

    remaining: int
    reset_at: int


@runtime_checkable
class RateLimitStore(Protocol):
    """Storage backend for ``RateLimitMiddleware``."""

    def hit(self, key: str, limit: int, window: int) -> HitResult: ...

    def allow(self, key: str, limit: int, window: int) -> bool: ...

    def retry_after(self, key: str, limit: int, window: int) -> int: ...


def live_hits(hits: list[int], now: int, window: int) -> list[int]:
    """Return the hits still inside the window ending at *now*."""
    window_start = now - window
    return [ts for ts in hits if ts > window_start]


def seconds_until_free(hits: list[int], limit: int, now: int, window: int) -> int:
    """Seconds until the window has room again, 0 if it already does."""
    if len(hits) < limit:
        return 0
    if not hits:
        return window
    return max(0, min(hits) + window - now)


class MemoryStore:
    """In-process store. Lost on restart, not shared across workers.

    Thread-safe: one lock guards the whole table. A key whose hits have all
    expired is dropped on its next lookup. Once per longest window seen, a
    hit also sweeps out every other expired key.
    """

    __slots__ = ("_clock", "_hits", "_lock", "_last_sweep", "_longest_window")

    def __init__(self, clock: Clock = time.time) -> None:
        self._clock = clock
        self._hits: dict[str, list[int]] = {}
        self._lock = threading.Lock()
        self._last_sweep = 0
        self._longest_window = 0

    def _now(self) -> int:
        return int(self._clock())

    def _live(self, key: str, now: int, window: int) -> list[int]:
        # Caller holds the lock.
        hits = live_hits(self._hits.get(key, []), now, window)
        if not hits:
            self._hits.pop(key, None)
        return hits

    def _sweep(self, now: int) -> None:
        # Caller holds the lock.
        self._last_sweep = now
        expired = [
            key
            for key, hits in self._hits.items()
            if not live_hits(hits, now, self._longest_window)
        ]
        for key in expired:
            del self._hits[key]

    def hit(self, key: str, limit: int, window: int) -> HitResult:
        now = self._now()
        with self._lock:
            self._longest_window = max(self._longest_window, window)
            if now - self._last_sweep >= self._longest_window:
                self._sweep(now)
            hits = self._live(key, now, window)
            hits.append(now)
            self._hits[key] = hits
            return HitResult(remaining=max(0, limit - len(hits)), reset_at=min(hits) + window)

    def allow(self, key: str, limit: int, window: int) -> bool:
        now = self._now()
        with self._lock:
            return len(self._live(key, now, window)) < limit

    def retry_after(self, key: str, limit: int, window: int) -> int:
        now = self._now()
        with self._lock:
            return seconds_until_free(self._live(key, now, window), limit, now, window)

    def reset(self, key: str | None = None) -> None:
        """Forget one key, or every key when *key* is None."""
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)
