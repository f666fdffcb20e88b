"""
Fixed-window request limiter keyed by caller identity.

The counter lives behind CounterStore so a shared backend can replace the
process-local one when several workers serve the same clients.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Protocol


class CounterStore(Protocol):
    def incr(self, key: str, window: int) -> tuple[int, float]:
        """Increment `key` in its current window. Returns (count, reset_at)."""
        ...


class InMemoryCounterStore:
    """Process-local counters. Expired windows are pruned on access."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._counters: dict[str, tuple[int, float]] = {}
        self._lock = Lock()

    def _prune(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._counters.items() if reset_at <= now]
        for key in expired:
            del self._counters[key]

    def incr(self, key: str, window: int) -> tuple[int, float]:
        with self._lock:
            now = self._clock()
            self._prune(now)
            count, reset_at = self._counters.get(key, (0, now + window))
            count += 1
            self._counters[key] = (count, reset_at)
            return count, reset_at

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()


@dataclass
class RateDecision:
    allowed: bool
    remaining: int
    retry_after: int


class RateLimiter:
    def __init__(
        self,
        store: CounterStore,
        limit: int,
        window: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.limit = limit
        self.window = window
        self._clock = clock

    def check(self, identity: str) -> RateDecision:
        if self.limit <= 0:
            return RateDecision(allowed=False, remaining=0, retry_after=self.window)
        count, reset_at = self.store.incr(identity, self.window)
        retry_after = max(1, math.ceil(reset_at - self._clock()))
        if count > self.limit:
            return RateDecision(allowed=False, remaining=0, retry_after=retry_after)
        return RateDecision(allowed=True, remaining=self.limit - count, retry_after=retry_after)
