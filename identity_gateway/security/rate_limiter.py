"""In-memory token bucket rate limiter implementation."""

from __future__ import annotations

import time
from threading import Lock
from typing import Callable


class TokenBucket:
    """Thread-safe token bucket with interval refill.

    Tokens are replenished in whole windows: ``refill_amount`` tokens are added
    for every full ``refill_window`` seconds elapsed since the last refill,
    never exceeding ``capacity``.
    """

    def __init__(
        self,
        capacity: int,
        refill_amount: int,
        refill_window: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity <= 0 or refill_amount <= 0 or refill_window <= 0:
            raise ValueError("bucket capacity, refill amount and window must be positive")
        self.capacity = capacity
        self.refill_amount = refill_amount
        self.refill_window = refill_window
        self._clock = clock
        self._tokens = capacity
        self._last_refill = clock()
        self._lock = Lock()

    @property
    def available(self) -> int:
        """Return the token count after applying any pending refill."""
        with self._lock:
            self._refill(self._clock())
            return self._tokens

    def try_consume(self, n: int = 1) -> bool:
        """Consume ``n`` tokens if available; the bucket is untouched otherwise."""
        if n <= 0:
            raise ValueError("token count must be positive")
        with self._lock:
            self._refill(self._clock())
            if self._tokens < n:
                return False
            self._tokens -= n
            return True

    def _refill(self, now: float) -> None:
        windows = int((now - self._last_refill) // self.refill_window)
        if windows <= 0:
            return
        self._tokens = min(self.capacity, self._tokens + windows * self.refill_amount)
        self._last_refill += windows * self.refill_window


class RateLimiter:
    """Process-local table of token buckets keyed by ``<class>:<client>``.

    Buckets are created lazily and kept for the life of the process.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = Lock()

    def resolve_bucket(
        self, key: str, capacity: int, refill_amount: int, refill_window: float
    ) -> TokenBucket:
        """Return the bucket for ``key``, creating it at full capacity on first use."""
        bucket = self._buckets.get(key)
        if bucket is not None:
            return bucket
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(capacity, refill_amount, refill_window, clock=self._clock)
                self._buckets[key] = bucket
            return bucket

    def __len__(self) -> int:
        return len(self._buckets)
