"""IRC flood control for outbound lines."""

from __future__ import annotations

import time
from collections.abc import Callable


class TokenBucket:
    """Allow a burst of `limit` lines, then `rate` lines per second.

    reserve() always takes a token, letting the balance go negative, and
    returns how long the caller must wait before sending; consecutive
    callers therefore queue up behind each other instead of racing.
    """

    def __init__(self, limit: int, rate: float = 1.0, clock: Callable[[], float] = time.monotonic) -> None:
        if limit < 1 or rate <= 0:
            raise ValueError("limit must be >= 1 and rate > 0")
        self._limit = limit
        self._rate = rate
        self._clock = clock
        self._tokens = float(limit)
        self._stamp = clock()

    @property
    def tokens(self) -> float:
        self._refill()
        return self._tokens

    def reserve(self) -> float:
        self._refill()
        self._tokens -= 1
        if self._tokens >= 0:
            return 0.0
        return -self._tokens / self._rate

    def _refill(self) -> None:
        now = self._clock()
        self._tokens = min(float(self._limit), self._tokens + (now - self._stamp) * self._rate)
        self._stamp = now
