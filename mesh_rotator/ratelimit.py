"""Rate limiters deciding how long an item waits before it is queued again."""

import threading
import time
from typing import Callable, Dict, Hashable

from .config import (
    BACKOFF_BASE_DELAY_SECONDS,
    BACKOFF_MAX_DELAY_SECONDS,
    BUCKET_QPS,
    BUCKET_BURST,
)


class ItemExponentialFailureRateLimiter:
    """Per-item exponential backoff: base_delay * 2^failures, capped at max_delay."""

    def __init__(
        self,
        base_delay: float = BACKOFF_BASE_DELAY_SECONDS,
        max_delay: float = BACKOFF_MAX_DELAY_SECONDS
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._failures: Dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def when(self, item: Hashable) -> float:
        """Record a failure for item and return the delay in seconds."""
        with self._lock:
            exp = self._failures.get(item, 0)
            self._failures[item] = exp + 1

        # Past 2^64 the delay is always capped, avoid huge floats
        if exp >= 64:
            return self.max_delay
        return min(self.base_delay * (2 ** exp), self.max_delay)

    def num_requeues(self, item: Hashable) -> int:
        with self._lock:
            return self._failures.get(item, 0)

    def forget(self, item: Hashable) -> None:
        with self._lock:
            self._failures.pop(item, None)


class BucketRateLimiter:
    """
    Token bucket shared by all items.

    Tokens refill at qps per second up to burst. Each call to when() takes one
    token; when the bucket is empty the returned delay is the time until the
    reserved token becomes available.
    """

    def __init__(
        self,
        qps: float = BUCKET_QPS,
        burst: int = BUCKET_BURST,
        clock: Callable[[], float] = time.monotonic
    ):
        self.qps = qps
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()
        self._lock = threading.Lock()

    def when(self, item: Hashable) -> float:
        with self._lock:
            now = self._clock()
            self._tokens = min(self.burst, self._tokens + (now - self._last) * self.qps)
            self._last = now
            self._tokens -= 1
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.qps

    def num_requeues(self, item: Hashable) -> int:
        return 0

    def forget(self, item: Hashable) -> None:
        pass


class MaxOfRateLimiter:
    """Combines limiters by taking the longest delay of all of them."""

    def __init__(self, *limiters):
        self.limiters = limiters

    def when(self, item: Hashable) -> float:
        return max(limiter.when(item) for limiter in self.limiters)

    def num_requeues(self, item: Hashable) -> int:
        return max(limiter.num_requeues(item) for limiter in self.limiters)

    def forget(self, item: Hashable) -> None:
        for limiter in self.limiters:
            limiter.forget(item)


def default_controller_rate_limiter() -> MaxOfRateLimiter:
    """Per-item backoff (5ms .. 1000s) combined with an overall 10 qps / 100 burst bucket."""
    return MaxOfRateLimiter(
        ItemExponentialFailureRateLimiter(),
        BucketRateLimiter(),
    )
