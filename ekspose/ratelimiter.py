"""Rate limiters that decide how long a failed key waits before a retry."""

import threading
import time
from typing import Callable, Dict, Hashable

from .config import (
    BUCKET_BURST,
    BUCKET_QPS,
    RETRY_BASE_DELAY_SECONDS,
    RETRY_MAX_DELAY_SECONDS,
)


class RateLimiter:
    """Interface shared by all rate limiters."""

    def when(self, item: Hashable) -> float:
        """Return the delay in seconds before ``item`` may be processed again."""
        raise NotImplementedError

    def forget(self, item: Hashable) -> None:
        """Clear the retry history of ``item``."""
        raise NotImplementedError

    def num_requeues(self, item: Hashable) -> int:
        raise NotImplementedError


class ItemExponentialFailureRateLimiter(RateLimiter):
    """Per-item delay of ``base_delay * 2^failures``, capped at ``max_delay``."""

    def __init__(
        self,
        base_delay: float = RETRY_BASE_DELAY_SECONDS,
        max_delay: float = RETRY_MAX_DELAY_SECONDS
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._failures: Dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def when(self, item: Hashable) -> float:
        with self._lock:
            exp = self._failures.get(item, 0)
            self._failures[item] = exp + 1

        # Large exponents would overflow the float before the cap applies
        if exp >= 64:
            return self.max_delay
        return min(self.base_delay * (2 ** exp), self.max_delay)

    def forget(self, item: Hashable) -> None:
        with self._lock:
            self._failures.pop(item, None)

    def num_requeues(self, item: Hashable) -> int:
        with self._lock:
            return self._failures.get(item, 0)


class BucketRateLimiter(RateLimiter):
    """
    Overall token bucket shared by every item.

    Each call reserves one token; once the bucket is empty the returned delay
    is the time until the reserved token has been refilled.
    """

    def __init__(
        self,
        qps: float = BUCKET_QPS,
        burst: int = BUCKET_BURST,
        clock: Callable[[], float] = time.monotonic
    ):
        if qps <= 0:
            raise ValueError(f"qps must be > 0, got: {qps}")
        self.qps = qps
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()
        self._lock = threading.Lock()

    def when(self, item: Hashable) -> float:
        with self._lock:
            now = self._clock()
            elapsed = max(0.0, now - self._last)
            self._tokens = min(float(self.burst), self._tokens + elapsed * self.qps)
            self._last = now

            self._tokens -= 1
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.qps

    def forget(self, item: Hashable) -> None:
        pass

    def num_requeues(self, item: Hashable) -> int:
        return 0


class MaxOfRateLimiter(RateLimiter):
    """Combines limiters; the longest delay wins."""

    def __init__(self, *limiters: RateLimiter):
        if not limiters:
            raise ValueError("at least one rate limiter is required")
        self.limiters = limiters

    def when(self, item: Hashable) -> float:
        return max(limiter.when(item) for limiter in self.limiters)

    def forget(self, item: Hashable) -> None:
        for limiter in self.limiters:
            limiter.forget(item)

    def num_requeues(self, item: Hashable) -> int:
        return max(limiter.num_requeues(item) for limiter in self.limiters)


def default_controller_rate_limiter() -> RateLimiter:
    """Exponential per-item backoff bounded by an overall token bucket."""
    return MaxOfRateLimiter(
        ItemExponentialFailureRateLimiter(),
        BucketRateLimiter(),
    )
