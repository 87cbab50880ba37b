"""Deduplicating work queue with delayed and rate-limited re-adds."""

import heapq
import itertools
import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Hashable, List, Optional, Set, Tuple

from .ratelimiter import RateLimiter, default_controller_rate_limiter

logger = logging.getLogger(__name__)


class WorkQueue:
    """
    Thread-safe queue of keys awaiting processing.

    Semantics:
        - A key added while already pending is stored once.
        - A key handed out by get() is not handed out again until done()
          is called for it. Adding it meanwhile marks it dirty, and it is
          queued again exactly once when done() is called.
        - After shut_down(), get() drains the pending keys and then
          reports shutdown.
    """

    def __init__(self, name: str = "", clock: Callable[[], float] = time.monotonic):
        self.name = name
        self._clock = clock
        self._cond = threading.Condition()

        self._queue: Deque[Hashable] = deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()

        # Delayed adds: earliest ready time per key, plus a heap that may
        # hold stale entries for keys whose ready time has since moved.
        self._waiting: Dict[Hashable, float] = {}
        self._waiting_heap: List[Tuple[float, int, Hashable]] = []
        self._seq = itertools.count()

        self._shutting_down = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def add(self, item: Hashable) -> None:
        with self._cond:
            self._add_locked(item)

    def _add_locked(self, item: Hashable) -> None:
        if self._shutting_down:
            return
        if item in self._dirty:
            return

        self._dirty.add(item)
        if item in self._processing:
            return

        self._queue.append(item)
        self._cond.notify()

    def add_after(self, item: Hashable, delay: float) -> None:
        """Add ``item`` once ``delay`` seconds have passed."""
        with self._cond:
            if self._shutting_down:
                return
            if delay <= 0:
                self._add_locked(item)
                return

            ready_at = self._clock() + delay
            current = self._waiting.get(item)
            if current is not None and current <= ready_at:
                return

            self._waiting[item] = ready_at
            heapq.heappush(self._waiting_heap, (ready_at, next(self._seq), item))
            self._cond.notify_all()

    def _promote_ready_locked(self) -> Optional[float]:
        """Move due delayed keys into the queue; return seconds until the next one."""
        now = self._clock()
        while self._waiting_heap:
            ready_at, _, item = self._waiting_heap[0]
            if self._waiting.get(item) != ready_at:
                heapq.heappop(self._waiting_heap)
                continue
            if ready_at > now:
                return ready_at - now

            heapq.heappop(self._waiting_heap)
            del self._waiting[item]
            self._add_locked(item)
        return None

    def get(self) -> Tuple[Optional[Hashable], bool]:
        """
        Block until a key is available.

        Returns:
            Tuple of (key, shutting_down). The key is None when the queue
            has been shut down and drained.
        """
        with self._cond:
            while True:
                timeout = self._promote_ready_locked()
                if self._queue:
                    break
                if self._shutting_down:
                    return None, True
                self._cond.wait(timeout)

            item = self._queue.popleft()
            self._processing.add(item)
            self._dirty.discard(item)
            return item, False

    def done(self, item: Hashable) -> None:
        """Mark ``item`` as finished; re-queue it if it was added meanwhile."""
        with self._cond:
            if item not in self._processing:
                return
            self._processing.discard(item)
            if item in self._dirty:
                self._queue.append(item)
                self._cond.notify()

    def shut_down(self) -> None:
        with self._cond:
            if self._shutting_down:
                return
            logger.info(f"Shutting down work queue {self.name or '<unnamed>'}")
            self._shutting_down = True
            self._waiting.clear()
            self._waiting_heap.clear()
            self._cond.notify_all()


class RateLimitingQueue(WorkQueue):
    """WorkQueue whose failed keys come back after a rate-limited delay."""

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        name: str = "",
        clock: Callable[[], float] = time.monotonic
    ):
        super().__init__(name=name, clock=clock)
        self.rate_limiter = rate_limiter or default_controller_rate_limiter()

    def add_rate_limited(self, item: Hashable) -> None:
        delay = self.rate_limiter.when(item)
        logger.debug(f"Re-queueing {item} in {delay:.3f}s")
        self.add_after(item, delay)

    def forget(self, item: Hashable) -> None:
        """Stop tracking retries for ``item``; it stays queued if pending."""
        self.rate_limiter.forget(item)

    def num_requeues(self, item: Hashable) -> int:
        return self.rate_limiter.num_requeues(item)
