"""
Work queue for deployments awaiting an age check.

The queue deduplicates items: an item added while it is already pending is
ignored, and an item added while a worker is processing it is held back until
the worker calls done(). This guarantees that one reference is never processed
by two workers at the same time.
"""

import heapq
import itertools
import logging
import threading
import time
from collections import deque
from typing import Deque, Dict, List, Optional, Set, Tuple

from .cache import ObjectRef
from .ratelimit import default_controller_rate_limiter

logger = logging.getLogger(__name__)


class WorkQueue:
    """Deduplicating FIFO queue of ObjectRefs."""

    def __init__(self, name: str = ""):
        self.name = name
        self._queue: Deque[ObjectRef] = deque()
        # Items that need processing (queued, or re-added while in progress)
        self._dirty: Set[ObjectRef] = set()
        # Items handed out by get() and not yet marked done
        self._processing: Set[ObjectRef] = set()
        self._shutting_down = False
        self._cond = threading.Condition()

    def add(self, item: ObjectRef) -> None:
        """Mark item as needing processing. No-op if it is already pending."""
        with self._cond:
            if self._shutting_down or item in self._dirty:
                return
            self._dirty.add(item)
            if item in self._processing:
                return
            self._queue.append(item)
            self._cond.notify()

    def get(self) -> Tuple[Optional[ObjectRef], bool]:
        """
        Block until an item is available or the queue shuts down.

        Returns:
            Tuple of (item, shutting_down). Once the queue is shutting down
            the item is None, even if items are still queued.
        """
        with self._cond:
            while not self._queue and not self._shutting_down:
                self._cond.wait()
            if self._shutting_down:
                return None, True

            item = self._queue.popleft()
            self._processing.add(item)
            self._dirty.discard(item)
            return item, False

    def done(self, item: ObjectRef) -> None:
        """Mark item as processed. If it was re-added meanwhile it is queued again."""
        with self._cond:
            self._processing.discard(item)
            if item in self._dirty:
                self._queue.append(item)
                self._cond.notify()

    def shut_down(self) -> None:
        """Stop accepting items and wake up every blocked get()."""
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()
        logger.debug(f"Work queue {self.name or '<unnamed>'} shut down")

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)


class DelayingQueue(WorkQueue):
    """WorkQueue that can also add an item after a delay."""

    def __init__(self, name: str = ""):
        super().__init__(name)
        self._waiting: List[Tuple[float, int, ObjectRef]] = []
        self._ready_at: Dict[ObjectRef, float] = {}
        self._sequence = itertools.count()
        self._waiting_cond = threading.Condition()
        self._waiting_thread: Optional[threading.Thread] = None

    def add_after(self, item: ObjectRef, delay: float) -> None:
        """
        Add item once delay seconds have passed.

        A non-positive delay adds the item right away. If the item is already
        waiting, the earlier deadline wins.
        """
        if self.shutting_down:
            return
        if delay <= 0:
            self.add(item)
            return

        ready_at = time.monotonic() + delay
        with self._waiting_cond:
            current = self._ready_at.get(item)
            if current is not None and current <= ready_at:
                return
            self._ready_at[item] = ready_at
            heapq.heappush(self._waiting, (ready_at, next(self._sequence), item))
            self._ensure_waiting_thread()
            self._waiting_cond.notify()

    def shut_down(self) -> None:
        super().shut_down()
        with self._waiting_cond:
            self._waiting.clear()
            self._ready_at.clear()
            self._waiting_cond.notify_all()

    def _ensure_waiting_thread(self) -> None:
        # Caller holds _waiting_cond
        if self._waiting_thread is None:
            self._waiting_thread = threading.Thread(
                target=self._waiting_loop,
                name=f"{self.name or 'workqueue'}-delay",
                daemon=True
            )
            self._waiting_thread.start()

    def _waiting_loop(self) -> None:
        """Move items whose delay has expired into the queue."""
        while True:
            ready = []
            with self._waiting_cond:
                if self.shutting_down:
                    return
                now = time.monotonic()
                while self._waiting and self._waiting[0][0] <= now:
                    ready_at, _, item = heapq.heappop(self._waiting)
                    # Entries superseded by an earlier deadline are skipped
                    if self._ready_at.get(item) == ready_at:
                        del self._ready_at[item]
                        ready.append(item)
                if not ready:
                    timeout = self._waiting[0][0] - now if self._waiting else None
                    self._waiting_cond.wait(timeout)

            for item in ready:
                self.add(item)


class RateLimitingQueue(DelayingQueue):
    """DelayingQueue that spaces out re-adds of the same item with a rate limiter."""

    def __init__(self, rate_limiter=None, name: str = ""):
        super().__init__(name)
        self.rate_limiter = rate_limiter or default_controller_rate_limiter()

    def add_rate_limited(self, item: ObjectRef) -> None:
        """Add item after the delay chosen by the rate limiter."""
        self.add_after(item, self.rate_limiter.when(item))

    def forget(self, item: ObjectRef) -> None:
        """Clear the rate limiter history for item."""
        self.rate_limiter.forget(item)

    def num_requeues(self, item: ObjectRef) -> int:
        return self.rate_limiter.num_requeues(item)
