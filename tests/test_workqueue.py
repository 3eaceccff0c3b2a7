"""Tests for the work queue: deduplication, in-flight tracking, delays and shutdown."""

from __future__ import annotations

import threading
import time

from mesh_rotator.cache import ObjectRef
from mesh_rotator.ratelimit import ItemExponentialFailureRateLimiter
from mesh_rotator.workqueue import DelayingQueue, RateLimitingQueue, WorkQueue

from .conftest import wait_for

FOO = ObjectRef("default", "foo")
BAR = ObjectRef("default", "bar")


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------


class TestDeduplication:
    def test_adding_pending_item_is_noop(self) -> None:
        q = WorkQueue()
        q.add(FOO)
        q.add(FOO)
        assert len(q) == 1

    def test_items_come_out_in_order(self) -> None:
        q = WorkQueue()
        q.add(FOO)
        q.add(BAR)
        assert q.get() == (FOO, False)
        assert q.get() == (BAR, False)

    def test_equal_refs_are_the_same_item(self) -> None:
        q = WorkQueue()
        q.add(ObjectRef("default", "foo"))
        q.add(ObjectRef("default", "foo"))
        assert len(q) == 1


# ---------------------------------------------------------------------------
# In-flight tracking
# ---------------------------------------------------------------------------


class TestProcessing:
    def test_item_added_while_processing_waits_for_done(self) -> None:
        q = WorkQueue()
        q.add(FOO)
        item, _ = q.get()

        q.add(FOO)
        assert len(q) == 0

        q.done(item)
        assert len(q) == 1
        assert q.get() == (FOO, False)

    def test_done_without_re_add_leaves_queue_empty(self) -> None:
        q = WorkQueue()
        q.add(FOO)
        item, _ = q.get()
        q.done(item)
        assert len(q) == 0

    def test_item_can_be_added_again_after_done(self) -> None:
        q = WorkQueue()
        q.add(FOO)
        item, _ = q.get()
        q.done(item)
        q.add(FOO)
        assert len(q) == 1

    def test_get_blocks_until_item_added(self) -> None:
        q = WorkQueue()
        result = []
        getter = threading.Thread(target=lambda: result.append(q.get()))
        getter.start()

        time.sleep(0.05)
        assert result == []

        q.add(FOO)
        getter.join(timeout=2)
        assert result == [(FOO, False)]


# ---------------------------------------------------------------------------
# Shutdown
# ---------------------------------------------------------------------------


class TestShutdown:
    def test_get_returns_shutdown_regardless_of_depth(self) -> None:
        q = WorkQueue()
        q.add(FOO)
        q.add(BAR)
        q.shut_down()
        assert q.get() == (None, True)

    def test_blocked_get_is_woken_by_shutdown(self) -> None:
        q = WorkQueue()
        result = []
        getter = threading.Thread(target=lambda: result.append(q.get()))
        getter.start()

        time.sleep(0.05)
        q.shut_down()
        getter.join(timeout=2)

        assert not getter.is_alive()
        assert result == [(None, True)]

    def test_add_after_shutdown_is_ignored(self) -> None:
        q = WorkQueue()
        q.shut_down()
        q.add(FOO)
        assert len(q) == 0
        assert q.shutting_down is True


# ---------------------------------------------------------------------------
# Delays and rate limiting
# ---------------------------------------------------------------------------


class TestDelayingQueue:
    def test_zero_delay_adds_immediately(self) -> None:
        q = DelayingQueue()
        q.add_after(FOO, 0)
        assert len(q) == 1
        q.shut_down()

    def test_item_appears_after_delay(self) -> None:
        q = DelayingQueue()
        q.add_after(FOO, 0.05)
        assert len(q) == 0
        assert wait_for(lambda: len(q) == 1)
        q.shut_down()

    def test_earlier_deadline_wins(self) -> None:
        q = DelayingQueue()
        q.add_after(FOO, 30)
        q.add_after(FOO, 0.05)
        assert wait_for(lambda: len(q) == 1)
        q.shut_down()

    def test_waiting_items_dropped_on_shutdown(self) -> None:
        q = DelayingQueue()
        q.add_after(FOO, 0.05)
        q.shut_down()
        time.sleep(0.1)
        assert len(q) == 0


class TestRateLimitingQueue:
    def test_add_rate_limited_counts_requeues(self) -> None:
        q = RateLimitingQueue(ItemExponentialFailureRateLimiter(base_delay=0.001))
        q.add_rate_limited(FOO)
        q.add_rate_limited(FOO)
        assert q.num_requeues(FOO) == 2
        assert wait_for(lambda: len(q) == 1)
        q.shut_down()

    def test_forget_clears_history(self) -> None:
        q = RateLimitingQueue(ItemExponentialFailureRateLimiter(base_delay=0.001))
        q.add_rate_limited(FOO)
        q.forget(FOO)
        assert q.num_requeues(FOO) == 0
        q.shut_down()

    def test_default_rate_limiter(self) -> None:
        q = RateLimitingQueue()
        q.add_rate_limited(FOO)
        assert q.num_requeues(FOO) == 1
        assert wait_for(lambda: len(q) == 1)
        q.shut_down()
