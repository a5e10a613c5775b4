"""Task queue for the sync scheduler.

This module provides:
- TaskQueue: Thread-safe priority queue with in-flight tracking and a
  global suspension deadline

The queue is the only coordination point between workers. Tasks are
dequeued by descending priority (deletes before transfers before checks),
so decided work runs ahead of further tree exploration. Tasks of equal
priority come out in insertion order.

A task taken from the queue counts as in flight until done() is called
for it. A task that enqueues children (or re-enqueues itself for a retry)
does so before done(), so wait_for_completion() cannot observe an empty
queue with zero tasks in flight while work remains.

Usage:
    queue = TaskQueue()
    queue.add(CheckTask(...))

    # In each worker thread
    task = queue.take()
    try:
        task.run()
    finally:
        queue.done(task)

    # In the driver
    queue.wait_for_completion()
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections import Counter
from typing import TYPE_CHECKING

from drivesync.client.sync.types import QueueClosedError

if TYPE_CHECKING:
    from drivesync.client.sync.tasks.base import Task

logger = logging.getLogger(__name__)


class TaskQueue:
    """Priority queue of sync tasks shared by all workers.

    All state (pending heap, in-flight count, suspension deadline) is
    guarded by a single condition so that adds, takes, completions and
    suspensions cannot race each other.
    """

    def __init__(self) -> None:
        """Initialize an empty, open queue."""
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)
        self._pending: list[tuple[int, int, Task]] = []
        self._sequence = itertools.count()
        self._in_flight = 0
        self._suspended_until = 0.0  # time.monotonic() deadline
        self._closed = False

    def add(self, task: Task) -> None:
        """Enqueue a task without blocking.

        Raises:
            QueueClosedError: If the queue has been closed.
        """
        with self._lock:
            if self._closed:
                raise QueueClosedError("Queue is closed")
            heapq.heappush(self._pending, (-task.priority, next(self._sequence), task))
            self._changed.notify_all()

    def take(self, timeout: float | None = None) -> Task | None:
        """Dequeue the highest priority task.

        Blocks while the queue is empty or suspended.

        Args:
            timeout: Maximum seconds to wait (None = wait forever).

        Returns:
            The task, now counted as in flight, or None if the timeout
            expired first.

        Raises:
            QueueClosedError: If the queue is (or gets) closed.
        """
        with self._changed:
            deadline = None if timeout is None else time.monotonic() + timeout

            while True:
                if self._closed:
                    raise QueueClosedError("Queue is closed")

                now = time.monotonic()
                if self._pending and now >= self._suspended_until:
                    _, _, task = heapq.heappop(self._pending)
                    self._in_flight += 1
                    return task

                wait: float | None = None
                if self._pending:
                    wait = self._suspended_until - now
                if deadline is not None:
                    remaining = deadline - now
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)

                self._changed.wait(wait)

    def done(self, task: Task) -> None:
        """Mark a task taken from the queue as finished."""
        with self._lock:
            if self._in_flight <= 0:
                raise ValueError(f"done() called without a matching take(): {task}")
            self._in_flight -= 1
            if self._in_flight == 0 and not self._pending:
                self._changed.notify_all()

    def suspend(self, seconds: float) -> None:
        """Hold back further take() calls for `seconds`.

        The deadline only ever moves later: a shorter suspension requested
        while a longer one is pending has no effect. Tasks already running
        are not affected.
        """
        with self._lock:
            until = time.monotonic() + seconds
            if until > self._suspended_until:
                self._suspended_until = until
                logger.info("Suspending queue for %s seconds", seconds)

    def wait_for_completion(self, timeout: float | None = None) -> bool:
        """Block until no task is pending and none is in flight.

        Args:
            timeout: Maximum seconds to wait (None = wait forever).

        Returns:
            True if all work completed, False on timeout or close.
        """
        with self._changed:
            self._changed.wait_for(
                lambda: self._closed or (not self._pending and self._in_flight == 0),
                timeout,
            )
            return not self._pending and self._in_flight == 0

    def close(self) -> None:
        """Close the queue and wake up every waiting thread."""
        with self._lock:
            self._closed = True
            self._changed.notify_all()
            logger.debug("Task queue closed")

    def __len__(self) -> int:
        """Get number of pending tasks."""
        with self._lock:
            return len(self._pending)

    @property
    def in_flight(self) -> int:
        """Number of tasks taken but not yet done."""
        with self._lock:
            return self._in_flight

    @property
    def suspended_until(self) -> float:
        """time.monotonic() deadline before which take() will not return."""
        with self._lock:
            return self._suspended_until

    @property
    def suspended_for(self) -> float:
        """Seconds until take() may return again (0 if not suspended)."""
        with self._lock:
            return max(self._suspended_until - time.monotonic(), 0.0)

    @property
    def is_closed(self) -> bool:
        """Check if queue is closed."""
        return self._closed

    def stats(self) -> dict[str, int]:
        """Get queue statistics.

        Returns:
            Pending task counts by task class, plus totals.
        """
        with self._lock:
            counts = Counter(type(task).__name__ for _, _, task in self._pending)
            stats = dict(counts)
            stats["pending"] = len(self._pending)
            stats["in_flight"] = self._in_flight
            return stats
