"""Worker pool running sync tasks.

This module provides:
- PoolState: Lifecycle of the pool
- WorkerPool: Fixed number of daemon threads draining a TaskQueue
"""

from __future__ import annotations

import logging
import threading
from enum import Enum, auto
from typing import TYPE_CHECKING

from drivesync.client.sync.types import QueueClosedError

if TYPE_CHECKING:
    from drivesync.client.sync.queue import TaskQueue

logger = logging.getLogger(__name__)


class PoolState(Enum):
    """State of the worker pool."""

    STOPPED = auto()
    RUNNING = auto()
    STOPPING = auto()


class WorkerPool:
    """Pool of worker threads for a task queue.

    Each worker loops take -> run -> done until the queue is closed.
    Stopping the pool closes the queue, which wakes every blocked worker.

    Usage:
        pool = WorkerPool(queue, threads=5)
        pool.start()
        queue.wait_for_completion()
        pool.stop()
    """

    def __init__(self, queue: TaskQueue, threads: int = 5) -> None:
        """Initialize the worker pool.

        Args:
            queue: Queue to take tasks from.
            threads: Number of worker threads.
        """
        if threads < 1:
            raise ValueError("threads must be at least 1")
        self._queue = queue
        self._threads = threads

        self._pool_state = PoolState.STOPPED
        self._lock = threading.Lock()
        self._workers: list[threading.Thread] = []

        self._completed_count = 0

    @property
    def state(self) -> PoolState:
        """Get current pool state."""
        return self._pool_state

    @property
    def completed_count(self) -> int:
        """Get number of task attempts run."""
        with self._lock:
            return self._completed_count

    def start(self) -> None:
        """Start the worker threads."""
        with self._lock:
            if self._pool_state != PoolState.STOPPED:
                logger.warning("Worker pool already running")
                return

            self._pool_state = PoolState.RUNNING

            for i in range(self._threads):
                thread = threading.Thread(
                    target=self._worker_loop,
                    name=f"Worker-{i}",
                    daemon=True,
                )
                thread.start()
                self._workers.append(thread)

            logger.debug(f"Worker pool started with {self._threads} workers")

    def stop(self, timeout: float = 10.0) -> None:
        """Stop the worker pool.

        Tasks already running finish their current attempt; nothing
        pending is run.

        Args:
            timeout: Maximum time to wait for workers to finish.
        """
        with self._lock:
            if self._pool_state == PoolState.STOPPED:
                return
            self._pool_state = PoolState.STOPPING

        self._queue.close()

        for worker in self._workers:
            worker.join(timeout=timeout / len(self._workers))

        with self._lock:
            self._pool_state = PoolState.STOPPED
            self._workers.clear()
            logger.debug("Worker pool stopped")

    def _worker_loop(self) -> None:
        """Main loop for worker threads."""
        while True:
            try:
                task = self._queue.take()
            except QueueClosedError:
                break
            if task is None:
                continue

            try:
                task.run()
            except QueueClosedError:
                # Shutdown while the task was adding work
                break
            except Exception:
                logger.exception(f"Unexpected error running {task!r}")
            finally:
                self._queue.done(task)
                with self._lock:
                    self._completed_count += 1
