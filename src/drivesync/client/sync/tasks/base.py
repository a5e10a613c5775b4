"""Base task class with the retry policy.

This module provides:
- TaskContext: Collaborators shared by every task of a run
- Task: Abstract base class; run() executes the body and handles failures

Failure classification in run():

    HTTP 401                  log, retry without backoff
    HTTP 500/502/503/504      suspend the queue 10s, retry
    HTTP 429/509              suspend the queue 60s, retry
    other HTTP status         log, retry without backoff
    any other exception       suspend the queue 1s, retry

A retry re-adds the same task object to the queue. Once `tries` attempts
have failed, the task is reported as an error and dropped.
"""

from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from drivesync.client.api import APIError
from drivesync.client.sync.types import TaskState

if TYPE_CHECKING:
    from pathlib import Path

    from drivesync.client.api import DriveClient, RemoteNode
    from drivesync.client.filesystem import FileSystemProvider
    from drivesync.client.sync.filters import SyncFilters
    from drivesync.client.sync.queue import TaskQueue
    from drivesync.client.sync.reporter import TaskReporter
    from drivesync.core.config import SyncConfig

logger = logging.getLogger(__name__)

SERVER_ERROR_BACKOFF = 10.0
THROTTLED_BACKOFF = 60.0
UNCLASSIFIED_BACKOFF = 1.0

SERVER_ERROR_CODES = frozenset({500, 502, 503, 504})
THROTTLED_CODES = frozenset({429, 509})


@dataclass(frozen=True)
class TaskContext:
    """Collaborators handed to every task.

    Attributes:
        queue: Queue children and retries are added to.
        api: Drive API client.
        filesystem: Local filesystem provider.
        reporter: Aggregate outcome counters.
        filters: Ignore and size filters.
        config: Run configuration.
    """

    queue: TaskQueue
    api: DriveClient
    filesystem: FileSystemProvider
    reporter: TaskReporter
    filters: SyncFilters
    config: SyncConfig


class Task(ABC):
    """Abstract base class for sync tasks.

    Subclasses must define:
    - priority: Fixed class-level priority (higher runs first)
    - task_body(): The work; raises on any unresolved failure
    - __str__(): Description used in log lines
    """

    priority: ClassVar[int]

    _ids: ClassVar[itertools.count[int]] = itertools.count(1)

    def __init__(self, context: TaskContext) -> None:
        self.context = context
        self.queue = context.queue
        self.api = context.api
        self.filesystem = context.filesystem
        self.reporter = context.reporter
        self.filters = context.filters
        self.config = context.config

        self.id = next(Task._ids)
        self.attempt = 0
        self.state = TaskState.CREATED

    @property
    def task_id(self) -> str:
        """Id and attempt, e.g. '12:2'."""
        return f"{self.id}:{self.attempt}"

    @abstractmethod
    def task_body(self) -> None:
        """Perform the task. Must raise if the task did not complete."""
        ...

    def run(self) -> None:
        """Run one attempt of the task and apply the retry policy."""
        self.attempt += 1
        self.state = TaskState.RUNNING
        backoff = 0.0

        try:
            logger.debug("Starting task %s - %s", self.task_id, self)
            self.task_body()
            self.state = TaskState.SUCCEEDED
            return
        except APIError as e:
            backoff = self._classify(e)
        except Exception:
            logger.exception("Task %s encountered exception", self.task_id)
            backoff = UNCLASSIFIED_BACKOFF

        if self.attempt < self.config.tries:
            self.state = TaskState.RETRY_SCHEDULED
            if backoff > 0:
                self.queue.suspend(backoff)
            self.queue.add(self)
        else:
            self.state = TaskState.FAILED
            self.reporter.error()
            logger.error("Task %d did not complete - %s", self.id, self)

    def _classify(self, error: APIError) -> float:
        """Log an API failure and return the backoff it calls for."""
        if error.status_code in SERVER_ERROR_CODES:
            logger.warning(
                "Task %s encountered %s - sleeping %d seconds",
                self.task_id, error, SERVER_ERROR_BACKOFF,
            )
            return SERVER_ERROR_BACKOFF
        if error.status_code in THROTTLED_CODES:
            logger.warning(
                "Task %s encountered %s - sleeping %d seconds",
                self.task_id, error, THROTTLED_BACKOFF,
            )
            return THROTTLED_BACKOFF

        # 401 and anything unrecognised: retry straight away
        logger.warning("Task %s encountered %s", self.task_id, error)
        return 0.0

    # === Filter helpers ===

    def is_size_invalid_local(self, path: Path) -> bool:
        return self.filters.is_size_invalid_local(path)

    def is_size_invalid_remote(self, node: RemoteNode) -> bool:
        return self.filters.is_size_invalid_remote(node)

    def is_ignored_local(self, path: Path, root: Path) -> bool:
        return self.filters.is_ignored_local(path, root)

    def is_ignored_remote(self, node: RemoteNode, root: RemoteNode) -> bool:
        return self.filters.is_ignored_remote(node, root)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.task_id}, {self})"
