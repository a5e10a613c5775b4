"""Synchronization scheduler: task queue, tasks, worker pool and engine."""

from drivesync.client.sync.engine import SyncEngine, check_local_root, resolve_remote_root
from drivesync.client.sync.filters import IgnorePatterns, SyncFilters
from drivesync.client.sync.pool import WorkerPool
from drivesync.client.sync.queue import TaskQueue
from drivesync.client.sync.reporter import TaskReporter
from drivesync.client.sync.types import (
    DownloadError,
    QueueClosedError,
    SyncError,
    SyncReport,
    TaskState,
    UploadError,
)

__all__ = [
    "DownloadError",
    "IgnorePatterns",
    "QueueClosedError",
    "SyncEngine",
    "SyncError",
    "SyncFilters",
    "SyncReport",
    "TaskQueue",
    "TaskReporter",
    "TaskState",
    "UploadError",
    "WorkerPool",
    "check_local_root",
    "resolve_remote_root",
]
