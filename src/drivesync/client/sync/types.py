"""Shared exceptions and result types for sync operations.

This module provides:
- SyncError, UploadError, DownloadError: Exception classes
- QueueClosedError: Raised by the task queue once it has been closed
- TaskState: Lifecycle of a task
- SyncReport: Snapshot of the reporter counters
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class SyncError(Exception):
    """Base exception for sync errors."""


class UploadError(SyncError):
    """Failed to upload a file."""


class DownloadError(SyncError):
    """Failed to download a file."""


class QueueClosedError(RuntimeError):
    """The task queue was closed (the pool is shutting down)."""


class TaskState(Enum):
    """State of a task.

    CREATED -> RUNNING -> SUCCEEDED | RETRY_SCHEDULED | FAILED.
    A task in RETRY_SCHEDULED goes back to RUNNING on its next attempt.
    """

    CREATED = auto()
    RUNNING = auto()
    SUCCEEDED = auto()
    RETRY_SCHEDULED = auto()
    FAILED = auto()


@dataclass(frozen=True)
class SyncReport:
    """Aggregate outcome of a sync run."""

    same: int = 0
    skipped: int = 0
    local_deleted: int = 0
    remote_deleted: int = 0
    properties_updated: int = 0
    errors: int = 0
    new_uploaded: int = 0
    new_uploaded_size: int = 0
    replace_uploaded: int = 0
    replace_uploaded_size: int = 0
    new_downloaded: int = 0
    new_downloaded_size: int = 0
    replace_downloaded: int = 0
    replace_downloaded_size: int = 0
    elapsed: float = 0.0

    @property
    def uploaded(self) -> int:
        return self.new_uploaded + self.replace_uploaded

    @property
    def downloaded(self) -> int:
        return self.new_downloaded + self.replace_downloaded
