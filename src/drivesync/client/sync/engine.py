"""Sync engine driving one run.

This module provides:
- SyncEngine: Seeds the queue with the root check, runs the worker pool
  until no work remains, and reports the outcome
- resolve_remote_root / check_local_root: Root validation before a run
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from drivesync.client.api import NotFoundError
from drivesync.client.filesystem import FileSystemProvider, ReadOnlyFileSystem
from drivesync.client.sync.filters import SyncFilters
from drivesync.client.sync.pool import WorkerPool
from drivesync.client.sync.queue import TaskQueue
from drivesync.client.sync.reporter import TaskReporter
from drivesync.client.sync.tasks import CheckTask, TaskContext
from drivesync.client.sync.types import SyncError, SyncReport
from drivesync.core.config import SyncDirection

if TYPE_CHECKING:
    from pathlib import Path

    from drivesync.client.api import DriveClient, RemoteNode
    from drivesync.core.config import SyncConfig

logger = logging.getLogger(__name__)


def resolve_remote_root(api: DriveClient, path: str) -> RemoteNode:
    """Look up the remote root folder.

    Raises:
        SyncError: If the path does not exist or is not a folder.
    """
    try:
        node = api.get_root() if path in ("", "/") else api.get_path(path)
    except NotFoundError as e:
        raise SyncError(f"Specified remote folder does not exist: {path}") from e
    if not node.is_directory:
        raise SyncError(f"Specified remote path is not a folder: {path}")
    return node


def check_local_root(path: Path) -> Path:
    """Check that the local root is an existing directory.

    Raises:
        SyncError: If it is not.
    """
    if not path.is_dir():
        raise SyncError(f"Specified local path is not a directory: {path}")
    return path


class SyncEngine:
    """Runs a one-way synchronization between a local and a remote root.

    Usage:
        engine = SyncEngine(api, config)
        report = engine.run(remote_root)
    """

    def __init__(
        self,
        api: DriveClient,
        config: SyncConfig,
        filesystem: FileSystemProvider | None = None,
        filters: SyncFilters | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            api: Drive client (a ReadOnlyDriveClient for dry runs).
            config: Run configuration.
            filesystem: Local filesystem provider. Defaults to a read-only
                provider for dry runs, a read-write one otherwise.
            filters: Ignore and size filters. Built from config if omitted.
        """
        self._api = api
        self._config = config
        if filesystem is None:
            provider = ReadOnlyFileSystem if config.dry_run else FileSystemProvider
            filesystem = provider(use_hash=config.use_hash)
        self._filesystem = filesystem
        self._filters = filters or SyncFilters(config)

        self._lock = threading.Lock()
        self._pool: WorkerPool | None = None

    def run(self, remote_root: RemoteNode, timeout: float | None = None) -> SyncReport:
        """Synchronize `remote_root` with the configured local root.

        Blocks until every task (and every task it spawned) has finished,
        the timeout expired or stop() was called.

        Returns:
            The final counters.
        """
        queue = TaskQueue()
        reporter = TaskReporter()
        context = TaskContext(
            queue=queue,
            api=self._api,
            filesystem=self._filesystem,
            reporter=reporter,
            filters=self._filters,
            config=self._config,
        )
        local_root = self._config.local_path

        logger.info(
            "Synchronizing %s %s %s",
            local_root,
            "->" if self._config.direction is SyncDirection.UP else "<-",
            remote_root.full_name,
        )

        queue.add(CheckTask(context, remote_root, remote_root, local_root, local_root))

        pool = WorkerPool(queue, self._config.threads)
        with self._lock:
            self._pool = pool
        pool.start()

        try:
            if not queue.wait_for_completion(timeout):
                logger.warning("Sync did not complete; %d tasks left", len(queue))
        finally:
            pool.stop()
            with self._lock:
                self._pool = None

        reporter.report()
        return reporter.snapshot()

    def stop(self) -> None:
        """Cancel a running sync from another thread."""
        with self._lock:
            pool = self._pool
        if pool is not None:
            pool.stop()
