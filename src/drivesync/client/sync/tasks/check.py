"""Diff a (remote, local) pair and enqueue the work that reconciles it.

This module provides:
- CheckTask: Compares two folders child by child, or two files by the
  match algorithm, and turns every difference into a typed task

Outcomes for a pair of files:
- MISMATCH: transfer with replace in the configured direction
- CONTENT_ONLY: UpdatePropertiesTask
- EXACT: counted as unchanged

A file on one side that is a folder on the other is deleted on the
non-authoritative side in place, then recreated by a transfer.
"""

from __future__ import annotations

import logging
from pathlib import Path

from drivesync.client.api import RemoteNode
from drivesync.client.filesystem import MatchResult
from drivesync.client.sync.tasks.base import Task, TaskContext
from drivesync.client.sync.tasks.delete import DeleteTask
from drivesync.client.sync.tasks.download import DownloadTask
from drivesync.client.sync.tasks.properties import UpdatePropertiesTask
from drivesync.client.sync.tasks.upload import UploadTask
from drivesync.core.config import SyncDirection

logger = logging.getLogger(__name__)

CHECK_PRIORITY = 10


class CheckTask(Task):
    """Compare `remote` with `local` below the given sync roots."""

    priority = CHECK_PRIORITY

    def __init__(
        self,
        context: TaskContext,
        remote_root: RemoteNode,
        remote: RemoteNode,
        local_root: Path,
        local: Path,
    ) -> None:
        super().__init__(context)
        self.remote_root = remote_root
        self.remote = remote
        self.local_root = local_root
        self.local = local

    @property
    def _upward(self) -> bool:
        return self.config.direction is SyncDirection.UP

    def task_body(self) -> None:
        local_is_directory = self.filesystem.is_directory(self.local)

        if local_is_directory and self.remote.is_directory:
            self._check_folder()
            return

        if self._is_filtered(local_is_directory):
            self.reporter.skipped()
            return

        if not local_is_directory and not self.remote.is_directory:
            self._check_file()
            return

        # Type conflict: remove the obsolete side, then recreate it
        logger.info("Type mismatch between %s and %s", self.local, self.remote.full_name)
        if self._upward:
            DeleteTask(self.context, remote=self.remote).task_body()
        else:
            DeleteTask(self.context, local=self.local).task_body()
        self._transfer(replace=True)

    def _is_filtered(self, local_is_directory: bool) -> bool:
        if self._upward:
            if not local_is_directory and self.is_size_invalid_local(self.local):
                return True
            return self.is_ignored_local(self.local, self.local_root)

        if not self.remote.is_directory and self.is_size_invalid_remote(self.remote):
            return True
        return self.is_ignored_remote(self.remote, self.remote_root)

    def _check_file(self) -> None:
        result = self.filesystem.verify_match(
            self.local,
            self.remote.crc32,
            self.remote.sha1,
            self.remote.size,
            self.remote.created,
            self.remote.modified,
        )

        if result is MatchResult.MISMATCH:
            self._transfer(replace=True)
        elif result is MatchResult.CONTENT_ONLY:
            self.queue.add(UpdatePropertiesTask(self.context, self.remote, self.local))
        else:
            self.reporter.same()

    def _check_folder(self) -> None:
        remote_children = self.api.get_children(self.remote)

        try:
            local_children = {path.name: path for path in self.filesystem.list_directory(self.local)}
        except OSError as e:
            logger.warning("Unable to recurse into local directory %s: %s", self.local, e)
            self.reporter.skipped()
            return

        for child in remote_children:
            if child.is_directory and not self.config.recursive:
                continue
            self.process_child(child, local_children.pop(child.name, None))

        for path in local_children.values():
            if self.filesystem.is_directory(path) and not self.config.recursive:
                continue
            self.process_child(None, path)

    def process_child(self, remote: RemoteNode | None, local: Path | None) -> None:
        """Decide what to do with one entry of a folder pair.

        Args:
            remote: Remote child, or None if only present locally.
            local: Local child, or None if only present remotely.

        Raises:
            ValueError: If neither side is given.
        """
        if remote is None and local is None:
            raise ValueError("process_child needs at least one of remote or local")

        if (remote is not None and self.is_ignored_remote(remote, self.remote_root)) or (
            local is not None and self.is_ignored_local(local, self.local_root)
        ):
            self.reporter.skipped()
            return

        if local is None:
            assert remote is not None
            if self._upward:
                self.queue.add(DeleteTask(self.context, remote=remote))
            else:
                self.queue.add(DownloadTask(self.context, self.local, self.remote_root, remote, False))
        elif remote is None:
            if self._upward:
                self.queue.add(UploadTask(self.context, self.remote, self.local_root, local, False))
            else:
                self.queue.add(DeleteTask(self.context, local=local))
        else:
            self.queue.add(CheckTask(self.context, self.remote_root, remote, self.local_root, local))

    def _transfer(self, replace: bool) -> None:
        if self._upward:
            task: Task = UploadTask(
                self.context, self.remote.parent(), self.local_root, self.local, replace
            )
        else:
            task = DownloadTask(
                self.context, self.local.parent, self.remote_root, self.remote, replace
            )
        self.queue.add(task)

    def __str__(self) -> str:
        kind = "folder" if self.remote.is_directory else "file"
        return f"Checking {kind} {self.remote.full_name}"
