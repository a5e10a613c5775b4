"""Download a remote file or folder into a local directory.

This module provides:
- DownloadTask: Creates local folders (fanning out one task per child) and
  downloads files through a temp file that is verified, stamped with the
  remote timestamps and renamed into place
"""

from __future__ import annotations

import contextlib
import logging
import time
from pathlib import Path

from drivesync.client.api import RemoteNode
from drivesync.client.sync.tasks.base import Task, TaskContext
from drivesync.client.sync.types import DownloadError
from drivesync.core.formatting import readable_file_size, readable_time

logger = logging.getLogger(__name__)

TRANSFER_PRIORITY = 50


class DownloadTask(Task):
    """Download `remote` into the local directory `parent`."""

    priority = TRANSFER_PRIORITY

    def __init__(
        self,
        context: TaskContext,
        parent: Path,
        remote_root: RemoteNode,
        remote: RemoteNode,
        replace: bool,
    ) -> None:
        if not context.filesystem.is_directory(parent):
            raise ValueError(f"Specified parent is not a folder: {parent}")
        super().__init__(context)
        self.parent = parent
        self.remote_root = remote_root
        self.remote = remote
        self.replace = replace

    def task_body(self) -> None:
        if self.is_ignored_remote(self.remote, self.remote_root):
            self.reporter.skipped()
            return

        if self.remote.is_directory:
            folder = self.filesystem.create_folder(self.parent, self.remote.name)
            for child in self.api.get_children(self.remote):
                self.queue.add(DownloadTask(self.context, folder, self.remote_root, child, False))
            return

        if self.is_size_invalid_remote(self.remote):
            self.reporter.skipped()
            return

        if self.remote.size > 0 and not self.remote.has_hashes:
            logger.warning(
                "Skipping undownloadable file %s - no content hash published",
                self.remote.full_name,
            )
            self.reporter.skipped()
            return

        start = time.monotonic()
        target = self.parent / self.remote.name
        tmp = self.filesystem.create_file(self.parent, self.remote.name)

        try:
            if self.remote.size == 0:
                self.filesystem.touch(tmp)
            else:
                self.api.download(self.remote, tmp)
                self._verify(tmp)
            self.filesystem.set_attributes(tmp, self.remote.created, self.remote.modified)
            self.filesystem.replace_file(target, tmp)
        except Exception:
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            raise

        elapsed = time.monotonic() - start
        size = self.remote.size
        logger.info(
            "Downloaded %s in %s (%s/s) to %s file %s",
            readable_file_size(size),
            readable_time(elapsed),
            readable_file_size(int(size / elapsed)) if elapsed > 0 else readable_file_size(size),
            "replace" if self.replace else "new",
            target,
        )
        self.reporter.file_downloaded(self.replace, size)

    def _verify(self, tmp: Path) -> None:
        if self.remote.crc32 is not None:
            matches = self.filesystem.verify_crc(tmp, self.remote.crc32)
        elif self.remote.sha1 is not None:
            matches = self.filesystem.verify_sha1(tmp, self.remote.sha1)
        else:
            matches = False

        if not matches:
            raise DownloadError(
                f"Download of file '{self.remote.full_name}' failed - content hash mismatch"
            )

    def __str__(self) -> str:
        return f"Download {self.remote.full_name}"
