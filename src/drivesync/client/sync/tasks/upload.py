"""Upload a local file or folder into a remote folder.

This module provides:
- UploadTask: Creates remote folders (fanning out one task per child) and
  uploads files, in one request or through a chunked upload session
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

import httpx

from drivesync.client.api import APIError, RemoteNode
from drivesync.client.sync.tasks.base import Task, TaskContext
from drivesync.client.sync.types import UploadError
from drivesync.core.formatting import readable_file_size, readable_time

logger = logging.getLogger(__name__)

TRANSFER_PRIORITY = 50


class UploadTask(Task):
    """Upload `local` into the remote folder `parent`."""

    priority = TRANSFER_PRIORITY

    def __init__(
        self,
        context: TaskContext,
        parent: RemoteNode,
        local_root: Path,
        local: Path,
        replace: bool,
    ) -> None:
        if not parent.is_directory:
            raise ValueError(f"Specified parent is not a folder: {parent.full_name}")
        super().__init__(context)
        self.parent = parent
        self.local_root = local_root
        self.local = local
        self.replace = replace

    def task_body(self) -> None:
        if self.is_ignored_local(self.local, self.local_root):
            self.reporter.skipped()
            return

        if self.filesystem.is_directory(self.local):
            self._upload_folder()
            return

        if self.is_size_invalid_local(self.local):
            self.reporter.skipped()
            return

        size = self.local.stat().st_size
        start = time.monotonic()

        if size > self.config.split_after_bytes:
            node = self._upload_in_chunks()
        elif self.replace or self.attempt > 1:
            # An earlier attempt may already have created the item
            node = self.api.replace_file(self.parent, self.local)
        else:
            node = self.api.upload_file(self.parent, self.local)

        self._verify(node)
        created, modified = self.filesystem.get_timestamps(self.local)
        self.api.update_properties(node, created, modified)

        elapsed = time.monotonic() - start
        logger.info(
            "Uploaded %s in %s (%s/s) to %s file %s",
            readable_file_size(size),
            readable_time(elapsed),
            readable_file_size(int(size / elapsed)) if elapsed > 0 else readable_file_size(size),
            "replace" if self.replace else "new",
            node.full_name,
        )
        self.reporter.file_uploaded(self.replace, size)

    def _upload_folder(self) -> None:
        try:
            folder = self.api.create_folder(self.parent, self.local.name)
        except APIError as e:
            if e.status_code != 409:
                raise
            folder = self.api.get_path(self.parent.child_full_name(self.local.name, True))

        for child in self.filesystem.list_directory(self.local):
            self.queue.add(UploadTask(self.context, folder, self.local_root, child, False))

    def _upload_in_chunks(self) -> RemoteNode:
        session = self.api.start_upload_session(self.parent, self.local)
        failures = 0

        while not session.is_complete:
            if failures >= self.config.tries:
                raise UploadError(
                    f"Gave up on multi-part upload of {self.local} after {failures} retries"
                )

            start = time.monotonic()
            try:
                self.api.upload_chunk(session)
            except (APIError, httpx.HTTPError, OSError) as e:
                failures += 1
                logger.warning(
                    "Encountered '%s' while uploading chunk for file %s (attempt %d)",
                    e, self.local, failures,
                )
                continue

            failures = 0
            logger.info(
                "Uploaded chunk (progress %.1f%%) of %s in %s for file %s",
                session.progress,
                readable_file_size(session.last_uploaded),
                readable_time(time.monotonic() - start),
                self.local,
            )

        assert session.item is not None
        return session.item

    def _verify(self, node: RemoteNode) -> None:
        if node.crc32 is not None:
            matches = self.filesystem.verify_crc(self.local, node.crc32)
        elif node.sha1 is not None:
            matches = self.filesystem.verify_sha1(self.local, node.sha1)
        else:
            logger.debug("No content hash returned for %s; not verified", node.full_name)
            return

        if not matches:
            raise UploadError(f"Upload of file '{self.local}' failed - content hash mismatch")

    def __str__(self) -> str:
        return f"Upload {self.parent.child_full_name(self.local.name, False)}"
