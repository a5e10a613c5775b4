"""Delete one item on one side of the sync."""

from __future__ import annotations

import logging
from pathlib import Path

from drivesync.client.api import RemoteNode
from drivesync.client.sync.tasks.base import Task, TaskContext

logger = logging.getLogger(__name__)

DELETE_PRIORITY = 100


class DeleteTask(Task):
    """Delete a remote node or a local path (with everything below it).

    Exactly one of `remote` and `local` must be given.
    """

    priority = DELETE_PRIORITY

    def __init__(
        self,
        context: TaskContext,
        *,
        remote: RemoteNode | None = None,
        local: Path | None = None,
    ) -> None:
        if (remote is None) == (local is None):
            raise ValueError("DeleteTask needs exactly one of remote or local")
        super().__init__(context)
        self.remote = remote
        self.local = local

    def task_body(self) -> None:
        if self.remote is not None:
            self.api.delete(self.remote)
            self.reporter.remote_deleted()
            logger.info("Deleted remote %s", self.remote.full_name)
        else:
            assert self.local is not None
            self.filesystem.delete(self.local)
            self.reporter.local_deleted()
            logger.info("Deleted local %s", self.local)

    def __str__(self) -> str:
        if self.remote is not None:
            return f"Delete remote {self.remote.full_name}"
        return f"Delete local {self.local}"
