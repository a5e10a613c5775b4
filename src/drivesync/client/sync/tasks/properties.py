"""Copy timestamps between a local file and its remote twin."""

from __future__ import annotations

import logging
from pathlib import Path

from drivesync.client.api import RemoteNode
from drivesync.client.sync.tasks.base import Task, TaskContext
from drivesync.core.config import SyncDirection

logger = logging.getLogger(__name__)

PROPERTIES_PRIORITY = 50


class UpdatePropertiesTask(Task):
    """Make the timestamps of the non-authoritative side match.

    Used when content already matches but the timestamps differ.
    """

    priority = PROPERTIES_PRIORITY

    def __init__(self, context: TaskContext, remote: RemoteNode, local: Path) -> None:
        super().__init__(context)
        self.remote = remote
        self.local = local

    def task_body(self) -> None:
        if self.config.direction is SyncDirection.UP:
            created, modified = self.filesystem.get_timestamps(self.local)
            self.api.update_properties(self.remote, created, modified)
        else:
            self.filesystem.set_attributes(self.local, self.remote.created, self.remote.modified)

        self.reporter.properties_updated()
        logger.info("Updated timestamps of %s", self.remote.full_name)

    def __str__(self) -> str:
        return f"Update properties {self.remote.full_name}"
