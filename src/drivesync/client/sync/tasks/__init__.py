"""Sync tasks: check, transfer, delete and property updates."""

from drivesync.client.sync.tasks.base import Task, TaskContext
from drivesync.client.sync.tasks.check import CheckTask
from drivesync.client.sync.tasks.delete import DeleteTask
from drivesync.client.sync.tasks.download import DownloadTask
from drivesync.client.sync.tasks.properties import UpdatePropertiesTask
from drivesync.client.sync.tasks.upload import UploadTask

__all__ = [
    "CheckTask",
    "DeleteTask",
    "DownloadTask",
    "Task",
    "TaskContext",
    "UpdatePropertiesTask",
    "UploadTask",
]
