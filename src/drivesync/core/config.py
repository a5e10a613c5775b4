"""Run configuration for drivesync.

This module defines the configuration consumed (read-only) by the sync
scheduler and its tasks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ConfigError(ValueError):
    """Invalid sync configuration."""


class SyncDirection(Enum):
    """Direction of a sync run, fixed for the whole run."""

    UP = "up"
    DOWN = "down"


@dataclass
class SyncConfig:
    """Configuration for one sync run.

    Attributes:
        direction: UP pushes local to remote, DOWN pulls remote to local.
        local_path: Local root directory.
        remote_path: Remote root folder (e.g. "/Documents").
        recursive: Whether to descend into sub-directories.
        max_size_kb: Skip files bigger than this (0 = unlimited).
        ignored: Ignore patterns (gitignore-style, see SyncFilters).
        tries: Maximum attempts per task (shared by chunk retries).
        threads: Number of worker threads.
        split_after: Upload files larger than this many MiB in chunks.
        use_hash: Always compare content hashes, even if metadata matches.
        dry_run: Make no changes on either side.
    """

    direction: SyncDirection
    local_path: Path
    remote_path: str
    recursive: bool = False
    max_size_kb: int = 0
    ignored: list[str] = field(default_factory=list)
    tries: int = 3
    threads: int = 5
    split_after: int = 5
    use_hash: bool = False
    dry_run: bool = False

    def __post_init__(self) -> None:
        """Normalize and validate values."""
        if isinstance(self.direction, str):
            try:
                self.direction = SyncDirection(self.direction.lower())
            except ValueError as e:
                raise ConfigError(f"Unknown direction: {self.direction}") from e
        self.local_path = Path(self.local_path)
        if not self.remote_path.startswith("/"):
            self.remote_path = "/" + self.remote_path

        if self.tries < 1:
            raise ConfigError("tries must be at least 1")
        if self.threads < 1:
            raise ConfigError("threads must be at least 1")
        if self.split_after < 1:
            raise ConfigError("split_after must be at least 1 MiB")
        if self.max_size_kb < 0:
            raise ConfigError("max_size_kb cannot be negative")

    @property
    def max_size_bytes(self) -> int:
        """Size limit in bytes (0 = unlimited)."""
        return self.max_size_kb * 1024

    @property
    def split_after_bytes(self) -> int:
        """Chunked upload threshold in bytes."""
        return self.split_after * 1024 * 1024
