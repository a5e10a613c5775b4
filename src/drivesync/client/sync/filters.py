"""Ignore patterns and size limits for synchronization.

This module provides:
- IgnorePatterns: Handles gitignore-style pattern matching
- SyncFilters: Applies ignore patterns and the size limit to local paths
  and remote nodes, relative to their sync roots
"""

from __future__ import annotations

import fnmatch
import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from drivesync.client.api import RemoteNode
    from drivesync.core.config import SyncConfig

logger = logging.getLogger(__name__)


class IgnorePatterns:
    """Handles ignore pattern matching for relative paths.

    Patterns are matched against the path relative to the sync root and
    against the bare name. A trailing "/" restricts a pattern to folders.
    """

    def __init__(self, patterns: list[str] | None = None) -> None:
        """Initialize with patterns.

        Args:
            patterns: List of gitignore-style patterns.
        """
        self._patterns: list[str] = []
        for pattern in patterns or []:
            self.add_pattern(pattern)

    @property
    def patterns(self) -> list[str]:
        return list(self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """Add an ignore pattern."""
        pattern = pattern.strip()
        if pattern and not pattern.startswith("#"):
            self._patterns.append(pattern)

    def load_from_file(self, path: Path) -> None:
        """Load patterns from an ignore file, one per line."""
        if path.exists():
            with open(path, encoding="utf-8") as f:
                for line in f:
                    self.add_pattern(line)

    def should_ignore(self, rel_path: str, is_directory: bool) -> bool:
        """Check if a relative path should be ignored.

        Args:
            rel_path: "/"-separated path relative to the sync root.
            is_directory: Whether the path is a folder.

        Returns:
            True if the path should be ignored.
        """
        rel_path = rel_path.strip("/")
        name = rel_path.rsplit("/", 1)[-1]

        for pattern in self._patterns:
            # Handle directory-only patterns (ending with /)
            if pattern.endswith("/"):
                if is_directory and (
                    fnmatch.fnmatch(rel_path, pattern[:-1]) or fnmatch.fnmatch(name, pattern[:-1])
                ):
                    return True
            # Handle ** patterns
            elif "**" in pattern:
                if fnmatch.fnmatch(rel_path, pattern):
                    return True
            # Standard pattern or filename match
            elif fnmatch.fnmatch(rel_path, pattern) or fnmatch.fnmatch(name, pattern):
                return True

        return False


class SyncFilters:
    """Ignore and size filtering for both sides of the sync."""

    def __init__(self, config: SyncConfig, patterns: IgnorePatterns | None = None) -> None:
        self._max_size = config.max_size_bytes
        self._max_size_kb = config.max_size_kb
        self._patterns = patterns or IgnorePatterns(config.ignored)

    def is_size_invalid_local(self, path: Path) -> bool:
        return self._is_size_invalid(str(path), path.stat().st_size)

    def is_size_invalid_remote(self, node: RemoteNode) -> bool:
        return self._is_size_invalid(node.full_name, node.size)

    def _is_size_invalid(self, name: str, size: int) -> bool:
        if self._max_size > 0 and size > self._max_size:
            logger.debug(
                "Skipping file %s - size is %dKB (bigger than maximum of %dKB)",
                name,
                size // 1024,
                self._max_size_kb,
            )
            return True
        return False

    def is_ignored_local(self, path: Path, root: Path) -> bool:
        """Check a local path against the ignore patterns.

        Symlinks are always ignored.
        """
        if path.is_symlink():
            logger.debug("Skipping symlink %s", path)
            return True

        try:
            rel_path = path.relative_to(root).as_posix()
        except ValueError:
            return False
        if rel_path == ".":
            return False

        ignored = self._patterns.should_ignore(rel_path, path.is_dir())
        if ignored:
            logger.debug("Skipping ignored local file %s", path)
        return ignored

    def is_ignored_remote(self, node: RemoteNode, root: RemoteNode) -> bool:
        """Check a remote node against the ignore patterns."""
        if not node.full_name.startswith(root.full_name):
            return False
        rel_path = node.full_name[len(root.full_name):]
        if not rel_path:
            return False

        ignored = self._patterns.should_ignore(rel_path, node.is_directory)
        if ignored:
            logger.debug("Skipping ignored remote file %s", node.full_name)
        return ignored
