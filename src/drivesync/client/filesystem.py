"""Local filesystem access for sync tasks.

This module provides:
- MatchResult: Outcome of comparing a local file with a remote file
- FileSystemProvider: Read-write access used by a normal run
- ReadOnlyFileSystem: Dry-run variant, mutations are no-ops

Local nodes are plain paths: size, type and timestamps are read from the
filesystem each time they are needed.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tempfile
import zlib
from datetime import datetime, timezone
from enum import Enum, auto
from pathlib import Path

logger = logging.getLogger(__name__)

HASH_BLOCK = 1024 * 1024


class MatchResult(Enum):
    """Result of comparing one local file to one remote file."""

    EXACT = auto()  # content and timestamps match
    CONTENT_ONLY = auto()  # content matches, timestamps differ
    MISMATCH = auto()  # content differs (or cannot be verified)


def _seconds(value: datetime) -> int:
    """Whole seconds since the epoch, rounded down."""
    return int(value.timestamp() // 1)


class FileSystemProvider:
    """Read-write access to the local tree."""

    def __init__(self, use_hash: bool = False) -> None:
        """Initialize the provider.

        Args:
            use_hash: Always compare content hashes in verify_match().
        """
        self._use_hash = use_hash

    # === Queries ===

    def is_directory(self, path: Path) -> bool:
        return path.is_dir()

    def list_directory(self, path: Path) -> list[Path]:
        """List the entries of a directory.

        Raises:
            OSError: If the directory cannot be read.
        """
        with os.scandir(path) as entries:
            return [Path(entry.path) for entry in entries]

    def get_timestamps(self, path: Path) -> tuple[datetime, datetime]:
        """Get (created, modified) as aware UTC datetimes.

        Where the platform has no creation time, the modification time is
        returned for both.
        """
        st = path.stat()
        modified = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
        birth = getattr(st, "st_birthtime", None)
        created = datetime.fromtimestamp(birth, tz=timezone.utc) if birth is not None else modified
        return created, modified

    def get_checksum(self, path: Path) -> int:
        """Compute the CRC32 checksum of a file."""
        crc = 0
        with open(path, "rb") as f:
            for block in iter(lambda: f.read(HASH_BLOCK), b""):
                crc = zlib.crc32(block, crc)
        return crc & 0xFFFFFFFF

    def get_sha1(self, path: Path) -> str:
        """Compute the upper-case hex SHA-1 of a file."""
        sha1 = hashlib.sha1()
        with open(path, "rb") as f:
            for block in iter(lambda: f.read(HASH_BLOCK), b""):
                sha1.update(block)
        return sha1.hexdigest().upper()

    def verify_crc(self, path: Path, crc: int) -> bool:
        return self.get_checksum(path) == crc

    def verify_sha1(self, path: Path, sha1: str) -> bool:
        return self.get_sha1(path) == sha1.upper()

    def verify_match(
        self,
        path: Path,
        crc32: int | None,
        sha1: str | None,
        size: int,
        created: datetime,
        modified: datetime,
    ) -> MatchResult:
        """Compare a local file with remote metadata.

        Only modification times are compared, at whole-second precision;
        creation times cannot be set by set_attributes(), so comparing them
        would never settle after a download. Unless hash
        comparison is forced, equal size and timestamps is a match without
        reading the content. Otherwise CRC32 is preferred over SHA-1; a
        remote file with neither never matches.
        """
        st = path.stat()

        size_matches = st.st_size == size
        timestamps_match = int(st.st_mtime // 1) == _seconds(modified)

        if not self._use_hash and size_matches and timestamps_match:
            return MatchResult.EXACT

        if crc32 is not None:
            hash_matches = self.get_checksum(path) == crc32
        elif sha1 is not None:
            hash_matches = self.get_sha1(path) == sha1.upper()
        else:
            hash_matches = False

        if not hash_matches:
            return MatchResult.MISMATCH
        if not timestamps_match:
            return MatchResult.CONTENT_ONLY
        return MatchResult.EXACT

    # === Mutations ===

    def delete(self, path: Path) -> None:
        """Delete a file, or a directory with everything below it."""
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()

    def create_folder(self, parent: Path, name: str) -> Path:
        """Create a directory called `name` inside `parent`."""
        folder = parent / name
        try:
            folder.mkdir(exist_ok=True)
        except OSError as e:
            raise OSError(f"Unable to create local directory '{name}' in '{parent}': {e}") from e
        return folder

    def create_file(self, parent: Path, name: str) -> Path:
        """Create an empty, uniquely named temp file for `name` in `parent`.

        The name never collides with an existing entry, so a transfer
        staged here cannot clobber a sibling such as `<name>.tmp`.
        """
        fd, tmp = tempfile.mkstemp(dir=parent, prefix=f".{name}.", suffix=".tmp")
        os.close(fd)
        return Path(tmp)

    def touch(self, path: Path) -> None:
        """Create (or truncate to) an empty file."""
        path.write_bytes(b"")

    def replace_file(self, original: Path, replacement: Path) -> None:
        """Atomically move `replacement` over `original`."""
        os.replace(replacement, original)

    def set_attributes(self, path: Path, created: datetime, modified: datetime) -> bool:
        """Apply remote timestamps to a local file.

        Only the modification time can be set portably; `created` is
        accepted for symmetry with the drive API.

        Returns:
            True if the file's timestamps changed.
        """
        target = modified.timestamp()
        if path.stat().st_mtime == target:
            return False
        os.utime(path, (target, target))
        return True


class ReadOnlyFileSystem(FileSystemProvider):
    """Filesystem for dry runs.

    Mutations are skipped. Folders that would have been created are
    remembered so transfers into them can still be planned, and every
    file pair is reported as matching.
    """

    def __init__(self, use_hash: bool = False) -> None:
        super().__init__(use_hash=use_hash)
        self._virtual_folders: set[Path] = set()

    def is_directory(self, path: Path) -> bool:
        return path in self._virtual_folders or super().is_directory(path)

    def list_directory(self, path: Path) -> list[Path]:
        if path in self._virtual_folders:
            return []
        return super().list_directory(path)

    def verify_crc(self, path: Path, crc: int) -> bool:
        return True

    def verify_sha1(self, path: Path, sha1: str) -> bool:
        return True

    def verify_match(
        self,
        path: Path,
        crc32: int | None,
        sha1: str | None,
        size: int,
        created: datetime,
        modified: datetime,
    ) -> MatchResult:
        return MatchResult.EXACT

    def delete(self, path: Path) -> None:
        logger.debug("Dry run: not deleting %s", path)

    def create_folder(self, parent: Path, name: str) -> Path:
        folder = parent / name
        self._virtual_folders.add(folder)
        return folder

    def create_file(self, parent: Path, name: str) -> Path:
        return parent / f".{name}.tmp"

    def touch(self, path: Path) -> None:
        pass

    def replace_file(self, original: Path, replacement: Path) -> None:
        pass

    def set_attributes(self, path: Path, created: datetime, modified: datetime) -> bool:
        return False
