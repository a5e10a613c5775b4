"""Aggregate outcome reporting for a sync run.

This module provides:
- TaskReporter: Thread-safe counters updated by tasks, and the final summary
"""

from __future__ import annotations

import logging
import threading
import time

from drivesync.client.sync.types import SyncReport
from drivesync.core.formatting import plural, readable_file_size, readable_time

logger = logging.getLogger(__name__)


class TaskReporter:
    """Counts what every task did.

    One instance is created per run and handed to every task through its
    context. All counters share a single lock rather than one lock each,
    so snapshot() always sees a consistent set of values.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._start_time = time.monotonic()

        self._same = 0
        self._skipped = 0
        self._local_deleted = 0
        self._remote_deleted = 0
        self._properties_updated = 0
        self._errors = 0

        self._new_uploaded = 0
        self._new_uploaded_size = 0
        self._replace_uploaded = 0
        self._replace_uploaded_size = 0

        self._new_downloaded = 0
        self._new_downloaded_size = 0
        self._replace_downloaded = 0
        self._replace_downloaded_size = 0

    def same(self) -> None:
        with self._lock:
            self._same += 1

    def skipped(self) -> None:
        with self._lock:
            self._skipped += 1

    def local_deleted(self) -> None:
        with self._lock:
            self._local_deleted += 1

    def remote_deleted(self) -> None:
        with self._lock:
            self._remote_deleted += 1

    def properties_updated(self) -> None:
        with self._lock:
            self._properties_updated += 1

    def error(self) -> None:
        with self._lock:
            self._errors += 1

    def file_uploaded(self, replace: bool, size: int) -> None:
        with self._lock:
            if replace:
                self._replace_uploaded += 1
                self._replace_uploaded_size += size
            else:
                self._new_uploaded += 1
                self._new_uploaded_size += size

    def file_downloaded(self, replace: bool, size: int) -> None:
        with self._lock:
            if replace:
                self._replace_downloaded += 1
                self._replace_downloaded_size += size
            else:
                self._new_downloaded += 1
                self._new_downloaded_size += size

    def snapshot(self) -> SyncReport:
        """Get a consistent copy of all counters."""
        with self._lock:
            return SyncReport(
                same=self._same,
                skipped=self._skipped,
                local_deleted=self._local_deleted,
                remote_deleted=self._remote_deleted,
                properties_updated=self._properties_updated,
                errors=self._errors,
                new_uploaded=self._new_uploaded,
                new_uploaded_size=self._new_uploaded_size,
                replace_uploaded=self._replace_uploaded,
                replace_uploaded_size=self._replace_uploaded_size,
                new_downloaded=self._new_downloaded,
                new_downloaded_size=self._new_downloaded_size,
                replace_downloaded=self._replace_downloaded,
                replace_downloaded_size=self._replace_downloaded_size,
                elapsed=time.monotonic() - self._start_time,
            )

    def summary_lines(self) -> list[tuple[int, str]]:
        """Build the summary as (log level, message) pairs."""
        r = self.snapshot()
        lines: list[tuple[int, str]] = []

        if r.errors > 0:
            lines.append((logging.ERROR, f"{r.errors} task{plural(r.errors)} failed - see log for details"))
        if r.same > 0:
            lines.append((logging.INFO, f"Skipped {r.same} unchanged file{plural(r.same)}"))
        if r.skipped > 0:
            lines.append((logging.INFO, f"Skipped {r.skipped} ignored/undownloadable file{plural(r.skipped)}"))
        if r.local_deleted > 0:
            lines.append((logging.INFO, f"Deleted {r.local_deleted} local file{plural(r.local_deleted)}"))
        if r.remote_deleted > 0:
            lines.append((logging.INFO, f"Deleted {r.remote_deleted} remote file{plural(r.remote_deleted)}"))
        if r.properties_updated > 0:
            lines.append((
                logging.INFO,
                f"Updated timestamps on {r.properties_updated} file{plural(r.properties_updated)}",
            ))
        if r.uploaded > 0:
            lines.append((logging.INFO, _transfer_line(
                "Uploaded",
                r.new_uploaded, r.new_uploaded_size,
                r.replace_uploaded, r.replace_uploaded_size,
            )))
        if r.downloaded > 0:
            lines.append((logging.INFO, _transfer_line(
                "Downloaded",
                r.new_downloaded, r.new_downloaded_size,
                r.replace_downloaded, r.replace_downloaded_size,
            )))

        lines.append((logging.INFO, f"Elapsed time: {readable_time(r.elapsed)}"))
        return lines

    def report(self) -> None:
        """Log the summary of the run. Never raises."""
        try:
            for level, message in self.summary_lines():
                logger.log(level, message)
        except Exception:
            logger.exception("Unable to produce sync report")


def _transfer_line(
    verb: str,
    new_count: int,
    new_size: int,
    replace_count: int,
    replace_size: int,
) -> str:
    total = new_count + replace_count
    parts = [
        f"{verb} {total} file{plural(total)} ({readable_file_size(new_size + replace_size)})"
    ]
    if new_count > 0:
        parts.append(f"{new_count} new file{plural(new_count)} ({readable_file_size(new_size)})")
    if replace_count > 0:
        parts.append(
            f"{replace_count} replaced file{plural(replace_count)} ({readable_file_size(replace_size)})"
        )
    if len(parts) == 1:
        return parts[0]
    return f"{parts[0]} - {', '.join(parts[1:])}"
