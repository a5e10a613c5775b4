"""Human-readable sizes and durations for log lines."""

from __future__ import annotations

import math

_SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def readable_file_size(size: float) -> str:
    """Format a byte count, e.g. 1536 -> '1.5 KB'."""
    size = int(size)
    if size <= 0:
        return "0"
    group = min(int(math.log10(size) / math.log10(1024)), len(_SIZE_UNITS) - 1)
    value = size / math.pow(1024, group)
    text = f"{value:,.1f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[group]}"


def readable_time(seconds: float) -> str:
    """Format a duration given in seconds.

    Under a second as milliseconds, under a minute with one decimal,
    otherwise as HH:MM:SS.
    """
    ms = int(seconds * 1000)
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60000:
        return f"{ms / 1000:.1f}s"
    total = ms // 1000
    h = (total // 3600) % 24
    m = (total // 60) % 60
    s = total % 60
    return f"{h:02d}:{m:02d}:{s:02d}"


def plural(count: int) -> str:
    return "" if count == 1 else "s"
