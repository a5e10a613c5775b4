"""Logging setup for the drivesync CLI."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(threadName)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(log_file: Path | None = None, verbose: bool = False) -> logging.Logger:
    """Configure logging to output to stdout and optionally a file.

    Args:
        log_file: Optional path of a log file (appended to).
        verbose: Log at DEBUG instead of INFO.

    Returns:
        The configured "drivesync" logger.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    # Root logger for drivesync
    root_logger = logging.getLogger("drivesync")
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    # File handler
    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)

    return root_logger
