"""Logging setup for feedsync.

Every component logs through a child of the ``feedsync`` logger (for example
``feedsync.feeds.fetcher`` or ``feedsync.cache.sqlite``), so a single call to
:func:`setup_logging` routes fetch retries, skipped items and cache failures
to the same place.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

from feedsync.config import get_data_path

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger("feedsync")

LOG_FILENAME = "feedsync.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Rotate the log file once it grows past this size
MAX_LOG_BYTES = 5 * 1024 * 1024


def _rotate(log_path: Path, max_bytes: int = MAX_LOG_BYTES) -> None:
    """Move an oversized log aside to ``<name>.old``, replacing any previous one."""
    if not log_path.exists() or log_path.stat().st_size <= max_bytes:
        return
    old_log = log_path.with_name(log_path.name + ".old")
    old_log.unlink(missing_ok=True)
    log_path.rename(old_log)


def setup_logging(
    *,
    level: int | str = logging.INFO,
    log_to_file: bool = True,
    log_to_console: bool = False,
    log_path: Path | None = None,
) -> None:
    """Configure the feedsync logger.

    Existing handlers are replaced, so calling this again reconfigures
    rather than duplicates output.

    Args:
        level: Logging level, as a number or a name such as ``"DEBUG"``.
        log_to_file: Whether to append to a log file.
        log_to_console: Whether to log to stderr.
        log_path: Log file location (default: ``feedsync.log`` in the data
            directory).
    """
    if isinstance(level, str):
        level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    logger.setLevel(level)

    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_to_file:
        path = log_path or get_data_path() / LOG_FILENAME
        path.parent.mkdir(parents=True, exist_ok=True)
        _rotate(path)

        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    """Return the component logger ``feedsync.<name>``."""
    return logging.getLogger(f"feedsync.{name}")
