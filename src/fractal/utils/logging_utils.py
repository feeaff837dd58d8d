"""Logging utilities.

``configure_logging`` wires the stdlib root logger for CLI runs. An optional
log file rotates by size so long-lived watch sessions do not grow a single
file without bound.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
DEFAULT_MAX_LOG_BYTES = 1_000_000
DEFAULT_LOG_BACKUPS = 3


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    max_size: int = DEFAULT_MAX_LOG_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUPS,
) -> None:
    """Configure the root logger for command-line use.

    Args:
        level: Root log level.
        log_file: Optional file that receives a copy of every record.
        max_size: Size in bytes at which log_file rolls over.
        backup_count: Rolled-over files kept as ``log_file.1`` .. ``log_file.N``.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(log_file, maxBytes=max_size, backupCount=backup_count, encoding="utf-8")
        )
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


__all__ = ["configure_logging", "LOG_FORMAT"]
