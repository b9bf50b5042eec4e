"""Rotating error log file.

Warnings and errors (failed per-user cleanups, unreadable config, timers
that could not start) are easy to lose in console output. When enabled, a
rotating file handler keeps them on disk as well.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from backup_scheduler.config import SchedulerSettings


_error_file_handler: RotatingFileHandler | None = None


def setup_error_log_file(settings: "SchedulerSettings") -> RotatingFileHandler | None:
    """Attach a rotating error log handler to the root logger.

    Args:
        settings: Settings with the ``error_log_*`` options.

    Returns:
        The installed handler, or None if disabled or the file cannot be
        created. Calling it again replaces the previous handler.
    """
    global _error_file_handler

    if not settings.error_log_file_enabled:
        return None

    remove_error_log_file()

    log_file = Path(settings.error_log_file_path).expanduser().resolve()
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            filename=str(log_file),
            maxBytes=settings.error_log_max_bytes,
            backupCount=settings.error_log_backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        print(f"Warning: Cannot open error log file {log_file}: {e}", file=sys.stderr)
        return None

    handler.setLevel(getattr(logging, settings.error_log_level.upper(), logging.WARNING))
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logging.getLogger().addHandler(handler)
    _error_file_handler = handler

    logging.getLogger(__name__).info("Error log file enabled: %s", log_file)
    return handler


def remove_error_log_file() -> None:
    """Detach and close the handler installed by setup_error_log_file."""
    global _error_file_handler

    if _error_file_handler is None:
        return
    logging.getLogger().removeHandler(_error_file_handler)
    _error_file_handler.close()
    _error_file_handler = None
