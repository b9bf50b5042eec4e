"""Logging setup helpers."""

from backup_scheduler.observability.error_log_file import (
    remove_error_log_file,
    setup_error_log_file,
)

__all__ = ["remove_error_log_file", "setup_error_log_file"]
