"""Filesystem services used by the cleanup task."""

from backup_scheduler.services.backup_cleaner import BackupCleaner
from backup_scheduler.services.cleanup_runner import CleanupRunner
from backup_scheduler.services.directory_sizer import directory_size

__all__ = ["BackupCleaner", "CleanupRunner", "directory_size"]
