"""Cleanup run across every known user.

This is the routine bound to both the cron timer and the manual trigger
endpoint, so both paths share the same per-user failure isolation.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from backup_scheduler.errors import UserEnumerationError
from backup_scheduler.models.domain import CleanupResult, UserCleanupError
from backup_scheduler.services.backup_cleaner import BackupCleaner
from backup_scheduler.users import UserDirectory

logger = logging.getLogger(__name__)


def _to_mb(size_bytes: int) -> str:
    return f"{size_bytes / 1024 / 1024:.2f}"


class CleanupRunner:
    """Runs BackupCleaner for every user and aggregates the totals."""

    def __init__(
        self,
        user_directory: UserDirectory,
        cleaner: BackupCleaner | None = None,
    ) -> None:
        self.user_directory = user_directory
        self.cleaner = cleaner or BackupCleaner(user_directory)

    async def run_all(self) -> CleanupResult:
        """Clean the backup directory of every known user.

        Users are processed one at a time. Each per-user cleanup runs in a
        worker thread so the event loop stays responsive. A failure for one
        user is recorded in ``per_user_errors`` and the run moves on to the
        next user.

        Returns:
            Aggregate result of the run.

        Raises:
            UserEnumerationError: If the list of users cannot be obtained.
        """
        result = CleanupResult(started_at=datetime.now(UTC))

        try:
            user_ids = await asyncio.to_thread(self.user_directory.list_all_users)
        except Exception as e:
            raise UserEnumerationError(f"Failed to list users: {e}") from e

        logger.info("Starting backup cleanup for %d user(s)", len(user_ids))

        for user_id in user_ids:
            result.users_processed += 1
            try:
                summary = await asyncio.to_thread(self.cleaner.clean, user_id)
            except Exception as e:
                logger.error("Failed to clean backups for user %s: %s", user_id, e)
                result.per_user_errors.append(UserCleanupError(user=user_id, error=str(e)))
                continue

            result.total_bytes_freed += summary.bytes_freed
            result.total_files_deleted += summary.files_deleted
            logger.info(
                "Cleaned backups for user %s: %d files, %s MB",
                user_id,
                summary.files_deleted,
                _to_mb(summary.bytes_freed),
            )

        result.finished_at = datetime.now(UTC)
        logger.info(
            "Backup cleanup finished: %d user(s), %d files deleted, %s MB freed, %d failure(s)",
            result.users_processed,
            result.total_files_deleted,
            _to_mb(result.total_bytes_freed),
            len(result.per_user_errors),
        )
        return result
