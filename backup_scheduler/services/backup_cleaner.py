"""Per-user backup directory cleanup."""

from __future__ import annotations

import logging
import shutil

from backup_scheduler.errors import CleanError
from backup_scheduler.models.domain import UserCleanupSummary
from backup_scheduler.services.directory_sizer import directory_size
from backup_scheduler.users import UserDirectory

logger = logging.getLogger(__name__)


class BackupCleaner:
    """Empties a single user's backup directory.

    The directory itself survives: its contents are removed and an empty
    directory is recreated at the same path.
    """

    def __init__(self, user_directory: UserDirectory) -> None:
        self.user_directory = user_directory

    def clean(self, user_id: str) -> UserCleanupSummary:
        """Delete everything inside the user's backup directory.

        Args:
            user_id: The user whose backups should be removed.

        Returns:
            Bytes freed and files deleted. Both are zero when the user has
            no backup directory.

        Raises:
            CleanError: If resolving, measuring, removing or recreating the
                directory fails.
        """
        try:
            backups_dir = self.user_directory.get_user_backup_directory(user_id)
            if not backups_dir.exists():
                logger.debug("No backup directory for user %s at %s", user_id, backups_dir)
                return UserCleanupSummary(user_id=user_id)

            size = directory_size(backups_dir)
            shutil.rmtree(backups_dir)
            backups_dir.mkdir(parents=True, exist_ok=True)
        except Exception as e:
            raise CleanError(user_id, e) from e

        return UserCleanupSummary(
            user_id=user_id,
            bytes_freed=size.total_bytes,
            files_deleted=size.file_count,
        )
