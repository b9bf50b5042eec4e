"""User directory lookup.

The cleanup services only need two things from the user directory: the list
of known users and the location of each user's backup folder. Deployments
with their own user store can pass any object satisfying ``UserDirectory``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class UserDirectory(Protocol):
    def list_all_users(self) -> list[str]: ...

    def get_user_backup_directory(self, user_id: str) -> Path: ...


def validate_user_id_for_path(user_id: str) -> str:
    """Validate a user id before it is used as a path segment.

    Raises:
        ValueError: If the id is empty or could escape the data root.
    """
    u = (user_id or "").strip()
    if not u:
        raise ValueError("user_id is required")
    if "/" in u or "\\" in u:
        raise ValueError("user_id must not contain path separators")
    if u in (".", "..") or ".." in u:
        raise ValueError("user_id must not contain traversal segments")
    return u


class FilesystemUserDirectory:
    """Users are the sub-directories of a shared data root.

    Layout::

        <data_root>/<user_id>/<backups_dir_name>/
    """

    def __init__(self, data_root: str | Path, backups_dir_name: str = "backups") -> None:
        self.data_root = Path(data_root)
        self.backups_dir_name = backups_dir_name

    def list_all_users(self) -> list[str]:
        """Return user ids in sorted order; hidden directories are skipped."""
        if not self.data_root.is_dir():
            logger.warning("Data root %s does not exist, no users found", self.data_root)
            return []
        return sorted(
            entry.name
            for entry in self.data_root.iterdir()
            if entry.is_dir() and not entry.name.startswith(".")
        )

    def get_user_backup_directory(self, user_id: str) -> Path:
        u = validate_user_id_for_path(user_id)
        return self.data_root / u / self.backups_dir_name
