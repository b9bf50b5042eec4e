"""StrEnum definitions for type-safe constants."""

from enum import StrEnum


class TaskType(StrEnum):
    """Recurring task types the scheduler knows how to run."""

    CLEAR_ALL_BACKUPS = "clearAllBackups"


# Registry key for the backup cleanup task. It doubles as the name of the
# persisted config section under ``scheduledTasks``.
CLEAR_ALL_BACKUPS_TASK = "clearAllBackups"
