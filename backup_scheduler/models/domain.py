"""Pydantic domain models shared by the scheduler, services and routers."""

from datetime import datetime
from typing import NamedTuple

from pydantic import Field

from backup_scheduler.enums import TaskType
from backup_scheduler.models.base import JsonModel


class TaskConfig(JsonModel):
    """Persisted configuration of the backup cleanup task.

    ``cron_expression`` may be empty only while the task is disabled.
    """

    enabled: bool = False
    cron_expression: str = ""


class TaskStatus(JsonModel):
    """Live status of a task, derived from its handle and timer.

    Fields other than ``enabled`` and ``running`` are None when no handle
    exists and are left out of the JSON body in that case.
    """

    enabled: bool = False
    cron_expression: str | None = None
    type: TaskType | None = None
    running: bool = False


class UserCleanupSummary(JsonModel):
    """Outcome of one successful per-user cleanup."""

    user_id: str
    bytes_freed: int = 0
    files_deleted: int = 0


class UserCleanupError(JsonModel):
    user: str
    error: str


class CleanupResult(JsonModel):
    """Aggregate outcome of one cleanup run across all users.

    ``users_processed`` counts every user that was attempted, including
    those recorded in ``per_user_errors``.
    """

    users_processed: int = 0
    total_files_deleted: int = 0
    total_bytes_freed: int = 0
    per_user_errors: list[UserCleanupError] = Field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return not self.per_user_errors


class DirectorySize(NamedTuple):
    total_bytes: int
    file_count: int
