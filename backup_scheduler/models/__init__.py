"""Domain models."""

from backup_scheduler.models.base import JsonModel
from backup_scheduler.models.domain import (
    CleanupResult,
    DirectorySize,
    TaskConfig,
    TaskStatus,
    UserCleanupError,
    UserCleanupSummary,
)

__all__ = [
    "CleanupResult",
    "DirectorySize",
    "JsonModel",
    "TaskConfig",
    "TaskStatus",
    "UserCleanupError",
    "UserCleanupSummary",
]
