"""Exception hierarchy for the backup scheduler.

Validation errors are raised synchronously to callers. Errors raised while
a cleanup run executes are logged and absorbed by the trigger wrappers.
"""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for all scheduler errors."""

    pass


class InvalidExpressionError(SchedulerError):
    """Raised when a cron expression is missing or malformed."""

    def __init__(self, expression: str | None, message: str | None = None) -> None:
        self.expression = expression
        super().__init__(message or f"Invalid cron expression: {expression!r}")


class StartError(SchedulerError):
    """Raised when a task timer could not be armed."""

    pass


class ConfigReadError(SchedulerError):
    """Raised when the configuration document cannot be read or parsed."""

    pass


class ConfigWriteError(SchedulerError):
    """Raised when the configuration document cannot be written."""

    pass


class CleanError(SchedulerError):
    """Raised when cleaning a single user's backup directory fails."""

    def __init__(self, user_id: str, cause: BaseException) -> None:
        self.user_id = user_id
        self.cause = cause
        super().__init__(f"Failed to clean backups for user {user_id}: {cause}")


class UserEnumerationError(SchedulerError):
    """Raised when the list of users cannot be obtained."""

    pass


class RunInProgressError(SchedulerError):
    """Raised when a run is requested while another one is still executing."""

    def __init__(self, task_name: str) -> None:
        self.task_name = task_name
        super().__init__(f"A run of task '{task_name}' is already in progress")
