"""Cron scheduling for the backup cleanup task.

This package provides the TaskRegistry holding live cron timers, the
ConfigStore persisting the task section of the shared YAML document, and
the ScheduledTaskManager tying both to the cleanup runner.
"""

from backup_scheduler.scheduler.config_store import ConfigStore
from backup_scheduler.scheduler.cron import validate_cron_expression
from backup_scheduler.scheduler.task_manager import ScheduledTaskManager
from backup_scheduler.scheduler.task_registry import CronTimer, TaskHandle, TaskRegistry

__all__ = [
    "ConfigStore",
    "CronTimer",
    "ScheduledTaskManager",
    "TaskHandle",
    "TaskRegistry",
    "validate_cron_expression",
]
