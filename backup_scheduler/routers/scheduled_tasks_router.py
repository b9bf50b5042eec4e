"""Scheduled task admin endpoints.

Routers handle HTTP concerns only - no business logic.
All business logic is delegated to ScheduledTaskManager.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, status

from backup_scheduler.errors import (
    InvalidExpressionError,
    RunInProgressError,
    SchedulerError,
)
from backup_scheduler.models.base import JsonModel
from backup_scheduler.models.domain import TaskConfig, TaskStatus
from backup_scheduler.security.admin import require_admin

if TYPE_CHECKING:
    from backup_scheduler.scheduler.task_manager import ScheduledTaskManager

logger = logging.getLogger(__name__)


class SaveConfigRequest(JsonModel):
    """Request body for saving the task configuration."""

    enabled: bool = False
    cron_expression: str | None = None


class ConfigResponse(JsonModel):
    success: bool = True
    config: TaskConfig
    status: TaskStatus


class StatusResponse(JsonModel):
    success: bool = True
    tasks: dict[str, TaskStatus]


class MessageResponse(JsonModel):
    success: bool = True
    message: str


def create_scheduled_tasks_router(
    task_manager: "ScheduledTaskManager",
    *,
    admin_users: Iterable[str] | None = None,
) -> APIRouter:
    """Create the scheduled task router with an injected manager.

    Args:
        task_manager: Manager owning the backup cleanup task.
        admin_users: Users allowed to call these endpoints. Empty or None
            allows everyone.

    Returns:
        APIRouter with the scheduled task endpoints configured.
    """
    router = APIRouter(
        prefix="/api/scheduled-tasks",
        tags=["scheduled-tasks"],
        dependencies=[Depends(require_admin(admin_users))],
    )

    @router.get("/config", response_model=ConfigResponse, response_model_exclude_none=True)
    async def get_config() -> ConfigResponse:
        """Return the persisted configuration and the live task status."""
        return ConfigResponse(
            config=task_manager.get_config(),
            status=task_manager.get_status(),
        )

    @router.post("/config", response_model=MessageResponse)
    async def save_config(request: SaveConfigRequest) -> MessageResponse:
        """Validate, persist and apply a new configuration.

        Raises:
            HTTPException: 400 on a missing or invalid expression when
                enabling, 500 if saving or starting the task fails.
        """
        config = TaskConfig(
            enabled=request.enabled,
            cron_expression=(request.cron_expression or "").strip(),
        )
        try:
            task_manager.save_config(config)
        except InvalidExpressionError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except SchedulerError as e:
            logger.error("Save scheduled task config failed: %s", e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to save scheduled task config: {e}",
            )

        message = "Scheduled task enabled" if config.enabled else "Scheduled task disabled"
        return MessageResponse(message=message)

    @router.get("/status", response_model=StatusResponse, response_model_exclude_none=True)
    async def get_status() -> StatusResponse:
        """Return the status of every registered task."""
        return StatusResponse(tasks=task_manager.get_all_statuses())

    @router.post("/execute/clear-all-backups", response_model=MessageResponse)
    async def execute_clear_all_backups() -> MessageResponse:
        """Start a cleanup run in the background.

        The response only confirms the run started; its outcome is logged.

        Raises:
            HTTPException: 409 if a run is already in progress.
        """
        try:
            task_manager.trigger_manually()
        except RunInProgressError as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

        return MessageResponse(
            message="Cleanup task started, check the server logs for details",
        )

    return router
