"""HTTP routers package."""

from .scheduled_tasks_router import (
    ConfigResponse,
    MessageResponse,
    SaveConfigRequest,
    StatusResponse,
    create_scheduled_tasks_router,
)

__all__ = [
    "create_scheduled_tasks_router",
    "ConfigResponse",
    "MessageResponse",
    "SaveConfigRequest",
    "StatusResponse",
]
