"""ASGI entry point for uvicorn.

Usage:
    uvicorn backup_scheduler.asgi:app --host 0.0.0.0 --port 8000

Uvicorn's own SIGINT/SIGTERM handling triggers the lifespan shutdown,
which stops every timer before the process exits.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from backup_scheduler import __version__
from backup_scheduler.config import SchedulerSettings
from backup_scheduler.main import Application


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan for the ASGI server."""
    application = Application(SchedulerSettings.from_yaml_file())
    application.setup()
    application.create_fastapi_app(fastapi_app)
    fastapi_app.state.application = application

    await application.start_background_services()

    yield

    await application.shutdown()


app = FastAPI(
    title="Backup Scheduler",
    description="Scheduled cleanup of per-user backup directories",
    version=__version__,
    lifespan=lifespan,
)
