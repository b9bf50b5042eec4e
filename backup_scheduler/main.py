"""Application entry point and bootstrap.

This module wires the scheduler components, builds the FastAPI app and
provides the command line entry point.
"""

import asyncio
import logging
import signal
import sys
from typing import Any

from fastapi import FastAPI

from backup_scheduler import __version__
from backup_scheduler.config import SchedulerSettings
from backup_scheduler.observability.error_log_file import (
    remove_error_log_file,
    setup_error_log_file,
)
from backup_scheduler.routers import create_scheduled_tasks_router
from backup_scheduler.scheduler.config_store import ConfigStore
from backup_scheduler.scheduler.task_manager import ScheduledTaskManager
from backup_scheduler.scheduler.task_registry import TaskRegistry
from backup_scheduler.services.backup_cleaner import BackupCleaner
from backup_scheduler.services.cleanup_runner import CleanupRunner
from backup_scheduler.users import FilesystemUserDirectory, UserDirectory

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


class Application:
    """Main application container.

    Owns the scheduler components and their lifecycle. Nothing here is a
    module-level singleton: tests and the ASGI entry point each build their
    own Application.
    """

    def __init__(
        self,
        settings: SchedulerSettings,
        user_directory: UserDirectory | None = None,
    ) -> None:
        """Initialize the application with settings.

        Args:
            settings: Runtime settings.
            user_directory: User lookup to clean. Defaults to the
                filesystem layout under ``settings.data_root``.
        """
        self.settings = settings
        self.user_directory = user_directory

        self.config_store: ConfigStore | None = None
        self.registry: TaskRegistry | None = None
        self.runner: CleanupRunner | None = None
        self.task_manager: ScheduledTaskManager | None = None
        self.fastapi_app: FastAPI | None = None

    def setup(self) -> None:
        """Create and wire all components."""
        logger.info("Setting up application components...")

        logging.getLogger().setLevel(
            getattr(logging, self.settings.log_level.upper(), logging.INFO)
        )
        setup_error_log_file(self.settings)

        if self.user_directory is None:
            self.user_directory = FilesystemUserDirectory(
                self.settings.resolved_data_root,
                backups_dir_name=self.settings.backups_dir_name,
            )

        self.config_store = ConfigStore(self.settings.resolved_config_path)
        self.registry = TaskRegistry(self.settings.tzinfo)
        self.runner = CleanupRunner(
            self.user_directory,
            BackupCleaner(self.user_directory),
        )
        self.task_manager = ScheduledTaskManager(
            self.config_store,
            self.registry,
            self.runner,
            single_flight=self.settings.single_flight,
        )
        logger.info(
            "Scheduler initialized (config=%s, data_root=%s, timezone=%s)",
            self.settings.resolved_config_path,
            self.settings.resolved_data_root,
            self.settings.timezone,
        )

    def create_fastapi_app(self, fastapi_app: FastAPI | None = None) -> FastAPI:
        """Register routes on a FastAPI app, creating one if needed."""
        if self.task_manager is None:
            raise RuntimeError("Application not set up")

        if fastapi_app is None:
            fastapi_app = FastAPI(
                title="Backup Scheduler",
                description="Scheduled cleanup of per-user backup directories",
                version=__version__,
            )
        self.fastapi_app = fastapi_app
        install_routes(fastapi_app, self)
        return fastapi_app

    async def start_background_services(self) -> None:
        """Arm the cleanup timer from persisted config."""
        if self.task_manager:
            await self.task_manager.startup()
            logger.info("Scheduled task manager started")

    async def shutdown(self) -> None:
        """Stop timers, wait for running cleanups and release log handlers."""
        logger.info("Initiating graceful shutdown...")
        if self.task_manager:
            await self.task_manager.shutdown(timeout=self.settings.shutdown_timeout_seconds)
            logger.info("Scheduled tasks stopped")
        remove_error_log_file()
        logger.info("Graceful shutdown complete")

    def setup_signal_handlers(self, server: Any) -> None:
        """Stop all timers on SIGINT/SIGTERM before asking uvicorn to exit.

        Args:
            server: The uvicorn Server, flagged with ``should_exit``.
        """
        loop = asyncio.get_running_loop()

        def signal_handler(sig: signal.Signals) -> None:
            logger.info("Received signal %s, stopping all scheduled tasks...", sig.name)
            if self.task_manager:
                self.task_manager.stop_all_now()
            server.should_exit = True

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

        logger.info("Signal handlers registered")


def install_routes(fastapi_app: FastAPI, application: Application) -> None:
    """Attach the scheduler router and the health check."""
    fastapi_app.include_router(
        create_scheduled_tasks_router(
            application.task_manager,
            admin_users=application.settings.admin_users,
        )
    )

    @fastapi_app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}


async def run_once(settings: SchedulerSettings) -> int:
    """Execute a single cleanup run and print its result.

    Returns:
        Process exit code: 0 when every user was cleaned, 1 otherwise.
    """
    app = Application(settings)
    app.setup()
    try:
        result = await app.runner.run_all()
    except Exception as e:
        logger.exception("Cleanup run failed: %s", e)
        return 1
    finally:
        remove_error_log_file()

    print(result.model_dump_json(indent=2))
    return 0 if result.succeeded else 1


async def main(config_path: str | None = None) -> None:
    """Run the API server and the scheduler until a shutdown signal.

    Args:
        config_path: Shared YAML document; overrides the default lookup.
    """
    import uvicorn

    logger.info("Starting Backup Scheduler...")
    app: Application | None = None

    try:
        settings = SchedulerSettings.from_yaml_file(config_path)
        logger.info("Configuration loaded")

        app = Application(settings)
        app.setup()
        app.create_fastapi_app()
        await app.start_background_services()

        uvicorn_config = uvicorn.Config(
            app.fastapi_app,
            host=settings.api_host,
            port=settings.api_port,
            log_level="info",
        )
        server = uvicorn.Server(uvicorn_config)

        # uvicorn re-raises captured signals after serve() into these handlers
        app.setup_signal_handlers(server)

        logger.info(
            "Application running. API available at http://%s:%d",
            settings.api_host,
            settings.api_port,
        )
        await server.serve()
        app.task_manager.stop_all_now()

    except Exception as e:
        logger.exception("Application error: %s", e)
        raise
    finally:
        if app:
            await app.shutdown()


def cli(argv: list[str] | None = None) -> int:
    """Command line entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Run the backup scheduler")
    parser.add_argument("--config", help="Path to the shared config.yaml document")
    parser.add_argument(
        "--run-once",
        action="store_true",
        help="Clean every user's backups once and exit",
    )
    args = parser.parse_args(argv)

    if args.run_once:
        return asyncio.run(run_once(SchedulerSettings.from_yaml_file(args.config)))
    asyncio.run(main(args.config))
    return 0


if __name__ == "__main__":
    sys.exit(cli())
