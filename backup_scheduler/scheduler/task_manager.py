"""Scheduled task manager.

Wires the config store, the task registry and the cleanup runner together
and exposes the operations the admin endpoints need. The manager is an
explicitly owned object: the application creates one, calls ``startup()``
once the event loop is running and ``shutdown()`` before exiting.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from backup_scheduler.enums import CLEAR_ALL_BACKUPS_TASK, TaskType
from backup_scheduler.errors import (
    ConfigReadError,
    InvalidExpressionError,
    RunInProgressError,
    SchedulerError,
)
from backup_scheduler.models.domain import CleanupResult, TaskConfig, TaskStatus
from backup_scheduler.scheduler.cron import validate_cron_expression

if TYPE_CHECKING:
    from backup_scheduler.scheduler.config_store import ConfigStore
    from backup_scheduler.scheduler.task_registry import TaskRegistry
    from backup_scheduler.services.cleanup_runner import CleanupRunner

logger = logging.getLogger(__name__)


class ScheduledTaskManager:
    """Owns the backup cleanup task and its persisted configuration."""

    def __init__(
        self,
        config_store: "ConfigStore",
        registry: "TaskRegistry",
        runner: "CleanupRunner",
        *,
        single_flight: bool = True,
        task_name: str = CLEAR_ALL_BACKUPS_TASK,
    ) -> None:
        """Initialize the manager.

        Args:
            config_store: Store for the persisted task section.
            registry: Registry holding live task timers.
            runner: Cleanup routine shared by timer and manual triggers.
            single_flight: When True, a run requested while another is
                executing is skipped (timer) or rejected (manual). When
                False, runs may overlap and race on the same directories.
            task_name: Registry key and config section name.
        """
        self.config_store = config_store
        self.registry = registry
        self.runner = runner
        self.single_flight = single_flight
        self.task_name = task_name

        self._active_runs = 0
        self._runs: set[asyncio.Task] = set()
        self._last_result: CleanupResult | None = None

    @property
    def last_result(self) -> CleanupResult | None:
        return self._last_result

    @property
    def run_in_progress(self) -> bool:
        return self._active_runs > 0

    async def startup(self) -> None:
        """Load persisted config and arm the timer if the task is enabled.

        Never raises: a corrupt document or an expression that no longer
        validates is logged and the task stays stopped.
        """
        try:
            config = self.config_store.load()
        except ConfigReadError as e:
            logger.error("Failed to load scheduled task config, task not started: %s", e)
            return

        if config is None:
            logger.info("No scheduled task config found, task not started")
            return
        if not config.enabled:
            logger.info("Scheduled task '%s' is disabled", self.task_name)
            return

        try:
            self._start_timer(config.cron_expression)
        except SchedulerError as e:
            logger.error("Failed to start scheduled task from persisted config: %s", e)
            return
        logger.info("Loaded scheduled backup cleanup task: %s", config.cron_expression)

    def get_config(self) -> TaskConfig:
        try:
            config = self.config_store.load()
        except ConfigReadError as e:
            logger.error("Failed to read scheduled task config: %s", e)
            config = None
        return config or TaskConfig()

    def get_status(self, name: str | None = None) -> TaskStatus:
        return self.registry.status(name or self.task_name) or TaskStatus()

    def get_all_statuses(self) -> dict[str, TaskStatus]:
        return self.registry.status_all()

    def save_config(self, config: TaskConfig) -> None:
        """Validate, persist and apply a new task configuration.

        The order is fixed: a rejected expression never reaches the
        document, and a persisted change is always applied to the timer.

        Raises:
            InvalidExpressionError: Enabled without a valid expression.
            ConfigWriteError: The document could not be written.
            StartError: The timer could not be armed after saving.
        """
        if config.enabled:
            if not config.cron_expression or not config.cron_expression.strip():
                raise InvalidExpressionError(
                    config.cron_expression,
                    "A cron expression is required when enabling the scheduled task",
                )
            config = config.model_copy(
                update={"cron_expression": validate_cron_expression(config.cron_expression)}
            )

        self.config_store.save(config)

        if config.enabled:
            self._start_timer(config.cron_expression)
        else:
            self.registry.stop(self.task_name)

    def trigger_manually(self) -> None:
        """Start a cleanup run in the background and return immediately.

        Raises:
            RunInProgressError: Single-flight is on and a run is executing.
        """
        if self.single_flight and self.run_in_progress:
            raise RunInProgressError(self.task_name)
        logger.info("Manual backup cleanup requested")
        self._spawn_run(trigger="manual")

    def stop_all_now(self) -> None:
        """Stop every timer synchronously, for use from signal handlers."""
        logger.info("Stopping all scheduled tasks...")
        self.registry.stop_all()

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Stop all timers and wait for in-flight runs to finish."""
        self.stop_all_now()

        pending = [run for run in self._runs if not run.done()]
        if not pending:
            return

        logger.info("Waiting for %d in-flight cleanup run(s)...", len(pending))
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for run in still_running:
            logger.warning("Cleanup run did not finish in %.1fs, cancelling", timeout)
            run.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)

    def _start_timer(self, cron_expression: str) -> None:
        self.registry.start(
            self.task_name,
            cron_expression,
            self._on_timer_fire,
            task_type=TaskType.CLEAR_ALL_BACKUPS,
        )

    async def _on_timer_fire(self) -> None:
        if self.single_flight and self.run_in_progress:
            logger.warning(
                "Skipping scheduled run of '%s': previous run still in progress",
                self.task_name,
            )
            return
        # The timer already runs this coroutine as its own task
        self._track(asyncio.current_task())
        await self._execute(trigger="scheduled")

    def _spawn_run(self, trigger: str) -> asyncio.Task:
        run = asyncio.create_task(self._execute(trigger=trigger))
        # Tracked before the first await so a second trigger sees it
        self._track(run)
        return run

    def _track(self, run: asyncio.Task | None) -> None:
        if run is None:
            return
        self._active_runs += 1
        self._runs.add(run)
        run.add_done_callback(self._on_run_done)

    def _on_run_done(self, run: asyncio.Task) -> None:
        self._runs.discard(run)
        self._active_runs -= 1

    async def _execute(self, trigger: str) -> CleanupResult | None:
        """Run the cleanup, logging and absorbing every failure."""
        logger.info("[%s] Starting cleanup of all user backups", trigger)
        try:
            result = await self.runner.run_all()
        except Exception:
            logger.exception("[%s] Cleanup of all user backups failed", trigger)
            return None

        self._last_result = result
        return result
