"""In-memory registry of running cron tasks.

Each registered task owns a CronTimer: an asyncio task that sleeps until the
next cron fire time and then launches the task callback as a separate,
fire-and-forget asyncio task. The timer never waits for a run to finish
before scheduling the next tick.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Awaitable, Callable
from zoneinfo import ZoneInfo

from backup_scheduler.enums import TaskType
from backup_scheduler.errors import StartError
from backup_scheduler.models.domain import TaskStatus
from backup_scheduler.scheduler.cron import next_fire_time, validate_cron_expression

logger = logging.getLogger(__name__)

TaskCallback = Callable[[], Awaitable[None]]


class CronTimer:
    """Fires a callback on a cron schedule until stopped."""

    def __init__(
        self,
        name: str,
        cron_expression: str,
        callback: TaskCallback,
        tz: tzinfo,
    ) -> None:
        self.name = name
        self.cron_expression = cron_expression
        self.callback = callback
        self.tz = tz
        self.next_fire_at: datetime | None = None
        self._task: asyncio.Task | None = None
        # Strong references so fired runs are not garbage collected mid-flight
        self._runs: set[asyncio.Task] = set()

    def start(self) -> None:
        """Arm the timer on the running event loop.

        Raises:
            RuntimeError: If called outside a running event loop.
        """
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run_loop(), name=f"cron-timer:{self.name}")
        self._task.add_done_callback(self._on_timer_done)

    def stop(self) -> None:
        """Cancel the timer. Runs already fired keep going."""
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _on_timer_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Cron task '%s' timer died, no further runs will fire: %s",
                self.name,
                exc,
                exc_info=exc,
            )

    @property
    def is_alive(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run_loop(self) -> None:
        last_fire = datetime.now(self.tz)
        while True:
            now = datetime.now(self.tz)
            # Never schedule before the previous fire time, even if the
            # sleep woke up slightly early.
            self.next_fire_at = next_fire_time(self.cron_expression, max(now, last_fire))
            delay = (self.next_fire_at - now).total_seconds()
            await asyncio.sleep(max(0.0, delay))

            last_fire = self.next_fire_at
            self._fire()

    def _fire(self) -> None:
        logger.info("Cron task '%s' fired (%s)", self.name, self.cron_expression)
        try:
            run = asyncio.create_task(self.callback(), name=f"cron-run:{self.name}")
        except Exception:
            logger.exception("Cron task '%s' could not be launched", self.name)
            return
        self._runs.add(run)
        run.add_done_callback(self._on_run_done)

    def _on_run_done(self, run: asyncio.Task) -> None:
        self._runs.discard(run)
        if run.cancelled():
            return
        exc = run.exception()
        if exc is not None:
            logger.error("Cron task '%s' run failed: %s", self.name, exc, exc_info=exc)


@dataclass
class TaskHandle:
    """Live representation of a started recurring task."""

    name: str
    cron_expression: str
    timer: CronTimer
    type: TaskType = TaskType.CLEAR_ALL_BACKUPS
    enabled: bool = True

    def to_status(self) -> TaskStatus:
        return TaskStatus(
            enabled=self.enabled,
            cron_expression=self.cron_expression,
            type=self.type,
            running=self.timer.is_alive,
        )


class TaskRegistry:
    """Maps task names to their live handles.

    At most one handle exists per name. All methods must be called from the
    event loop thread.
    """

    def __init__(self, tz: tzinfo | None = None) -> None:
        self.tz = tz or ZoneInfo("UTC")
        self._tasks: dict[str, TaskHandle] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def start(
        self,
        name: str,
        cron_expression: str,
        callback: TaskCallback,
        *,
        task_type: TaskType = TaskType.CLEAR_ALL_BACKUPS,
    ) -> TaskHandle:
        """Start (or restart) a recurring task.

        Args:
            name: Registry key for the task.
            cron_expression: 5-field cron expression.
            callback: Coroutine function launched on every fire.
            task_type: Kind of task, reported in status.

        Returns:
            The new handle, once its timer is armed.

        Raises:
            InvalidExpressionError: If the expression is malformed. No
                handle is registered and any existing one is left running.
            StartError: If the timer could not be armed.
        """
        expression = validate_cron_expression(cron_expression)

        if name in self._tasks:
            self.stop(name)

        timer = CronTimer(name, expression, callback, self.tz)
        try:
            timer.start()
        except RuntimeError as e:
            raise StartError(f"Cannot start task '{name}': {e}") from e

        handle = TaskHandle(name=name, cron_expression=expression, timer=timer, type=task_type)
        self._tasks[name] = handle
        logger.info("Cron task '%s' started with expression '%s'", name, expression)
        return handle

    def stop(self, name: str) -> None:
        """Stop and remove a task. Unknown names are ignored."""
        handle = self._tasks.pop(name, None)
        if handle is None:
            return
        handle.timer.stop()
        logger.info("Cron task '%s' stopped", name)

    def stop_all(self) -> None:
        """Stop every task, continuing past individual failures."""
        for name in list(self._tasks):
            try:
                self.stop(name)
            except Exception:
                logger.exception("Failed to stop cron task '%s'", name)
                self._tasks.pop(name, None)

    def get(self, name: str) -> TaskHandle | None:
        return self._tasks.get(name)

    def status(self, name: str) -> TaskStatus | None:
        handle = self._tasks.get(name)
        return handle.to_status() if handle else None

    def status_all(self) -> dict[str, TaskStatus]:
        return {name: handle.to_status() for name, handle in self._tasks.items()}
