"""Persistence of the scheduler's section of the shared YAML document.

Only ``scheduledTasks.clearAllBackups`` is owned here. Everything else in
the document is read and written back unchanged, in its original key order.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from backup_scheduler.enums import CLEAR_ALL_BACKUPS_TASK
from backup_scheduler.errors import ConfigReadError, ConfigWriteError
from backup_scheduler.models.domain import TaskConfig
from backup_scheduler.scheduler.cron import validate_cron_expression

logger = logging.getLogger(__name__)

TASKS_SECTION = "scheduledTasks"


class ConfigStore:
    """Reads and writes the persisted task configuration."""

    def __init__(self, config_path: str | Path, task_name: str = CLEAR_ALL_BACKUPS_TASK) -> None:
        self.config_path = Path(config_path)
        self.task_name = task_name

    def read_document(self) -> dict[str, Any]:
        """Load the whole configuration document.

        Returns:
            The parsed mapping, or an empty dict if the file does not exist.

        Raises:
            ConfigReadError: If the file cannot be read, is not valid YAML,
                or its root is not a mapping.
        """
        if not self.config_path.exists():
            return {}

        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                document = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigReadError(f"Cannot read {self.config_path}: {e}") from e

        if document is None:
            return {}
        if not isinstance(document, dict):
            raise ConfigReadError(
                f"Malformed config document {self.config_path}: expected a mapping at the root"
            )
        return document

    def load(self) -> TaskConfig | None:
        """Load the task section.

        Returns:
            The persisted TaskConfig, or None when the document or section
            does not exist (the task was never configured).

        Raises:
            ConfigReadError: If the document or the section is malformed.
        """
        document = self.read_document()

        tasks = document.get(TASKS_SECTION)
        if tasks is None:
            return None
        if not isinstance(tasks, dict):
            raise ConfigReadError(f"Malformed '{TASKS_SECTION}' section in {self.config_path}")

        section = tasks.get(self.task_name)
        if section is None:
            return None
        if not isinstance(section, dict):
            raise ConfigReadError(
                f"Malformed '{TASKS_SECTION}.{self.task_name}' section in {self.config_path}"
            )

        enabled = section.get("enabled", False)
        if not isinstance(enabled, bool):
            raise ConfigReadError(
                f"Invalid 'enabled' value {enabled!r} in {self.config_path}: expected true or false"
            )

        try:
            return TaskConfig(
                enabled=enabled,
                cron_expression=str(section.get("cronExpression") or ""),
            )
        except ValidationError as e:
            raise ConfigReadError(f"Invalid task config in {self.config_path}: {e}") from e

    def save(self, config: TaskConfig) -> None:
        """Replace the task section and write the document back atomically.

        An enabled config is validated first so the document never holds an
        enabled task with an unparsable expression.

        Raises:
            InvalidExpressionError: If ``config`` is enabled with a bad
                expression. Nothing is written.
            ConfigWriteError: If the existing document is unreadable or the
                new one cannot be written.
        """
        if config.enabled:
            validate_cron_expression(config.cron_expression)

        try:
            document = self.read_document()
        except ConfigReadError as e:
            # Refuse to overwrite a document we could not parse
            raise ConfigWriteError(str(e)) from e

        tasks = document.get(TASKS_SECTION)
        if not isinstance(tasks, dict):
            tasks = {}
            document[TASKS_SECTION] = tasks

        tasks[self.task_name] = {
            "enabled": bool(config.enabled),
            "cronExpression": config.cron_expression or "",
        }

        self._write_atomic(document)
        logger.info("Scheduled task config saved to %s", self.config_path)

    def _write_atomic(self, document: dict[str, Any]) -> None:
        directory = self.config_path.parent
        tmp_path: str | None = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.config_path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(
                    document,
                    f,
                    sort_keys=False,
                    default_flow_style=False,
                    allow_unicode=True,
                )
                f.flush()
                os.fsync(f.fileno())
            if self.config_path.exists():
                os.chmod(tmp_path, self.config_path.stat().st_mode & 0o777)
            os.replace(tmp_path, self.config_path)
            tmp_path = None
        except (OSError, yaml.YAMLError) as e:
            raise ConfigWriteError(f"Cannot write {self.config_path}: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
