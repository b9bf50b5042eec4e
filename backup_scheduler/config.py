"""Settings loaded from the shared YAML document and environment variables.

The scheduler shares ``config.yaml`` with the rest of the deployment. Its
own runtime settings live in the optional ``backupScheduler`` section of
that document; environment variables prefixed with ``BACKUP_SCHEDULER_``
override anything read from the file.
"""

import logging
import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

SETTINGS_SECTION = "backupScheduler"
ENV_PREFIX = "BACKUP_SCHEDULER_"


class SchedulerSettings(BaseSettings):
    """Runtime settings for the backup scheduler.

    Precedence: defaults < ``backupScheduler`` section of the YAML document
    < environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        extra="ignore",
    )

    # Shared document holding the persisted ``scheduledTasks`` section
    config_path: str = Field(default="config.yaml")

    # User data layout: <data_root>/<user>/<backups_dir_name>
    data_root: str = Field(default="./data")
    backups_dir_name: str = Field(default="backups")

    timezone: str = Field(
        default="UTC",
        description="Timezone cron expressions are evaluated in (e.g. 'Asia/Shanghai')",
    )
    single_flight: bool = Field(
        default=True,
        description="Reject or skip a run while another run of the same task is executing",
    )
    shutdown_timeout_seconds: float = Field(default=10.0)

    # Empty list allows every caller (dev default)
    admin_users: list[str] = Field(default_factory=list)

    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)

    log_level: str = Field(default="INFO")
    error_log_file_enabled: bool = Field(default=False)
    error_log_file_path: str = Field(default="./logs/errors.log")
    error_log_level: str = Field(default="WARNING")
    error_log_max_bytes: int = Field(default=10_485_760)
    error_log_backup_count: int = Field(default=5)

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def resolved_config_path(self) -> Path:
        return Path(self.config_path).expanduser().resolve()

    @property
    def resolved_data_root(self) -> Path:
        return Path(self.data_root).expanduser().resolve()

    @classmethod
    def from_yaml_file(cls, config_path: str | None = None) -> "SchedulerSettings":
        """Load settings from the shared YAML document with env var overrides.

        A missing file or section yields defaults. A corrupt document is
        logged and ignored so the service can still start; the scheduler
        itself reports the read failure when it loads its task section.

        Args:
            config_path: Path to the shared document. Falls back to
                ``BACKUP_SCHEDULER_CONFIG_PATH`` and then ``config.yaml``.

        Returns:
            Configured SchedulerSettings instance.
        """
        path = config_path or os.environ.get(f"{ENV_PREFIX}CONFIG_PATH") or "config.yaml"
        settings_data: dict = {}

        yaml_path = Path(path)
        if yaml_path.exists():
            try:
                with yaml_path.open("r", encoding="utf-8") as f:
                    document = yaml.safe_load(f) or {}
                section = document.get(SETTINGS_SECTION) if isinstance(document, dict) else None
                if isinstance(section, dict):
                    settings_data.update(section)
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Cannot read settings from %s: %s", yaml_path, e)

        # Let env vars win over values read from the file
        for key in list(settings_data):
            if f"{ENV_PREFIX}{key.upper()}" in os.environ:
                del settings_data[key]

        # The document we just read is the one the task section lives in
        settings_data["config_path"] = str(path)

        return cls(**settings_data)
