"""Runtime settings for HiveCode."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class HiveSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    worker_count: int = Field(default=4, validation_alias="HIVECODE_WORKER_COUNT")
    tmux_path: str | None = Field(default=None, validation_alias="HIVECODE_TMUX_PATH")
    tmux_timeout: float = Field(default=10.0, validation_alias="HIVECODE_TMUX_TIMEOUT")
    agent_command: str = Field(
        default="claude --dangerously-skip-permissions",
        validation_alias="HIVECODE_AGENT_COMMAND",
    )
    log_dir: Path = Field(default=Path("/tmp"), validation_alias="HIVECODE_LOG_DIR")
    global_config_path: Path = Field(
        default=Path("~/.config/hivecode/config.json"),
        validation_alias="HIVECODE_GLOBAL_CONFIG",
    )
    theme: str | None = Field(default=None, validation_alias="HIVECODE_THEME")
    log_level: str = Field(default="WARNING", validation_alias="HIVECODE_LOG_LEVEL")
    status_poll_interval: float = Field(default=1.0, validation_alias="HIVECODE_STATUS_INTERVAL")
    log_poll_interval: float = Field(default=0.5, validation_alias="HIVECODE_LOG_INTERVAL")
    git_poll_interval: float = Field(default=5.0, validation_alias="HIVECODE_GIT_INTERVAL")
    log_tail_lines: int = Field(default=100, validation_alias="HIVECODE_LOG_TAIL_LINES")
    restart_poll_interval: float = Field(
        default=0.1, validation_alias="HIVECODE_RESTART_POLL_INTERVAL"
    )
    restart_timeout: float = Field(default=5.0, validation_alias="HIVECODE_RESTART_TIMEOUT")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "HIVECODE_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("theme", mode="before")
    @classmethod
    def _normalize_theme(cls, value):
        if value is None:
            return None
        normalized = str(value).strip().lower()
        # Anything other than an explicit mode falls through to config and detection.
        return normalized if normalized in {"light", "dark"} else None

    @field_validator("worker_count")
    @classmethod
    def _validate_worker_count(cls, value: int) -> int:
        if value < 1:
            raise ValueError("HIVECODE_WORKER_COUNT must be >= 1")
        return value

    @field_validator(
        "status_poll_interval",
        "log_poll_interval",
        "git_poll_interval",
        "restart_poll_interval",
        "restart_timeout",
        "tmux_timeout",
    )
    @classmethod
    def _validate_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Intervals and timeouts must be > 0")
        return value

    @property
    def slots(self) -> range:
        """Worker identities, fixed for the lifetime of the process."""

        return range(1, self.worker_count + 1)


@lru_cache(maxsize=1)
def get_settings() -> HiveSettings:
    """Return cached settings instance."""

    settings = HiveSettings()
    settings.log_dir = settings.log_dir.expanduser()
    settings.global_config_path = settings.global_config_path.expanduser()
    return settings


__all__ = ["HiveSettings", "get_settings"]
