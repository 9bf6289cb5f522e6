"""Configuration management for the MTA server supervisor."""

import platform
import shlex
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Supervisor configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Shutdown timing
    server_stop_delay: float = Field(
        10,
        ge=0,
        description="Seconds to wait for a graceful stop before escalating",
    )
    time_unit: float = Field(
        1.0,
        gt=0,
        description="Polling, settle and kill interval in seconds",
    )

    # Filesystem layout
    base_dir: Path = Field(Path("."), description="Working area holding the server directory")
    shared_dir_name: str = Field("shared-databases", description="Persistence target directory name")
    channel_dir: Path = Field(Path("/tmp"), description="Directory holding the command FIFO")
    arch: Optional[str] = Field(None, description="Architecture override (defaults to uname -m)")

    # Server process
    server_args: str = Field("-t -n -u", description="Startup flags passed to the server")
    line_buffered: bool = Field(True, description="Run the server under stdbuf -oL when available")

    # Observability
    report_best_effort_failures: bool = Field(
        False,
        description="Log swallowed forward/send/copy failures at warning level",
    )
    log_level: str = Field("INFO")
    log_format: str = Field("console")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case and validate the log level name."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only json and console renderers are supported."""
        fmt = v.strip().lower()
        if fmt not in {"json", "console"}:
            raise ValueError(f"log_format must be 'json' or 'console', got: {v}")
        return fmt

    @property
    def machine(self) -> str:
        """Architecture used to select the server build."""
        return self.arch or platform.machine()

    @property
    def server_argv(self) -> List[str]:
        """Get server startup flags as a list."""
        return shlex.split(self.server_args)

    @property
    def shared_dir(self) -> Path:
        """Destination for persisted server state."""
        return self.base_dir / self.shared_dir_name
