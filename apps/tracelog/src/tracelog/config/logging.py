"""
Logging Configuration.
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    CONSOLE = "console"
    JSON = "json"


RollingIntervalName = Literal["infinite", "year", "month", "day", "hour", "minute"]

_LEVEL_ALIASES = {"INFORMATION": "INFO", "WARN": "WARNING", "FATAL": "CRITICAL", "TRACE": "DEBUG"}


class LoggingSettings(BaseSettings):
    """Sink chain and filter policy configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TL_LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    level: LogLevel = Field(default=LogLevel.INFO, description="Chain-wide default minimum level")
    sinks: str = Field(default="stdio", description="Comma-separated sink names (stdio, file, gcloud)")
    format: LogFormat = Field(default=LogFormat.CONSOLE, description="Output format of the stdio sink")
    profile: Literal["default", "production"] = Field(default="default", description="Filter profile")
    suppress_provider_rules: str = Field(
        default="gcloud",
        description="Comma-separated sinks whose implicit library filter rule is removed",
    )

    stdio_level: Optional[LogLevel] = Field(default=None, description="Minimum level of the stdio sink")
    file_level: Optional[LogLevel] = Field(default=None, description="Minimum level of the file sink")
    gcloud_level: Optional[LogLevel] = Field(default=None, description="Minimum level of the gcloud sink")

    file_path: str = Field(default="logs/tracelog-{date}.log", description="Path template for file sink")
    rolling_interval: RollingIntervalName = Field(default="day", description="File roll period")
    retained_file_count: Optional[int] = Field(default=31, ge=1, description="Rolled files to keep")

    gcloud_project: Optional[str] = Field(default=None, description="GCP project ID for gcloud sink")
    gcloud_log_name: str = Field(default="tracelog", description="Log name for gcloud sink")

    console_timestamp_format: str = Field(default="%Y-%m-%d %H:%M:%S", description="Console timestamp format")
    console_level_width: int = Field(default=8, description="Console level column width")
    console_logger_width: int = Field(default=32, description="Console logger column width")
    console_separator: str = Field(default=" | ", description="Console column separator")

    @field_validator("level", "stdio_level", "file_level", "gcloud_level", mode="before")
    @classmethod
    def _normalize_level(cls, value: object) -> object:
        if value is None or value == "":
            return None
        if isinstance(value, str):
            upper = value.strip().upper()
            return _LEVEL_ALIASES.get(upper, upper)
        return value

    @property
    def sink_names(self) -> list[str]:
        return [name.strip().lower() for name in self.sinks.split(",") if name.strip()]

    @property
    def suppressed_providers(self) -> list[str]:
        return [name.strip().lower() for name in self.suppress_provider_rules.split(",") if name.strip()]
