"""
tracelog Configuration Module.

Implements the Nested Settings Pattern for orthogonal configuration domains.
Each sub-module represents an independent concern with its own environment variable prefix.

Multi-Environment Support:
    Set `TL_ENV` to one of: development, testing, staging, production
    The system will load .env files in this order (later overrides earlier):
    1. .env
    2. .env.local
    3. .env.{environment}
    4. .env.{environment}.local

Usage:
    from tracelog.config import settings

    settings.logging.sinks             # "stdio,file"
    settings.correlation.field_prefix  # "dd."
    settings.tracing.trace_enabled     # pass-through flag for the tracer

Service identity (DD_SERVICE / DD_VERSION / DD_ENV) is not
cached here: ``tracelog.identity.ServiceIdentityResolver`` reads the environment
on every call and the ``.env`` chain once.
"""

from functools import cached_property

from pydantic_settings import BaseSettings, SettingsConfigDict

from .environment import EnvironmentSettings
from .logging import LoggingSettings
from .observability import CorrelationSettings, TracingSettings
from .service import ServiceSettings


class Settings(BaseSettings):
    """
    Composite settings aggregating all orthogonal configuration domains.

    ``TL_ENV`` is read first (from the process environment and ``.env``);
    every other domain then loads the full ``.env`` chain of that environment.
    """

    model_config = SettingsConfigDict(extra="ignore")

    @cached_property
    def environment(self) -> EnvironmentSettings:
        return EnvironmentSettings()

    @cached_property
    def env_files(self) -> tuple[str, ...]:
        return self.environment.env_files

    @cached_property
    def logging(self) -> LoggingSettings:
        return LoggingSettings(_env_file=self.env_files)

    @cached_property
    def tracing(self) -> TracingSettings:
        return TracingSettings(_env_file=self.env_files)

    @cached_property
    def correlation(self) -> CorrelationSettings:
        return CorrelationSettings(_env_file=self.env_files)


# Singleton instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    "CorrelationSettings",
    "EnvironmentSettings",
    "LoggingSettings",
    "ServiceSettings",
    "TracingSettings",
]
