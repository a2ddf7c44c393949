"""
Service Identity Configuration.

Reads the unified service tagging variables shared with the Datadog agent:
``DD_SERVICE``, ``DD_VERSION`` and ``DD_ENV``.
"""

from typing import Optional, Sequence

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class ServiceSettings(BaseSettings):
    """
    Service identity settings.
    Prefix: DD_
    """

    model_config = SettingsConfigDict(
        env_prefix="DD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    service: Optional[str] = Field(default=None, description="Service name (DD_SERVICE)")
    version: Optional[str] = Field(default=None, description="Service version (DD_VERSION)")
    env: Optional[str] = Field(default=None, description="Deployment environment (DD_ENV)")

    @classmethod
    def from_environ(cls) -> "ServiceSettings":
        """Process environment only; no file is touched."""
        return cls(_env_file=None)

    @classmethod
    def from_env_files(cls, env_files: Sequence[str]) -> "ServiceSettings":
        """Values declared in ``env_files`` only, ignoring the process environment."""
        return _ServiceFileSettings(_env_file=tuple(env_files))


class _ServiceFileSettings(ServiceSettings):
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, dotenv_settings)
