"""
Service identity (service / version / environment) resolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from tracelog.config.service import ServiceSettings

UNKNOWN_SERVICE = "unknown-service"
UNKNOWN_VERSION = "unknown-version"
UNKNOWN_ENV = "unknown-env"


@dataclass(frozen=True)
class ServiceIdentity:
    service: str = UNKNOWN_SERVICE
    version: str = UNKNOWN_VERSION
    environment: str = UNKNOWN_ENV


def _first_value(name: str, sources: Sequence[Optional[ServiceSettings]], placeholder: str) -> str:
    for source in sources:
        value = getattr(source, name, None) if source is not None else None
        if value is not None and value.strip():
            return value.strip()
    return placeholder


def _read_or_none(read: Callable[[], ServiceSettings]) -> Optional[ServiceSettings]:
    try:
        return read()
    except Exception:
        # Unreadable sources degrade to the placeholders.
        return None


class ServiceIdentityResolver:
    """Resolves ``ServiceIdentity`` from DD_SERVICE, DD_VERSION and DD_ENV.

    The process environment is re-read on every ``resolve`` call, so a unit of
    work always sees the current value. ``.env`` files are read once, at
    construction, and only fill in variables the environment leaves unset.
    Absent, empty or unreadable values fall back to the ``unknown-*``
    placeholders; ``resolve`` never raises.
    """

    def __init__(
        self,
        settings_factory: Callable[[], ServiceSettings] = ServiceSettings.from_environ,
        *,
        env_files: Sequence[str] = (".env",),
    ) -> None:
        self._settings_factory = settings_factory
        self._file_settings = _read_or_none(lambda: ServiceSettings.from_env_files(env_files)) if env_files else None

    def resolve(self) -> ServiceIdentity:
        sources = (_read_or_none(self._settings_factory), self._file_settings)
        return ServiceIdentity(
            service=_first_value("service", sources, UNKNOWN_SERVICE),
            version=_first_value("version", sources, UNKNOWN_VERSION),
            environment=_first_value("env", sources, UNKNOWN_ENV),
        )
