"""
Log sink abstractions and concrete implementations.

Sinks are the leaves of the ``SinkChain``: console (stdio), rolling file and
cloud telemetry export (Google Cloud Logging). Each sink is built from an
immutable ``SinkDescriptor`` and carries its own minimum level.
"""

from __future__ import annotations

import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Literal, Optional

import orjson
from structlog.typing import EventDict

from tracelog.exceptions import SinkConfigurationError, SinkUnavailableError

from .formatters import ConsoleFormatter
from .levels import Level

if TYPE_CHECKING:
    from google.cloud.logging import Client as GCloudLoggingClient

LogFormat = Literal["console", "json"]


def orjson_dumps(v: Any) -> str:
    """Fast JSON serialization using orjson."""
    return orjson.dumps(v, default=str, option=orjson.OPT_UTC_Z | orjson.OPT_NAIVE_UTC).decode()


class SinkKind(str, Enum):
    CONSOLE = "console"
    ROLLING_FILE = "rolling-file"
    CLOUD_EXPORT = "cloud-export"


class RollingInterval(str, Enum):
    """How often the file sink starts a new file."""

    INFINITE = "infinite"
    YEAR = "year"
    MONTH = "month"
    DAY = "day"
    HOUR = "hour"
    MINUTE = "minute"

    @property
    def stamp_format(self) -> str:
        return _STAMP_FORMATS[self]


_STAMP_FORMATS = {
    RollingInterval.INFINITE: "",
    RollingInterval.YEAR: "%Y",
    RollingInterval.MONTH: "%Y%m",
    RollingInterval.DAY: "%Y%m%d",
    RollingInterval.HOUR: "%Y%m%d%H",
    RollingInterval.MINUTE: "%Y%m%d%H%M",
}

# Kinds whose wire format is structured unless a descriptor says otherwise.
_STRUCTURED_BY_DEFAULT = {
    SinkKind.CONSOLE: False,
    SinkKind.ROLLING_FILE: True,
    SinkKind.CLOUD_EXPORT: True,
}


@dataclass(frozen=True)
class SinkDescriptor:
    """Startup configuration of a single sink."""

    kind: SinkKind
    name: Optional[str] = None
    minimum_level: Level = Level.DEBUG
    structured: Optional[bool] = None
    format: LogFormat = "console"
    path_template: str = "logs/tracelog-{date}.log"
    rolling_interval: RollingInterval = RollingInterval.DAY
    retained_file_count: Optional[int] = 31
    project_id: Optional[str] = None
    log_name: str = "tracelog"

    @property
    def sink_name(self) -> str:
        return self.name or _DEFAULT_NAMES[self.kind]

    @property
    def supports_structured_fields(self) -> bool:
        if self.structured is not None:
            return self.structured
        if self.kind is SinkKind.CONSOLE:
            return self.format == "json"
        return _STRUCTURED_BY_DEFAULT[self.kind]


_DEFAULT_NAMES = {
    SinkKind.CONSOLE: "stdio",
    SinkKind.ROLLING_FILE: "file",
    SinkKind.CLOUD_EXPORT: "gcloud",
}


# =============================================================================
# Sink Abstraction (Strategy Pattern)
# =============================================================================


class BaseSink(ABC):
    """Abstract base class for log sinks."""

    def __init__(
        self,
        *,
        name: str,
        minimum_level: Level | int | str = Level.DEBUG,
        structured: bool = True,
    ) -> None:
        self.name = name
        self.minimum_level = Level.parse(minimum_level)
        self.structured = structured

    def accepts(self, level: Level) -> bool:
        return level >= self.minimum_level

    def render(self, event_dict: EventDict) -> str:
        """Render an event as one line, flattening fields for text sinks."""
        if self.structured:
            return orjson_dumps(event_dict)
        return ConsoleFormatter.format(event_dict, use_color=False)

    @abstractmethod
    def emit(self, event_dict: EventDict) -> None:
        """Emit a log event to the sink."""
        ...

    def close(self) -> None:
        """Close the sink and release resources."""


class StdioSink(BaseSink):
    """Standard I/O sink with configurable format.

    Args:
        fmt: Output format - "console" (colored human-readable) or "json"
        stream: Output stream (default: stdout)
    """

    def __init__(
        self,
        fmt: LogFormat = "console",
        stream: Any = None,
        *,
        name: str = "stdio",
        minimum_level: Level | int | str = Level.DEBUG,
        structured: Optional[bool] = None,
    ) -> None:
        super().__init__(
            name=name,
            minimum_level=minimum_level,
            structured=fmt == "json" if structured is None else structured,
        )
        self._stream = stream or sys.stdout
        self._lock = threading.Lock()

    def emit(self, event_dict: EventDict) -> None:
        if self.structured:
            output = orjson_dumps(event_dict)
        else:
            use_color = bool(getattr(self._stream, "isatty", lambda: False)())
            output = ConsoleFormatter.format(event_dict, use_color=use_color)

        with self._lock:
            self._stream.write(output + "\n")
            self._stream.flush()


class FileSink(BaseSink):
    """Local file sink that rolls to a new file every ``interval``.

    ``{date}`` in the path template is replaced by the period stamp; without
    the placeholder the stamp is appended to the file stem
    (``logs/app.log`` -> ``logs/app20240101.log``). Once more than
    ``retained_file_count`` files exist, the oldest are deleted.
    """

    DATE_PLACEHOLDER = "{date}"

    def __init__(
        self,
        path_template: str | Path,
        *,
        interval: RollingInterval = RollingInterval.DAY,
        retained_file_count: Optional[int] = 31,
        name: str = "file",
        minimum_level: Level | int | str = Level.DEBUG,
        structured: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        super().__init__(name=name, minimum_level=minimum_level, structured=structured)
        if retained_file_count is not None and retained_file_count < 1:
            raise SinkConfigurationError("retained_file_count must be at least 1", sink=name)
        self._template = str(path_template)
        self._interval = RollingInterval(interval)
        self._retained = retained_file_count
        self._clock = clock
        self._lock = threading.Lock()
        self._period: Optional[str] = None
        self._file: Any = None
        self.path: Optional[Path] = None

    def path_for(self, moment: datetime) -> Path:
        stamp = moment.strftime(self._interval.stamp_format) if self._interval.stamp_format else ""
        if self.DATE_PLACEHOLDER in self._template:
            return Path(self._template.replace(self.DATE_PLACEHOLDER, stamp))
        path = Path(self._template)
        return path.with_name(f"{path.stem}{stamp}{path.suffix}")

    def _glob_pattern(self) -> Path:
        if self.DATE_PLACEHOLDER in self._template:
            return Path(self._template.replace(self.DATE_PLACEHOLDER, "*"))
        path = Path(self._template)
        return path.with_name(f"{path.stem}*{path.suffix}")

    def emit(self, event_dict: EventDict) -> None:
        line = self.render(event_dict)
        with self._lock:
            self._roll_if_due()
            self._file.write(line + "\n")
            self._file.flush()

    def _roll_if_due(self) -> None:
        moment = self._clock()
        period = moment.strftime(self._interval.stamp_format) if self._interval.stamp_format else ""
        if self._file is not None and period == self._period:
            return
        if self._file is not None:
            self._file.close()
        self.path = self.path_for(moment)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "a", encoding="utf-8")
        self._period = period
        self._prune()

    def _prune(self) -> None:
        if self._retained is None:
            return
        pattern = self._glob_pattern()
        existing = sorted(p for p in pattern.parent.glob(pattern.name) if p.is_file())
        for stale in existing[: max(0, len(existing) - self._retained)]:
            if stale != self.path:
                stale.unlink(missing_ok=True)

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None


class GCloudSink(BaseSink):
    """Google Cloud Logging sink for production."""

    _SEVERITY = {
        "DEBUG": "DEBUG",
        "INFO": "INFO",
        "WARNING": "WARNING",
        "ERROR": "ERROR",
        "CRITICAL": "CRITICAL",
    }

    def __init__(
        self,
        project_id: str | None = None,
        log_name: str = "tracelog",
        *,
        client: Optional["GCloudLoggingClient"] = None,
        name: str = "gcloud",
        minimum_level: Level | int | str = Level.DEBUG,
    ) -> None:
        super().__init__(name=name, minimum_level=minimum_level, structured=True)
        self.unavailable_reason: Optional[str] = None
        try:
            if client is None:
                from google.cloud import logging as gcloud_logging

                client = gcloud_logging.Client(project=project_id)
            self._client: Optional[GCloudLoggingClient] = client
            self._logger = client.logger(log_name)
        except Exception as exc:
            self._client = None
            self._logger = None
            self.unavailable_reason = f"{type(exc).__name__}: {exc}"

    @property
    def available(self) -> bool:
        return self._logger is not None

    def emit(self, event_dict: EventDict) -> None:
        if self._logger is None:
            raise SinkUnavailableError(self.name, self.unavailable_reason or "client not initialised")
        severity = self._SEVERITY.get(str(event_dict.get("level", "INFO")).upper(), "DEFAULT")
        self._logger.log_struct(orjson.loads(orjson_dumps(event_dict)), severity=severity)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()


def build_sink(descriptor: SinkDescriptor, *, stream: Any = None) -> BaseSink:
    """Instantiate the sink a descriptor describes."""
    name = descriptor.sink_name
    if descriptor.kind is SinkKind.CONSOLE:
        return StdioSink(
            fmt=descriptor.format,
            stream=stream,
            name=name,
            minimum_level=descriptor.minimum_level,
            structured=descriptor.supports_structured_fields,
        )
    if descriptor.kind is SinkKind.ROLLING_FILE:
        return FileSink(
            descriptor.path_template,
            interval=descriptor.rolling_interval,
            retained_file_count=descriptor.retained_file_count,
            name=name,
            minimum_level=descriptor.minimum_level,
            structured=descriptor.supports_structured_fields,
        )
    if descriptor.kind is SinkKind.CLOUD_EXPORT:
        return GCloudSink(
            project_id=descriptor.project_id,
            log_name=descriptor.log_name,
            name=name,
            minimum_level=descriptor.minimum_level,
        )
    raise SinkConfigurationError(f"Unknown sink kind: {descriptor.kind!r}", sink=descriptor.name)
