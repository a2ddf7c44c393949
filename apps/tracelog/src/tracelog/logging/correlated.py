"""
Unit-of-work logging entry point.

``CorrelatedLogger`` is what calling code (an HTTP handler, a queue consumer)
holds on to: leveled logging calls plus correlation scopes.

Usage:
    log = CorrelatedLogger(pipeline.factory, name="orders.http")

    with log.unit_of_work(request_id=request_id):
        log.info("HTTP trigger started. Method: {method}, URL: {url}", method=method, url=url)
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

from tracelog.exceptions import InvalidArgumentError

from .core import LoggerFactory, bind_positional_args
from .levels import Level
from .scope import ScopeCorrelator, ScopeHandle


class CorrelatedLogger:
    """Leveled logger whose scopes carry trace and service identity.

    Raises:
        InvalidArgumentError: if ``logger_factory`` is None.
    """

    def __init__(
        self,
        logger_factory: Optional[LoggerFactory],
        correlator: Optional[ScopeCorrelator] = None,
        *,
        name: str = "tracelog",
    ) -> None:
        if logger_factory is None:
            raise InvalidArgumentError("logger_factory")
        if not name:
            raise InvalidArgumentError("name", "must be a non-empty string")
        self.name = name
        self._factory = logger_factory
        self._correlator = correlator or logger_factory.correlator
        self._logger = logger_factory.get_logger(name)

    def begin_scope(self, extra_fields: Optional[Mapping[str, Any]] = None, **fields: Any) -> ScopeHandle:
        return self._correlator.begin_scope(extra_fields, **fields)

    @contextmanager
    def unit_of_work(self, **extra_fields: Any) -> Iterator["CorrelatedLogger"]:
        """Run a block inside a correlation scope that always closes."""
        with self.begin_scope(extra_fields):
            yield self

    def is_enabled(self, level: Level | int | str) -> bool:
        return self._factory.is_enabled(self.name, level)

    def _emit(self, method: str, template: str, args: tuple[Any, ...], fields: dict[str, Any]) -> None:
        args, fields = bind_positional_args(template, args, fields)
        getattr(self._logger, method)(template, *args, **fields)

    def log(self, level: Level | int | str, template: str, *args: Any, **fields: Any) -> None:
        args, fields = bind_positional_args(template, args, fields)
        self._logger.log(int(Level.parse(level)), template, *args, **fields)

    def debug(self, template: str, *args: Any, **fields: Any) -> None:
        self._emit("debug", template, args, fields)

    def info(self, template: str, *args: Any, **fields: Any) -> None:
        self._emit("info", template, args, fields)

    def warning(self, template: str, *args: Any, **fields: Any) -> None:
        self._emit("warning", template, args, fields)

    warn = warning

    def error(self, template: str, *args: Any, **fields: Any) -> None:
        self._emit("error", template, args, fields)

    def critical(self, template: str, *args: Any, **fields: Any) -> None:
        self._emit("critical", template, args, fields)

    def exception(self, template: str, *args: Any, **fields: Any) -> None:
        self._emit("exception", template, args, fields)
