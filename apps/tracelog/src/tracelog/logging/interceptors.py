"""
Interceptors for capturing standard library and third-party logs.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .levels import Level

if TYPE_CHECKING:
    from .core import LoggerFactory

# Third-party roots that ship their own handlers; stripped so records
# propagate to the root handler and through the sink chain.
THIRD_PARTY_ROOTS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "opentelemetry",
    "google.cloud.logging",
)


class RedirectStdLibHandler(logging.Handler):
    """
    Redirect standard library logging events to the pipeline.

    The stdlib logger name is kept as the namespace so filter rules apply to
    third-party loggers, and records emitted inside an open scope carry its
    correlation fields like any structlog call.
    """

    def __init__(self, factory: "LoggerFactory", level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._factory = factory

    def emit(self, record: logging.LogRecord) -> None:
        try:
            # Records structlog itself emits would loop back through the chain.
            if record.name.startswith("structlog"):
                return
            fields = {}
            if record.exc_info:
                fields["exc_info"] = record.exc_info
            logger = self._factory.get_logger(record.name or "stdlib")
            logger.log(int(Level.from_number(record.levelno)), record.getMessage(), **fields)
        except Exception:
            self.handleError(record)


def intercept_stdlib(factory: "LoggerFactory", level: int = logging.DEBUG) -> RedirectStdLibHandler:
    """Replace root logger handlers with a ``RedirectStdLibHandler``."""
    handler = RedirectStdLibHandler(factory)
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(int(level))
    return handler


def intercept_third_party_loggers() -> None:
    """Strip handlers from known third-party roots and their existing children."""
    for logger_name in THIRD_PARTY_ROOTS:
        lg = logging.getLogger(logger_name)
        lg.handlers = []
        lg.propagate = True

    # Child loggers created before configuration keep their own handlers.
    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.PlaceHolder):
            continue
        if any(name.startswith(root + ".") for root in THIRD_PARTY_ROOTS):
            logger.handlers = []
            logger.propagate = True
