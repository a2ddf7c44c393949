"""
Severity levels shared by filters, sinks and loggers.
"""

from __future__ import annotations

import logging
from enum import IntEnum


class Level(IntEnum):
    """Ordered log severity, numerically aligned with stdlib logging."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def parse(cls, value: "Level | int | str") -> "Level":
        """Parse a level from a name, alias or stdlib number.

        Unknown numeric levels snap down to the nearest known level so that
        custom stdlib levels (e.g. 5 or 25) stay usable.
        """
        if isinstance(value, Level):
            return value
        if isinstance(value, int):
            return cls.from_number(value)
        name = str(value).strip().upper()
        name = _ALIASES.get(name, name)
        try:
            return cls[name]
        except KeyError:
            raise ValueError(f"Unknown log level: {value!r}") from None

    @classmethod
    def from_number(cls, levelno: int) -> "Level":
        if levelno <= cls.DEBUG:
            return cls.DEBUG
        for level in reversed(cls):
            if levelno >= level:
                return level
        return cls.DEBUG

    @property
    def method_name(self) -> str:
        return self.name.lower()


_ALIASES = {
    "TRACE": "DEBUG",
    "INFORMATION": "INFO",
    "WARN": "WARNING",
    "EXCEPTION": "ERROR",
    "FATAL": "CRITICAL",
}
