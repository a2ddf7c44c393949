"""
tracelog exception hierarchy.

Only structurally invalid setup is an error. Missing configuration, the
absence of an active trace and double-closed scopes all degrade to defaults.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TraceLogError(Exception):
    """Root of all tracelog errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class InvalidArgumentError(TraceLogError, ValueError):
    """A required constructor dependency is missing or malformed."""

    def __init__(self, argument: str, reason: str = "must not be None") -> None:
        super().__init__(
            f"Argument '{argument}' {reason}",
            code="INVALID_ARGUMENT",
            details={"argument": argument},
        )
        self.argument = argument


class SinkConfigurationError(TraceLogError, ValueError):
    """A sink descriptor or sink name cannot be turned into a sink."""

    def __init__(self, message: str, *, sink: Optional[str] = None) -> None:
        super().__init__(message, code="SINK_CONFIGURATION", details={"sink": sink})


class SinkUnavailableError(TraceLogError):
    """Raised by a sink whose backend failed to initialise."""

    def __init__(self, sink: str, reason: str) -> None:
        super().__init__(
            f"Sink '{sink}' is unavailable: {reason}",
            code="SINK_UNAVAILABLE",
            details={"sink": sink, "reason": reason},
        )


class ScopeOwnershipError(TraceLogError, RuntimeError):
    """A scope was closed from an execution context that does not hold it."""

    def __init__(self) -> None:
        super().__init__(
            "Scope is not open in the calling context; close it where it was opened",
            code="SCOPE_OWNERSHIP",
        )
