"""
Logging scopes and trace correlation.

A scope is a bounded interval during which a set of fields is attached to
every log record. Open scopes are kept as an immutable tuple in a
``ContextVar``, so each thread and each asyncio task sees only the scopes
opened in its own execution context:

    correlator = ScopeCorrelator(TraceContextReader(), ServiceIdentityResolver())

    with correlator.begin_scope({"request_id": request_id}):
        log.info("request started")  # carries dd.trace_id, dd.span_id, ...

``merge_scopes`` is the structlog processor that copies the open scopes'
fields into each event, outermost scope first so inner scopes shadow outer
ones.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType, TracebackType
from typing import Any, Mapping, Optional

from structlog.typing import EventDict, WrappedLogger

from tracelog.exceptions import ScopeOwnershipError
from tracelog.identity import ServiceIdentity, ServiceIdentityResolver
from tracelog.tracing import TraceContextReader, TraceIdentity

DEFAULT_FIELD_PREFIX = "dd."

# Unprefixed names of the authoritative correlation fields, in output order.
RESERVED_FIELDS = ("trace_id", "span_id", "service", "version", "env")

_scopes: ContextVar[tuple["_ScopeFrame", ...]] = ContextVar("tracelog_scopes", default=())


class _ScopeFrame:
    __slots__ = ("fields",)

    def __init__(self, fields: Mapping[str, Any]) -> None:
        self.fields = MappingProxyType(dict(fields))


class ScopeState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class ScopeHandle:
    """Handle of an open scope; closing it detaches the scope's fields.

    Use it as a context manager so the scope closes on every exit path,
    including exceptions and task cancellation. ``close`` may be called more
    than once.
    """

    def __init__(self, fields: Mapping[str, Any]) -> None:
        self._frame = _ScopeFrame(fields)
        self.state = ScopeState.OPEN
        _scopes.set(_scopes.get() + (self._frame,))

    @property
    def fields(self) -> Mapping[str, Any]:
        return self._frame.fields

    @property
    def closed(self) -> bool:
        return self.state is ScopeState.CLOSED

    def close(self) -> None:
        """Detach the scope in the calling context.

        Raises:
            ScopeOwnershipError: if the scope is open but not on the calling
                context's stack, e.g. when closed from another thread. The
                handle stays open so the owner can still close it. A context
                copied from the owner (a child task) does hold the scope, and
                closing it there detaches it for that copy only.
        """
        if self.state is ScopeState.CLOSED:
            return
        stack = _scopes.get()
        if self._frame not in stack:
            raise ScopeOwnershipError()
        self.state = ScopeState.CLOSED
        if stack[-1] is self._frame:
            _scopes.set(stack[:-1])
        else:
            _scopes.set(tuple(frame for frame in stack if frame is not self._frame))

    def __enter__(self) -> "ScopeHandle":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()


def open_scope(fields: Optional[Mapping[str, Any]] = None, **extra: Any) -> ScopeHandle:
    """Open a plain scope (no trace correlation), e.g. a request-id scope."""
    return ScopeHandle({**(fields or {}), **extra})


def current_fields() -> dict[str, Any]:
    """Merged fields of every open scope, outermost first."""
    merged: dict[str, Any] = {}
    for frame in _scopes.get():
        merged.update(frame.fields)
    return merged


def scope_depth() -> int:
    return len(_scopes.get())


def merge_scopes(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Structlog processor attaching open scope fields to the event.

    Keywords passed to the log call itself take precedence over scope fields.
    """
    for key, value in current_fields().items():
        event_dict.setdefault(key, value)
    return event_dict


@dataclass(frozen=True)
class CorrelationRecord:
    """Trace identity, service identity and caller fields of one scope."""

    trace: TraceIdentity
    service: ServiceIdentity
    extra: Mapping[str, Any] = field(default_factory=dict)
    prefix: str = DEFAULT_FIELD_PREFIX

    @property
    def reserved_keys(self) -> tuple[str, ...]:
        return tuple(f"{self.prefix}{name}" for name in RESERVED_FIELDS)

    def as_fields(self) -> dict[str, Any]:
        """Ordered field mapping; reserved correlation fields always win."""
        fields: dict[str, Any] = dict(
            zip(
                self.reserved_keys,
                (
                    self.trace.trace_id,
                    self.trace.span_id,
                    self.service.service,
                    self.service.version,
                    self.service.environment,
                ),
            )
        )
        for key, value in self.extra.items():
            if key not in fields:
                fields[key] = value
        return fields


class ScopeCorrelator:
    """Opens scopes carrying the active trace and service identity."""

    def __init__(
        self,
        trace_reader: Optional[TraceContextReader] = None,
        identity_resolver: Optional[ServiceIdentityResolver] = None,
        *,
        field_prefix: str = DEFAULT_FIELD_PREFIX,
    ) -> None:
        self.trace_reader = trace_reader or TraceContextReader()
        self.identity_resolver = identity_resolver or ServiceIdentityResolver()
        self.field_prefix = field_prefix

    def correlation_record(self, extra_fields: Optional[Mapping[str, Any]] = None) -> CorrelationRecord:
        return CorrelationRecord(
            trace=self.trace_reader.read(),
            service=self.identity_resolver.resolve(),
            extra=dict(extra_fields or {}),
            prefix=self.field_prefix,
        )

    def begin_scope(self, extra_fields: Optional[Mapping[str, Any]] = None, **fields: Any) -> ScopeHandle:
        """Capture the current trace and open a correlation scope."""
        record = self.correlation_record({**(extra_fields or {}), **fields})
        return ScopeHandle(record.as_fields())
