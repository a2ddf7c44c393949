"""
Active trace identity lookup.

The tracer itself is an external collaborator: this module only asks a
``SpanSource`` for the ids of the span that is current in the calling
execution context, and renders them as strings for log correlation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, NamedTuple, Optional, Protocol, runtime_checkable

from opentelemetry import trace

IdFormat = Literal["hex", "datadog"]

DEFAULT_FALLBACK_ID = "0"

_LOWER_64_BITS = (1 << 64) - 1


class SpanIds(NamedTuple):
    trace_id: int
    span_id: int


@runtime_checkable
class SpanSource(Protocol):
    """Capability exposed by a tracer: ids of the current span, if any."""

    def current_span(self) -> Optional[SpanIds]: ...


class OpenTelemetrySpanSource:
    """Reads the span stored in the current OpenTelemetry context."""

    def current_span(self) -> Optional[SpanIds]:
        span_context = trace.get_current_span().get_span_context()
        if not span_context.is_valid:
            return None
        return SpanIds(span_context.trace_id, span_context.span_id)


@dataclass(frozen=True)
class TraceIdentity:
    """Trace and span id of a unit of work, always non-empty."""

    trace_id: str
    span_id: str

    def __post_init__(self) -> None:
        if not self.trace_id or not self.span_id:
            raise ValueError("TraceIdentity fields must be non-empty")


class TraceContextReader:
    """Produces a ``TraceIdentity`` for the current execution context.

    When no span is active the configured fallback ids are returned; the
    absence of a trace is the normal path, not an error, so ``read`` never
    raises.

    Args:
        span_source: Tracer capability (default: OpenTelemetry context).
        fallback_trace_id: Sentinel trace id, ``"0"`` unless configured.
        fallback_span_id: Sentinel span id (defaults to ``fallback_trace_id``).
        id_format: ``hex`` for W3C/OpenTelemetry ids, ``datadog`` for the
            decimal 64-bit ids the Datadog log pipeline correlates on.
    """

    def __init__(
        self,
        span_source: Optional[SpanSource] = None,
        *,
        fallback_trace_id: str = DEFAULT_FALLBACK_ID,
        fallback_span_id: Optional[str] = None,
        id_format: IdFormat = "hex",
    ) -> None:
        if not fallback_trace_id:
            raise ValueError("fallback_trace_id must be non-empty")
        if id_format not in ("hex", "datadog"):
            raise ValueError(f"Unknown id format: {id_format!r}")
        self._source = span_source or OpenTelemetrySpanSource()
        self._id_format = id_format
        self.fallback = TraceIdentity(fallback_trace_id, fallback_span_id or fallback_trace_id)

    def read(self) -> TraceIdentity:
        try:
            ids = self._source.current_span()
        except Exception:
            return self.fallback
        if ids is None or not ids.trace_id or not ids.span_id:
            return self.fallback
        return self.format(ids)

    def format(self, ids: SpanIds) -> TraceIdentity:
        if self._id_format == "datadog":
            return TraceIdentity(str(ids.trace_id & _LOWER_64_BITS), str(ids.span_id))
        return TraceIdentity(trace.format_trace_id(ids.trace_id), trace.format_span_id(ids.span_id))
