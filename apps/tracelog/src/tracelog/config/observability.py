"""
Observability Configuration.

Tracer flags are passed through untouched to whatever tracer runs in-process;
correlation settings control how the active trace is rendered into logs.
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TracingSettings(BaseSettings):
    """
    Tracer enablement flags (consumed by the tracer, not interpreted here).
    Prefix: DD_
    """

    model_config = SettingsConfigDict(
        env_prefix="DD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    trace_enabled: bool = Field(default=True, description="DD_TRACE_ENABLED")
    runtime_metrics_enabled: bool = Field(default=False, description="DD_RUNTIME_METRICS_ENABLED")
    logs_injection: bool = Field(default=False, description="DD_LOGS_INJECTION")


class CorrelationSettings(BaseSettings):
    """
    Trace-to-log correlation settings.
    Prefix: TL_CORRELATION_
    """

    model_config = SettingsConfigDict(
        env_prefix="TL_CORRELATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    fallback_trace_id: str = Field(
        default="0",
        min_length=1,
        description="Trace id written when no trace is active",
    )
    fallback_span_id: Optional[str] = Field(
        default=None,
        description="Span id written when no trace is active (defaults to fallback_trace_id)",
    )
    id_format: Literal["hex", "datadog"] = Field(
        default="hex",
        description="hex: W3C/OpenTelemetry ids; datadog: decimal 64-bit ids",
    )
    field_prefix: str = Field(default="dd.", description="Namespace prefix of correlation fields")
