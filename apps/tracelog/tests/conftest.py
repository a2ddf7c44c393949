from __future__ import annotations

import logging
import typing as t

import pytest
import structlog
from capture_sinks import CaptureSink
from opentelemetry.sdk.trace import TracerProvider

from tracelog.identity import ServiceIdentityResolver
from tracelog.logging.chain import SinkChain
from tracelog.logging.core import LoggerFactory
from tracelog.logging.filters import FilterPolicy, FilterRuleBuilder
from tracelog.logging.levels import Level
from tracelog.logging.scope import ScopeCorrelator
from tracelog.logging.sinks import BaseSink
from tracelog.tracing import TraceContextReader

SERVICE_ENV_VARS = (
    "DD_SERVICE",
    "DD_VERSION",
    "DD_ENV",
    "DD_TRACE_ENABLED",
    "DD_RUNTIME_METRICS_ENABLED",
    "DD_LOGS_INJECTION",
)


@pytest.fixture(autouse=True)
def clean_service_env(monkeypatch):
    """Each test starts without DD_* variables."""
    for name in SERVICE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def restore_global_logging():
    """Restore structlog defaults and stdlib root handlers after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def capture_sink() -> CaptureSink:
    return CaptureSink()


@pytest.fixture
def correlator() -> ScopeCorrelator:
    return ScopeCorrelator(TraceContextReader(), ServiceIdentityResolver())


@pytest.fixture
def make_factory(correlator) -> t.Callable[..., LoggerFactory]:
    """Wire a LoggerFactory around the given sinks without touching global state."""

    def _make(*sinks: BaseSink, policy: FilterPolicy | None = None, on_failure=None) -> LoggerFactory:
        chain = SinkChain(
            sinks,
            policy=policy or FilterRuleBuilder(default_level=Level.DEBUG).build(),
            on_failure=on_failure or (lambda sink, exc: None),
        )
        return LoggerFactory(chain, correlator)

    return _make


@pytest.fixture
def factory(make_factory, capture_sink) -> LoggerFactory:
    return make_factory(capture_sink)


@pytest.fixture
def tracer():
    """Real OpenTelemetry tracer that is not installed globally."""
    provider = TracerProvider()
    yield provider.get_tracer("tracelog-tests")
    provider.shutdown()
