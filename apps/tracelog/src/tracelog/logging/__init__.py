"""
Trace-Correlated Logging for tracelog.

Provides structured logging with multiple sink support:
- stdio: Standard output (console/json format)
- file: Local rolling files (JSON or flattened text)
- gcloud: Google Cloud Logging (production)

Every record emitted inside a correlation scope carries the active trace id,
span id, service, version and environment.

Design Pattern: Strategy Pattern for sink abstraction.
Library: structlog + orjson for high-performance JSON serialization.
"""

from .chain import SinkChain
from .core import LoggerFactory, LoggingPipeline, configure_logging, get_logger
from .correlated import CorrelatedLogger
from .filters import FilterPolicy, FilterRule, FilterRuleBuilder
from .levels import Level
from .scope import CorrelationRecord, ScopeCorrelator, ScopeHandle, current_fields, open_scope
from .sinks import SinkDescriptor, SinkKind

__all__ = [
    "configure_logging",
    "get_logger",
    "CorrelatedLogger",
    "CorrelationRecord",
    "FilterPolicy",
    "FilterRule",
    "FilterRuleBuilder",
    "Level",
    "LoggerFactory",
    "LoggingPipeline",
    "ScopeCorrelator",
    "ScopeHandle",
    "SinkChain",
    "SinkDescriptor",
    "SinkKind",
    "current_fields",
    "open_scope",
]
