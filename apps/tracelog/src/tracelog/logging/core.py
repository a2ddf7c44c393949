"""
Core logging composition.

``configure_logging`` is the single wiring step: it builds the filter policy,
the sink chain, the trace reader, the service identity resolver and the scope
correlator, and returns them as a ready-to-use ``LoggingPipeline``.
"""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Sequence

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from tracelog.exceptions import SinkConfigurationError
from tracelog.identity import ServiceIdentityResolver
from tracelog.tracing import SpanSource, TraceContextReader

from .chain import FailureReporter, SinkChain
from .filters import FilterPolicy, FilterRule, FilterRuleBuilder
from .formatters import ConsoleFormatter
from .levels import Level
from .scope import ScopeCorrelator, ScopeHandle, merge_scopes
from .sinks import RollingInterval, SinkDescriptor, SinkKind

if TYPE_CHECKING:
    from tracelog.config import CorrelationSettings, LoggingSettings

    from .correlated import CorrelatedLogger

# =============================================================================
# Global State
# =============================================================================

_installed: Optional["LoggingPipeline"] = None


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger bound to the installed pipeline."""
    return structlog.get_logger(_name=name or "root")


# =============================================================================
# Structlog Processors
# =============================================================================


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add ISO 8601 timestamp to log event."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def add_logger_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add logger name to log event."""
    event_dict["logger"] = event_dict.pop("_name", None) or "root"
    return event_dict


class _TemplateFormatter(string.Formatter):
    """Looks placeholders up as flat keys, so ``{dd.trace_id}`` is one field."""

    def get_field(self, field_name: str, args: Sequence[Any], kwargs: Mapping[str, Any]) -> tuple[Any, str]:
        if field_name in kwargs:
            return kwargs[field_name], field_name
        return "{" + field_name + "}", field_name


_TEMPLATE_FORMATTER = _TemplateFormatter()


def template_field_names(template: str) -> list[str]:
    """Named placeholders of ``template`` in order of first appearance."""
    names: list[str] = []
    for _, name, _, _ in _TEMPLATE_FORMATTER.parse(template):
        if name and not name.isdigit() and name not in names:
            names.append(name)
    return names


def bind_positional_args(
    template: Any, args: tuple[Any, ...], fields: dict[str, Any]
) -> tuple[tuple[Any, ...], dict[str, Any]]:
    """Bind positional arguments to the named placeholders of ``template``.

    ``("Method={Method}, Status={Status}", ("GET", 200))`` becomes the fields
    ``Method="GET", Status=200``. Placeholders already given as keywords are
    skipped and surplus arguments are kept under ``extra_args``. Templates
    without named placeholders keep their arguments for ``%`` formatting.
    """
    if not args or not isinstance(template, str) or "{" not in template:
        return args, fields
    try:
        names = template_field_names(template)
    except ValueError:
        return args, fields
    if not names:
        return args, fields
    free = [name for name in names if name not in fields]
    bound = dict(fields)
    bound.update(zip(free, args))
    if len(args) > len(free):
        bound.setdefault("extra_args", args[len(free) :])
    return (), bound


def render_message_template(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Fill ``{name}`` placeholders of the event from its own fields.

    ``log.info("Method: {method}", method="GET")`` renders "Method: GET" and
    keeps the raw template under ``message_template``. Dotted names such as
    ``{dd.trace_id}`` are looked up as a single key. Unknown placeholders are
    left as-is.
    """
    event = event_dict.get("event")
    if not isinstance(event, str) or "{" not in event:
        return event_dict
    try:
        if not template_field_names(event):
            return event_dict
        rendered = _TEMPLATE_FORMATTER.vformat(event, (), event_dict)
    except (ValueError, IndexError, TypeError):
        return event_dict
    event_dict["message_template"] = event
    event_dict["event"] = rendered
    return event_dict


def rename_event_key(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Rename 'event' to 'message' for GCloud compatibility."""
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    return event_dict


class _NopFile:
    def write(self, s: str) -> None:
        pass

    def flush(self) -> None:
        pass


_NOP_FILE = _NopFile()


class SilentPrintLoggerFactory:
    """Logger factory that returns a logger writing to nowhere.

    Output is produced by the sink chain processor, not by the wrapped logger.
    """

    def __call__(self, *args: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file=_NOP_FILE)


# =============================================================================
# Logger Factory
# =============================================================================


class LoggerFactory:
    """Creates structlog loggers wired to one sink chain and correlator."""

    def __init__(self, chain: SinkChain, correlator: ScopeCorrelator) -> None:
        self.chain = chain
        self.correlator = correlator
        self._processors: list[Processor] = [
            structlog.processors.add_log_level,
            add_timestamp,
            add_logger_name,
            merge_scopes,
            render_message_template,
            rename_event_key,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            chain,
        ]
        self.wrapper_class = structlog.make_filtering_bound_logger(int(chain.lowest_level()))

    @property
    def processors(self) -> list[Processor]:
        return list(self._processors)

    def get_logger(self, name: str | None = None) -> Any:
        return structlog.wrap_logger(
            structlog.PrintLogger(file=_NOP_FILE),
            processors=self.processors,
            wrapper_class=self.wrapper_class,
            context_class=dict,
            _name=name or "root",
        )

    def is_enabled(self, name: str, level: Level | int | str) -> bool:
        return self.chain.is_enabled(name, level)


@dataclass
class LoggingPipeline:
    """Composed logging components, ready to use."""

    policy: FilterPolicy
    chain: SinkChain
    correlator: ScopeCorrelator
    factory: LoggerFactory
    installed: bool = field(default=False, init=False)

    def get_logger(self, name: str | None = None) -> Any:
        return self.factory.get_logger(name)

    def correlated(self, name: str = "tracelog") -> "CorrelatedLogger":
        from .correlated import CorrelatedLogger

        return CorrelatedLogger(self.factory, self.correlator, name=name)

    def begin_scope(self, extra_fields: Optional[Mapping[str, Any]] = None, **fields: Any) -> ScopeHandle:
        return self.correlator.begin_scope(extra_fields, **fields)

    def install(self) -> None:
        """Make this pipeline the process-wide structlog and stdlib default."""
        global _installed
        from .interceptors import intercept_stdlib, intercept_third_party_loggers

        if _installed is not None and _installed is not self:
            _installed.close()

        structlog.configure(
            processors=self.factory.processors,
            wrapper_class=self.factory.wrapper_class,
            context_class=dict,
            logger_factory=SilentPrintLoggerFactory(),
            cache_logger_on_first_use=False,
        )
        intercept_stdlib(self.factory, self.chain.lowest_level())
        intercept_third_party_loggers()
        self.installed = True
        _installed = self

    def close(self) -> None:
        global _installed
        self.chain.close()
        if _installed is self:
            _installed = None
        self.installed = False


# =============================================================================
# Configuration Logic
# =============================================================================


def build_descriptors(settings: "LoggingSettings") -> list[SinkDescriptor]:
    """Translate comma-separated sink names into sink descriptors."""

    def level_or_debug(value: Any) -> Level:
        return Level.parse(value.value) if value is not None else Level.DEBUG

    descriptors: list[SinkDescriptor] = []
    for name in settings.sink_names:
        if name == "stdio":
            descriptors.append(
                SinkDescriptor(
                    kind=SinkKind.CONSOLE,
                    minimum_level=level_or_debug(settings.stdio_level),
                    format=settings.format.value,
                )
            )
        elif name == "file":
            descriptors.append(
                SinkDescriptor(
                    kind=SinkKind.ROLLING_FILE,
                    minimum_level=level_or_debug(settings.file_level),
                    path_template=settings.file_path,
                    rolling_interval=RollingInterval(settings.rolling_interval),
                    retained_file_count=settings.retained_file_count,
                )
            )
        elif name == "gcloud":
            descriptors.append(
                SinkDescriptor(
                    kind=SinkKind.CLOUD_EXPORT,
                    minimum_level=level_or_debug(settings.gcloud_level),
                    project_id=settings.gcloud_project,
                    log_name=settings.gcloud_log_name,
                )
            )
        else:
            raise SinkConfigurationError(f"Unknown sink name: {name!r}", sink=name)
    return descriptors


def build_policy(
    settings: "LoggingSettings",
    *,
    rules: Iterable[FilterRule] = (),
    production_like: bool = False,
) -> FilterPolicy:
    """Compose the filter policy: drop provider rules, apply profile, then explicit rules."""
    builder = FilterRuleBuilder(default_level=settings.level.value)
    for provider in settings.suppressed_providers:
        builder.remove_provider_rule(provider)
    if settings.profile == "production" or production_like:
        builder.apply_profile("production")
    return builder.extend(rules).build()


def configure_logging(
    settings: Optional["LoggingSettings"] = None,
    *,
    descriptors: Optional[Sequence[SinkDescriptor]] = None,
    rules: Iterable[FilterRule] = (),
    policy: Optional[FilterPolicy] = None,
    span_source: Optional[SpanSource] = None,
    correlation: Optional["CorrelationSettings"] = None,
    identity_resolver: Optional[ServiceIdentityResolver] = None,
    on_failure: Optional[FailureReporter] = None,
    stream: Any = None,
    install: bool = True,
) -> LoggingPipeline:
    """
    Configure the trace-correlated logging pipeline.

    Args:
        settings: Logging settings (default: ``tracelog.config.settings.logging``)
        descriptors: Explicit sink descriptors, overriding ``settings.sinks``
        rules: Explicit filter rules applied after provider rule removal
        policy: Ready-made filter policy, bypassing ``settings``/``rules``
        span_source: Tracer capability (default: OpenTelemetry)
        correlation: Correlation settings (fallback ids, id format, prefix)
        identity_resolver: Service identity source (default: DD_* variables)
        on_failure: Side channel for sink failures (default: original stderr)
        stream: Stream for console sinks (default: stdout)
        install: Also configure structlog globally and capture stdlib logging
    """
    from tracelog.config import settings as app_settings

    log_settings = settings or app_settings.logging
    correlation = correlation or app_settings.correlation

    ConsoleFormatter.configure(
        timestamp_format=log_settings.console_timestamp_format,
        level_width=log_settings.console_level_width,
        logger_width=log_settings.console_logger_width,
        separator=log_settings.console_separator,
    )

    if policy is None:
        policy = build_policy(
            log_settings,
            rules=rules,
            production_like=app_settings.environment.is_production_like,
        )
    chain = SinkChain.configure(
        descriptors if descriptors is not None else build_descriptors(log_settings),
        policy=policy,
        on_failure=on_failure,
        stream=stream,
    )
    reader = TraceContextReader(
        span_source,
        fallback_trace_id=correlation.fallback_trace_id,
        fallback_span_id=correlation.fallback_span_id,
        id_format=correlation.id_format,
    )
    correlator = ScopeCorrelator(
        reader,
        identity_resolver or ServiceIdentityResolver(env_files=app_settings.env_files),
        field_prefix=correlation.field_prefix,
    )
    pipeline = LoggingPipeline(
        policy=policy,
        chain=chain,
        correlator=correlator,
        factory=LoggerFactory(chain, correlator),
    )
    if install:
        pipeline.install()
    return pipeline
