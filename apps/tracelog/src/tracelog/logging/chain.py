"""
Ordered fan-out of log events to independently filtered sinks.
"""

from __future__ import annotations

import sys
from collections import Counter
from typing import Any, Callable, Iterable, Optional, Sequence

from structlog.typing import EventDict, WrappedLogger

from .filters import FilterPolicy, FilterRuleBuilder
from .levels import Level
from .sinks import BaseSink, GCloudSink, SinkDescriptor, build_sink

FailureReporter = Callable[[BaseSink, BaseException], None]


def report_to_stderr(sink: BaseSink, exc: BaseException) -> None:
    """Default side channel for sink failures.

    Writes to the interpreter's original stderr so a failing sink is visible
    even when ``sys.stderr`` has been redirected into the logging pipeline.
    """
    stream = sys.__stderr__
    if stream is None:
        return
    stream.write(f"tracelog: sink '{sink.name}' failed: {type(exc).__name__}: {exc}\n")
    stream.flush()


class SinkChain:
    """Immutable, ordered set of sinks sharing one ``FilterPolicy``.

    A record reaches a sink when the policy admits its namespace and level for
    that sink and the level reaches the sink's own minimum. A sink that raises
    is reported through ``on_failure`` and skipped; the remaining sinks still
    receive the record.
    """

    def __init__(
        self,
        sinks: Iterable[BaseSink],
        *,
        policy: Optional[FilterPolicy] = None,
        on_failure: Optional[FailureReporter] = None,
    ) -> None:
        self._sinks: tuple[BaseSink, ...] = tuple(sinks)
        self.policy = policy or FilterRuleBuilder().build()
        self._on_failure = on_failure or report_to_stderr
        self.failures: Counter[str] = Counter()

        for sink in self._sinks:
            if isinstance(sink, GCloudSink) and not sink.available:
                self._report(sink, RuntimeError(sink.unavailable_reason or "unavailable"))

    @classmethod
    def configure(
        cls,
        descriptors: Sequence[SinkDescriptor],
        *,
        policy: Optional[FilterPolicy] = None,
        on_failure: Optional[FailureReporter] = None,
        stream: Any = None,
    ) -> "SinkChain":
        """Build a chain from sink descriptors, keeping their order."""
        return cls(
            [build_sink(descriptor, stream=stream) for descriptor in descriptors],
            policy=policy,
            on_failure=on_failure,
        )

    @property
    def sinks(self) -> tuple[BaseSink, ...]:
        return self._sinks

    def admits(self, sink: BaseSink, namespace: str, level: Level) -> bool:
        return sink.accepts(level) and self.policy.admits(namespace, level, sink.name)

    def is_enabled(self, namespace: str, level: Level | int | str) -> bool:
        """Whether any sink would accept a record of ``level`` from ``namespace``."""
        parsed = Level.parse(level)
        return any(self.admits(sink, namespace, parsed) for sink in self._sinks)

    def lowest_level(self) -> Level:
        """Least severe level that at least one sink could accept."""
        floor = self.policy.lowest_level()
        if not self._sinks:
            return floor
        return min(max(sink.minimum_level, floor) for sink in self._sinks)

    def emit(self, event_dict: EventDict) -> None:
        level = Level.parse(event_dict.get("level", "info"))
        namespace = str(event_dict.get("logger", "root"))
        for sink in self._sinks:
            if not self.admits(sink, namespace, level):
                continue
            try:
                sink.emit(dict(event_dict))
            except Exception as exc:
                self.failures[sink.name] += 1
                self._report(sink, exc)

    def _report(self, sink: BaseSink, exc: BaseException) -> None:
        try:
            self._on_failure(sink, exc)
        except Exception:
            # The side channel itself failed; there is nowhere left to report.
            return

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> str:
        """Final structlog processor: render to every sink, suppress default output."""
        self.emit(event_dict)
        return ""

    def close(self) -> None:
        for sink in self._sinks:
            sink.close()
