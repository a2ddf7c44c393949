"""
Per-sink and per-namespace severity filtering.

A ``FilterPolicy`` is an immutable, ordered tuple of ``FilterRule`` plus a
default level. Policies are assembled once at startup through
``FilterRuleBuilder``, which replaces runtime search-and-mutate of a shared
rule list with explicit insert/override/remove steps.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .levels import Level

# Namespaces demoted to WARNING for production-like profiles.
PRODUCTION_QUIET_NAMESPACES = (
    "uvicorn",
    "httpx",
    "httpcore",
    "urllib3",
    "asyncio",
    "opentelemetry",
    "google",
)

# Name of the cloud telemetry sink whose client library ships its own rule.
GCLOUD_PROVIDER = "gcloud"


@dataclass(frozen=True)
class FilterRule:
    """Minimum level for a namespace prefix, optionally bound to one sink.

    An empty ``namespace_prefix`` matches every namespace; ``sink=None``
    matches every sink.
    """

    namespace_prefix: str
    minimum_level: Level
    sink: Optional[str] = None

    def matches(self, namespace: str, sink: Optional[str]) -> bool:
        if self.sink is not None and self.sink != sink:
            return False
        prefix = self.namespace_prefix
        if not prefix:
            return True
        return namespace == prefix or namespace.startswith(prefix + ".")


# Rules installed implicitly by dependencies, mirroring the default WARNING
# rule the cloud logging provider registers for itself.
DEFAULT_RULES: tuple[FilterRule, ...] = (
    FilterRule(namespace_prefix="", minimum_level=Level.WARNING, sink=GCLOUD_PROVIDER),
)


@dataclass(frozen=True)
class FilterPolicy:
    """Ordered first-match-wins filter rules with a chain-wide default."""

    rules: tuple[FilterRule, ...] = ()
    default_level: Level = Level.INFO

    def rule_for(self, namespace: str, sink: Optional[str] = None) -> Optional[FilterRule]:
        for rule in self.rules:
            if rule.matches(namespace, sink):
                return rule
        return None

    def threshold(self, namespace: str, sink: Optional[str] = None) -> Level:
        rule = self.rule_for(namespace, sink)
        return rule.minimum_level if rule is not None else self.default_level

    def admits(self, namespace: str, level: Level | int | str, sink: Optional[str] = None) -> bool:
        """Return True when ``level`` reaches the threshold for ``namespace``."""
        return Level.parse(level) >= self.threshold(namespace, sink)

    def lowest_level(self) -> Level:
        """Least severe level any rule or the default can admit."""
        return min([self.default_level, *(rule.minimum_level for rule in self.rules)])


class FilterRuleBuilder:
    """Deterministic composition of filter rules.

    Usage:
        policy = (
            FilterRuleBuilder(default_level=Level.INFO)
            .remove_provider_rule("gcloud")
            .apply_profile("production")
            .add("myapp.db", Level.DEBUG)
            .build()
        )
    """

    def __init__(
        self,
        default_level: Level | int | str = Level.INFO,
        *,
        seed: Iterable[FilterRule] = DEFAULT_RULES,
    ) -> None:
        self._default_level = Level.parse(default_level)
        self._rules: list[FilterRule] = list(seed)
        self._removed_providers: set[str] = set()

    def set_default(self, level: Level | int | str) -> "FilterRuleBuilder":
        self._default_level = Level.parse(level)
        return self

    def add(
        self,
        namespace_prefix: str,
        level: Level | int | str,
        *,
        sink: Optional[str] = None,
    ) -> "FilterRuleBuilder":
        self._rules.append(FilterRule(namespace_prefix, Level.parse(level), sink))
        return self

    def override(
        self,
        namespace_prefix: str,
        level: Level | int | str,
        *,
        sink: Optional[str] = None,
    ) -> "FilterRuleBuilder":
        """Replace the rule for ``(sink, namespace_prefix)`` in place, or append it."""
        rule = FilterRule(namespace_prefix, Level.parse(level), sink)
        for index, existing in enumerate(self._rules):
            if existing.sink == sink and existing.namespace_prefix == namespace_prefix:
                self._rules[index] = rule
                return self
        self._rules.append(rule)
        return self

    def remove(self, namespace_prefix: str, *, sink: Optional[str] = None) -> "FilterRuleBuilder":
        self._rules = [
            rule for rule in self._rules if not (rule.sink == sink and rule.namespace_prefix == namespace_prefix)
        ]
        return self

    def remove_provider_rule(self, sink: str) -> "FilterRuleBuilder":
        """Drop the implicit rule a sink's library installed, exactly once.

        Only the first rule bound to ``sink`` is removed, and repeated calls
        for the same sink are no-ops, so rules added explicitly afterwards are
        never touched.
        """
        if sink in self._removed_providers:
            return self
        self._removed_providers.add(sink)
        for index, rule in enumerate(self._rules):
            if rule.sink == sink:
                del self._rules[index]
                break
        return self

    def apply_profile(self, profile: str) -> "FilterRuleBuilder":
        if profile == "production":
            for namespace in PRODUCTION_QUIET_NAMESPACES:
                self.override(namespace, Level.WARNING)
        return self

    def extend(self, rules: Iterable[FilterRule]) -> "FilterRuleBuilder":
        for rule in rules:
            self.override(rule.namespace_prefix, rule.minimum_level, sink=rule.sink)
        return self

    def build(self) -> FilterPolicy:
        return FilterPolicy(rules=tuple(self._rules), default_level=self._default_level)
