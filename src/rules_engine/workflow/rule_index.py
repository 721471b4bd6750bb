"""Rule lookup against a request context."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from rules_engine.workflow.model import Rule

_MEMBERSHIP_TYPES = (list, tuple, set, frozenset)


class RulesProvider(Protocol):
    """Anything that can find the rules applicable to a context."""

    async def find(self, context: Mapping[str, Any]) -> list[Rule]: ...


def empty_or_match(rule_value: Any, context_value: Any) -> bool:
    """Wildcard, equality, or membership when the rule lists several values."""

    if rule_value is None:
        return True
    if isinstance(rule_value, _MEMBERSHIP_TYPES):
        return context_value in rule_value
    return rule_value == context_value


def rule_matches(rule: Rule, context: Mapping[str, Any]) -> bool:
    if rule.verb != context.get("verb") or rule.status != context.get("status"):
        return False
    if not empty_or_match(rule.namespace, context.get("namespace")):
        return False
    if not empty_or_match(rule.relation, context.get("relation")):
        return False
    # Extra criteria, e.g. to scope rules to a tenant or a role.
    for key, value in rule.criteria.items():
        if not empty_or_match(value, context.get(key)):
            return False
    if rule.feature_flag:
        flags = context.get("feature_flags") or ()
        if isinstance(flags, str):
            flags = (flags,)
        if rule.feature_flag not in flags:
            return False
    return True


class RuleIndex:
    """In-memory rules provider over a fixed list of rules."""

    def __init__(self, rules: Iterable[Rule | Mapping[str, Any]]) -> None:
        self.rules: tuple[Rule, ...] = tuple(Rule.from_mapping(rule) for rule in rules)

    async def find(self, context: Mapping[str, Any]) -> list[Rule]:
        matches = [rule for rule in self.rules if rule_matches(rule, context)]
        # sorted() is stable, also with reverse=True.
        return sorted(matches, key=lambda rule: rule.priority or 0, reverse=True)

    def __len__(self) -> int:
        return len(self.rules)
