"""Derive the execution context of a nested step.

A prerequisite rule is often matched through wildcards, so it does not know
the concrete namespace/relation its caller used. Tasks therefore keep the
context they were built for (``original_context``), and the resolver merges
that back on top of the parent context before applying the step's own
declared fields.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from rules_engine.workflow.model import TRANSFORMATION_VERB, StepKind, Task

DEFAULT_EXCLUDED_FIELDS: tuple[str, ...] = ("on_error", "logic", "prereqs", "description")


def _omit(source: Mapping[str, Any] | None, excluded: Iterable[str]) -> dict[str, Any]:
    if not source:
        return {}
    excluded = set(excluded)
    return {key: value for key, value in source.items() if key not in excluded}


def _original_context(step: Any) -> Mapping[str, Any] | None:
    if isinstance(step, Mapping):
        return step.get("original_context")
    return getattr(step, "original_context", None)


def _declared_context(step: Any) -> Mapping[str, Any]:
    if isinstance(step, Task):
        return step.context_fields()
    if isinstance(step, Mapping):
        nested = step.get("context")
        return nested if isinstance(nested, Mapping) else step
    return {}


def _step_kind(step: Any) -> StepKind:
    if isinstance(step, Mapping):
        return StepKind(step.get("kind", StepKind.BUSINESS_RULE))
    return getattr(step, "kind", StepKind.BUSINESS_RULE)


class ContextResolver:
    """Computes child contexts; owns the set of fields never copied into one."""

    def __init__(self, excluded_fields: Iterable[str] = ()) -> None:
        extra = [name for name in excluded_fields if name not in DEFAULT_EXCLUDED_FIELDS]
        self._excluded: tuple[str, ...] = (*DEFAULT_EXCLUDED_FIELDS, *extra)

    @property
    def excluded_fields(self) -> tuple[str, ...]:
        return self._excluded

    def resolve(self, parent_context: Mapping[str, Any], step: Any) -> dict[str, Any]:
        """Return the context ``step`` runs in, given its parent's context.

        ``step`` is a :class:`Task`, a declared context mapping, or a mapping
        wrapping one under ``"context"``.
        """

        context = {
            **parent_context,
            **_omit(_original_context(step), ("verb", *self._excluded)),
        }
        own = _omit(_declared_context(step), (*self._excluded, "kind"))

        if _step_kind(step) is StepKind.TRANSFORMATION:
            # Only the verb changes: namespace/relation/etc. of the step are dropped.
            context["verb"] = TRANSFORMATION_VERB
        elif own.get("original_context") is None and own.get("verb") is not None:
            context.update(own)
        return context
