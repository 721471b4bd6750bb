"""Verbs and their tenses.

Each verb expands into a pre-check (``will*``), the operation itself
(``doing*``) and a post-action (``did*``) tense, in that order.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from rules_engine.errors import EngineConfigurationError

Tenses = tuple[str, str, str]

DEFAULT_STEPS: Mapping[str, Tenses] = MappingProxyType(
    {
        "get": ("willGet", "doingGet", "didGet"),
        "count": ("willCount", "doingCount", "didCount"),
        "create": ("willCreate", "doingCreate", "didCreate"),
        "update": ("willUpdate", "doingUpdate", "didUpdate"),
        "remove": ("willRemove", "doingRemove", "didRemove"),
    }
)


def merge_steps(extra: Mapping[str, Tenses | list[str]] | None = None) -> Mapping[str, Tenses]:
    """Return the default tense table extended (or overridden) by ``extra``."""

    steps: dict[str, Tenses] = dict(DEFAULT_STEPS)
    for verb, tenses in (extra or {}).items():
        if len(tenses) != 3:
            raise EngineConfigurationError(
                f"Verb {verb!r} needs exactly three tenses, got {list(tenses)}"
            )
        steps[verb] = (tenses[0], tenses[1], tenses[2])
    return MappingProxyType(steps)
