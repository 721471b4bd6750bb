"""Rules, resolved tasks and workflows.

Rules are what authors register. Tasks are rules projected down to what the
executor needs, with their prerequisites already expanded into workflows.
Everything here is immutable once built; per-run state lives in
:class:`rules_engine.workflow.stack.WorkflowStack`.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from rules_engine.workflow.serialization import workflow_to_json, workflow_to_string

if TYPE_CHECKING:
    from rules_engine.logging import LogProvider
    from rules_engine.workflow.stack import WorkflowStack

Context = Mapping[str, Any]
Dispatch = Callable[[Any, dict[str, Any]], Awaitable[None]]

TRANSFORMATION_VERB = "TRANSFORMATION"


class StepKind(str, Enum):
    BUSINESS_RULE = "business_rule"
    TRANSFORMATION = "transformation"


@dataclass(frozen=True, slots=True)
class StepInputs:
    """Everything a rule's ``logic`` receives."""

    data: Any
    prerequisite_results: list[Any]
    context: dict[str, Any]
    workflow_stack: WorkflowStack | None
    dispatch: Dispatch
    log: LogProvider


@dataclass(frozen=True, slots=True)
class RecoveryInputs:
    """Everything a rule's ``on_error`` receives."""

    error: BaseException
    data: Any
    context: dict[str, Any]
    workflow_stack: WorkflowStack | None
    dispatch: Dispatch
    log: LogProvider


@dataclass(frozen=True, slots=True)
class TransformInputs:
    """Inputs for a callable prerequisite payload field."""

    data: Any
    context: dict[str, Any]
    dispatch: Dispatch
    log: LogProvider


StepLogic = Callable[[StepInputs], Any]
RecoveryLogic = Callable[[RecoveryInputs], Any]


@dataclass(frozen=True, slots=True)
class DataResult:
    """Explicit step result: ``data`` is the new payload.

    ``extras`` carries any other fields returned next to ``data``; the
    executor ignores them.
    """

    data: Any
    extras: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RawResult:
    """Explicit step result: ``value`` in its entirety is the new payload."""

    value: Any


@dataclass(frozen=True, slots=True)
class Success:
    data: Any
    context: dict[str, Any]


@dataclass(frozen=True, slots=True)
class Failure:
    error: BaseException


ExecutionResult = Success | Failure


@dataclass(frozen=True, slots=True)
class Prerequisite:
    """A declared dependency of a rule.

    ``context`` addresses the sub-workflow (at least a ``verb``); each entry
    of ``payload`` is a literal or a callable taking :class:`TransformInputs`
    and produces one field of the sub-workflow's input.
    """

    context: Mapping[str, Any]
    payload: Mapping[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_mapping(obj: Prerequisite | Mapping[str, Any]) -> Prerequisite:
        if isinstance(obj, Prerequisite):
            return obj
        raw_context = obj.get("context")
        context = dict(raw_context) if isinstance(raw_context, Mapping) else {}
        payload = {key: value for key, value in obj.items() if key != "context"}
        return Prerequisite(context=context, payload=payload)


_RULE_FIELDS = frozenset(
    {
        "verb",
        "namespace",
        "relation",
        "status",
        "feature_flag",
        "priority",
        "description",
        "prerequisites",
        "logic",
        "on_error",
    }
)


@dataclass(frozen=True, slots=True, eq=False)
class Rule:
    verb: str
    namespace: Any = None
    relation: Any = None
    status: str | None = None
    feature_flag: str | None = None
    priority: int | None = None
    description: str = ""
    prerequisites: tuple[Prerequisite, ...] = ()
    logic: StepLogic | None = None
    on_error: RecoveryLogic | None = None
    criteria: Mapping[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_mapping(obj: Rule | Mapping[str, Any]) -> Rule:
        """Build a rule from a plain dict; unknown keys become matching criteria."""

        if isinstance(obj, Rule):
            return obj
        if "verb" not in obj:
            raise ValueError(f"A rule requires a 'verb': {sorted(obj)}")
        return Rule(
            verb=obj["verb"],
            namespace=obj.get("namespace"),
            relation=obj.get("relation"),
            status=obj.get("status"),
            feature_flag=obj.get("feature_flag"),
            priority=obj.get("priority"),
            description=obj.get("description") or "",
            prerequisites=tuple(
                Prerequisite.from_mapping(p) for p in obj.get("prerequisites") or ()
            ),
            logic=obj.get("logic"),
            on_error=obj.get("on_error"),
            criteria={key: value for key, value in obj.items() if key not in _RULE_FIELDS},
        )


@dataclass(frozen=True, slots=True, eq=False)
class Task:
    """A resolved workflow step.

    Equality is identity: two tasks built from the same rule are still two
    nodes of the tree.
    """

    logic: StepLogic | None = None
    verb: str | None = None
    namespace: Any = None
    relation: Any = None
    status: str | None = None
    description: str = ""
    prerequisites: tuple[Workflow, ...] = ()
    on_error: RecoveryLogic | None = None
    original_context: Mapping[str, Any] | None = None
    kind: StepKind = StepKind.BUSINESS_RULE

    @staticmethod
    def from_rule(rule: Rule, original_context: Context) -> Task:
        return Task(
            logic=rule.logic,
            verb=rule.verb,
            namespace=rule.namespace,
            relation=rule.relation,
            status=rule.status,
            description=rule.description,
            on_error=rule.on_error,
            original_context=dict(original_context),
        )

    def context_fields(self) -> dict[str, Any]:
        """The task's own addressing fields, as a context fragment."""

        fields = {
            "verb": self.verb,
            "namespace": self.namespace,
            "relation": self.relation,
            "status": self.status,
            "description": self.description or None,
            "original_context": self.original_context,
        }
        return {key: value for key, value in fields.items() if value is not None}


@dataclass(frozen=True, slots=True, eq=False)
class Workflow:
    """An ordered, fully resolved sequence of tasks.

    ``context`` is the request the workflow was built for, when known.
    """

    tasks: tuple[Task, ...] = ()
    context: Mapping[str, Any] | None = None

    def __iter__(self) -> Iterator[Task]:
        return iter(self.tasks)

    def __len__(self) -> int:
        return len(self.tasks)

    def __getitem__(self, index: int) -> Task:
        return self.tasks[index]

    def __str__(self) -> str:
        return self.to_string()

    def to_string(self) -> str:
        return workflow_to_string(self, self.context or {})

    def to_json(self) -> list[dict[str, Any]]:
        return workflow_to_json(self)


def as_workflow(obj: Workflow | list[Task] | tuple[Task, ...]) -> Workflow:
    if isinstance(obj, Workflow):
        return obj
    return Workflow(tasks=tuple(obj))


async def invoke(func: Callable[..., Any], *args: Any) -> Any:
    """Call a step callable, awaiting the result when it is awaitable."""

    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def is_empty_result(value: Any) -> bool:
    """True for ``None`` and falsy scalars (``False``, ``0``, ``""``).

    Containers count as results even when empty.
    """

    if value is None:
        return True
    if isinstance(value, Mapping | list | tuple | set | frozenset):
        return False
    return not value


def classify_step_result(value: Any) -> DataResult | RawResult | None:
    """Map whatever a step returned onto the step-result union.

    An empty result (see :func:`is_empty_result`) means "no result". A mapping
    whose ``"data"`` key holds a non-empty result is read as a
    :class:`DataResult`, so a payload that legitimately contains a ``data``
    field must be wrapped in :class:`RawResult` to be kept whole. Explicit
    ``DataResult``/``RawResult`` values are returned as-is, so
    ``DataResult(data=0)`` does replace the payload.
    """

    if isinstance(value, DataResult | RawResult):
        return value
    if is_empty_result(value):
        return None
    if isinstance(value, Mapping) and not is_empty_result(value.get("data")):
        extras = {key: item for key, item in value.items() if key != "data"}
        return DataResult(data=value["data"], extras=extras)
    return RawResult(value=value)
