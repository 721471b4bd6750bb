"""Expand a verb into a resolved workflow tree.

For a context such as ``{"verb": "create", "namespace": "item", "relation":
"type"}`` the builder looks up the rules for each tense of the verb
(``willCreate``, ``doingCreate``, ``didCreate``), and for every matched rule
builds one sub-workflow per declared prerequisite. Each prerequisite
sub-workflow starts with a transformation task that computes its input from
the parent's data.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Mapping
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from rules_engine.errors import (
    InvalidRequest,
    MalformedPrerequisite,
    UnknownVerb,
    WorkflowCycleError,
)
from rules_engine.workflow.context import ContextResolver
from rules_engine.workflow.model import (
    TRANSFORMATION_VERB,
    Prerequisite,
    Rule,
    StepInputs,
    StepKind,
    Task,
    TransformInputs,
    Workflow,
    invoke,
)
from rules_engine.workflow.rule_index import RulesProvider
from rules_engine.workflow.serialization import task_description, task_short_name
from rules_engine.workflow.steps import Tenses

if TYPE_CHECKING:
    from rules_engine.logging import LogProvider

DEFAULT_MAX_DEPTH = 32


def canonical_context(context: Mapping[str, Any]) -> str:
    """Stable text form of a context, used as cache key and cycle marker."""

    return json.dumps(context, sort_keys=True, default=str)


async def gather_all(*coros: Awaitable[Any]) -> list[Any]:
    """``asyncio.gather``, but a failure cancels (and awaits) the siblings."""

    tasks = [asyncio.ensure_future(coro) for coro in coros]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def resolve_payload_value(value: Any, inputs: TransformInputs) -> Any:
    """A literal, or the (awaited) result of calling ``value`` with ``inputs``."""

    if callable(value):
        return await invoke(value, inputs)
    return value


class WorkflowBuilder:
    def __init__(
        self,
        steps: Mapping[str, Tenses],
        rules: RulesProvider,
        log: LogProvider,
        resolver: ContextResolver,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.steps = steps
        self.rules = rules
        self.log = log
        self.resolver = resolver
        self.max_depth = max_depth

    async def create_workflow(self, context: Mapping[str, Any]) -> Workflow:
        return await self.build_for_verb(context)

    async def build_for_verb(
        self, context: Mapping[str, Any], _path: tuple[str, ...] = ()
    ) -> Workflow:
        if not context or not context.get("verb"):
            raise InvalidRequest("`context.verb` is required")
        verb = context["verb"]
        if verb not in self.steps:
            raise UnknownVerb(verb)

        path = self._enter(context, _path)
        self.log.info(f"Building workflow for {task_short_name(context)}", context)

        matches = await gather_all(
            *(self.rules.find({**context, "verb": tense}) for tense in self.steps[verb])
        )
        # One (possibly empty) list per tense, concatenated in tense order.
        rules = [rule for tense_rules in matches for rule in tense_rules]
        tasks = await gather_all(
            *(self._resolve_prerequisites(rule, context, path) for rule in rules)
        )
        return Workflow(tasks=tuple(tasks), context=dict(context))

    def _enter(self, context: Mapping[str, Any], path: tuple[str, ...]) -> tuple[str, ...]:
        marker = canonical_context(context)
        if marker in path:
            chain = " -> ".join(task_short_name(json.loads(m)) for m in (*path, marker))
            raise WorkflowCycleError(f"Prerequisite cycle detected: {chain}", (*path, marker))
        if len(path) >= self.max_depth:
            raise WorkflowCycleError(
                f"Prerequisites nested deeper than {self.max_depth} levels "
                f"while building {task_short_name(context)}",
                (*path, marker),
            )
        return (*path, marker)

    async def _resolve_prerequisites(
        self, rule: Rule, context: Mapping[str, Any], path: tuple[str, ...]
    ) -> Task:
        task = Task.from_rule(rule, context)
        if not rule.prerequisites:
            return task
        workflows = await gather_all(
            *(
                self._build_prerequisite(index, prerequisite, task, context, path)
                for index, prerequisite in enumerate(rule.prerequisites)
            )
        )
        return replace(task, prerequisites=tuple(workflows))

    async def _build_prerequisite(
        self,
        index: int,
        prerequisite: Prerequisite,
        task: Task,
        context: Mapping[str, Any],
        path: tuple[str, ...],
    ) -> Workflow:
        if not prerequisite.context.get("verb"):
            raise MalformedPrerequisite(index, task_description(task))
        prereq_context = self.resolver.resolve(context, prerequisite.context)
        prereq_workflow = await self.build_for_verb(prereq_context, path)
        transformation = self._transformation_task(prerequisite, prereq_context)
        return Workflow(tasks=(transformation, *prereq_workflow.tasks), context=prereq_context)

    def _transformation_task(
        self, prerequisite: Prerequisite, prereq_context: Mapping[str, Any]
    ) -> Task:
        description = f"Data transformation towards {task_short_name(prereq_context)}"
        resolver = self.resolver
        step = {**prerequisite.context, "description": description, "kind": StepKind.TRANSFORMATION}

        async def transform(inputs: StepInputs) -> dict[str, Any]:
            transform_inputs = TransformInputs(
                data=inputs.data,
                context=resolver.resolve(inputs.context, step),
                dispatch=inputs.dispatch,
                log=inputs.log,
            )
            result: dict[str, Any] = {}
            for key, value in prerequisite.payload.items():
                result[key] = await resolve_payload_value(value, transform_inputs)
            return result

        return Task(
            logic=transform,
            verb=TRANSFORMATION_VERB,
            description=description,
            kind=StepKind.TRANSFORMATION,
        )
