"""Run a resolved workflow tree.

Tasks of one workflow run strictly in sequence. Before a task runs, its
prerequisite workflows run concurrently; a failing prerequisite does not
abort its parent, its error is handed to the parent's logic instead. A
failing task (without recovery) skips the rest of its workflow. Every
workflow that ran at least one task ends with a ``success`` or ``fail``
dispatch, unless its context already carries a status.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from rules_engine.errors import (
    DispatchFailure,
    HumanizedError,
    RecoveryContractViolation,
    StepFailure,
)
from rules_engine.workflow.context import ContextResolver
from rules_engine.workflow.model import (
    DataResult,
    Dispatch,
    ExecutionResult,
    Failure,
    RecoveryInputs,
    StepInputs,
    Success,
    Task,
    Workflow,
    as_workflow,
    classify_step_result,
    invoke,
    is_empty_result,
)
from rules_engine.workflow.serialization import task_description, task_short_name
from rules_engine.workflow.stack import WorkflowStack

if TYPE_CHECKING:
    from rules_engine.logging import LogProvider


def next_payload(result: Any, data: Any) -> Any:
    """The payload following a step that received ``data`` and returned ``result``."""

    classified = classify_step_result(result)
    if classified is None:
        return data
    if isinstance(classified, DataResult):
        return classified.data
    return classified.value


def failure_payload(data: Any, error: BaseException) -> Any:
    if isinstance(data, Mapping):
        return {**data, "error": error}
    return {"data": data, "error": error}


class WorkflowExecutor:
    def __init__(
        self,
        dispatch: Dispatch,
        log: LogProvider,
        resolver: ContextResolver,
        *,
        success_state: str = "success",
        fail_state: str = "fail",
        enable_workflow_stack: bool = False,
    ) -> None:
        self.dispatch = dispatch
        self.log = log
        self.resolver = resolver
        self.success_state = success_state
        self.fail_state = fail_state
        self.enable_workflow_stack = enable_workflow_stack

    async def execute(
        self,
        data: Any,
        workflow: Workflow | list[Task],
        context: Mapping[str, Any],
    ) -> Any:
        """Run ``workflow`` on ``data`` and return the final payload.

        Raises:
            Exception: the unrecovered error of the first failing task, after
                the fail dispatch has been attempted.
        """

        workflow = as_workflow(workflow)
        stack = WorkflowStack(workflow) if self.enable_workflow_stack else None
        name = task_short_name(context)
        self.log.info(f"== Executing workflow for {name} ==", context, stack)
        try:
            result = await self._execute_workflow(data, context, workflow, stack, nested=False)
        except Exception as error:
            self.log.error(HumanizedError(f"== Workflow failed for {name} ==", error), context, stack)
            raise
        self.log.info(f"== Workflow finished for {name} ==", context, stack)
        return result.data

    async def _execute_workflow(
        self,
        data: Any,
        context: Mapping[str, Any],
        workflow: Workflow,
        stack: WorkflowStack | None,
        nested: bool = True,
    ) -> ExecutionResult:
        if not workflow:
            self.log.debug("Empty workflow.", context, stack)
            return Success(data=data, context=dict(context))

        outcome: ExecutionResult = Success(data=data, context=dict(context))
        for task in workflow:
            if isinstance(outcome, Failure):
                if stack is not None:
                    stack.mark_skipped(task)
                continue
            if stack is not None:
                stack.mark_active(task)
            try:
                outcome = await self._execute_step(task, outcome.data, outcome.context, stack)
            except Exception as error:
                if stack is not None:
                    stack.mark_aborted(task, str(error))
                outcome = Failure(error=error)
            finally:
                if stack is not None:
                    stack.clear_active(task)

        if isinstance(outcome, Success):
            await self._dispatch_success(outcome.data, outcome.context, stack)
            return outcome

        await self._dispatch_failure(data, outcome.error, context, stack)
        if not nested:
            raise outcome.error
        return outcome

    async def _execute_prerequisite(
        self,
        data: Any,
        context: Mapping[str, Any],
        workflow: Workflow | list[Task],
        stack: WorkflowStack | None,
    ) -> Any:
        result = await self._execute_workflow(data, context, as_workflow(workflow), stack)
        return result.data if isinstance(result, Success) else result

    async def _execute_step(
        self,
        task: Task,
        data: Any,
        parent_context: Mapping[str, Any],
        stack: WorkflowStack | None,
    ) -> Success:
        context = self.resolver.resolve(parent_context, task)
        name = task_short_name(task)
        self.log.info(f"Starting {task_description(task)}", context, stack)
        try:
            prerequisite_results = await asyncio.gather(
                *(
                    self._execute_prerequisite(data, context, prerequisite, stack)
                    for prerequisite in task.prerequisites
                )
            )
            self.log.info(f"Executing {name}", context, stack)
            result = None
            if task.logic is not None:
                result = await invoke(
                    task.logic,
                    StepInputs(
                        # The caller's payload must never be mutated by step logic.
                        data=copy.deepcopy(data),
                        prerequisite_results=list(prerequisite_results),
                        context=context,
                        workflow_stack=stack,
                        dispatch=self.dispatch,
                        log=self.log,
                    ),
                )
            self.log.info(f"Finished {name}", context, stack)
            return Success(data=next_payload(result, data), context=context)
        except Exception as error:
            self.log.error(StepFailure(name, error), context, stack)
            if task.on_error is None:
                raise
            self.log.info(f"Processing custom error handling for {name}.", context, stack)
            recovered = await invoke(
                task.on_error,
                RecoveryInputs(
                    error=error,
                    data=copy.deepcopy(data),
                    context=context,
                    workflow_stack=stack,
                    dispatch=self.dispatch,
                    log=self.log,
                ),
            )
            if is_empty_result(recovered):
                raise RecoveryContractViolation(name) from error
            return Success(data=next_payload(recovered, data), context=context)

    async def _dispatch_success(
        self, data: Any, context: Mapping[str, Any], stack: WorkflowStack | None
    ) -> None:
        # A workflow that already carries a status is itself a follow-up; don't loop.
        if context.get("status"):
            return
        try:
            await invoke(self.dispatch, data, {**context, "status": self.success_state})
        except Exception as error:
            self.log.error(DispatchFailure("Failed to send success dispatch.", error), context, stack)

    async def _dispatch_failure(
        self,
        data: Any,
        error: BaseException,
        context: Mapping[str, Any],
        stack: WorkflowStack | None,
    ) -> None:
        if context.get("status"):
            return
        try:
            await invoke(
                self.dispatch, failure_payload(data, error), {**context, "status": self.fail_state}
            )
        except Exception as dispatch_error:
            self.log.error(
                DispatchFailure("Failed to send failure dispatch.", dispatch_error), context, stack
            )
