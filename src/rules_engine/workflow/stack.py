"""Per-execution annotations of a workflow tree.

The built workflow is immutable and may be shared between runs (it is
cached), so run state is kept here, in an arena of the tree's tasks indexed
in depth-first order and looked up by task identity.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from rules_engine.workflow.model import Task, Workflow
from rules_engine.workflow.serialization import task_short_name


class StepState(str, Enum):
    ACTIVE = "_ACTIVE"
    SKIPPED = "_SKIPPED"
    ABORTED = "_ABORTED"


@dataclass(slots=True)
class StepAnnotation:
    state: StepState
    message: str | None = None


class WorkflowStack:
    """Read/write view over one run of a workflow.

    Only the executor writes to it. Log providers and step logic may read it
    (``snapshot()``) to see which step is running, which were skipped and
    which aborted.
    """

    def __init__(self, workflow: Workflow) -> None:
        self.workflow = workflow
        self._arena: list[Task] = []
        self._index: dict[int, int] = {}
        self._annotations: dict[int, StepAnnotation] = {}
        self._register(workflow)

    def _register(self, workflow: Workflow) -> None:
        for task in workflow:
            if id(task) not in self._index:
                self._index[id(task)] = len(self._arena)
                self._arena.append(task)
            for prerequisite in task.prerequisites:
                self._register(prerequisite)

    def __len__(self) -> int:
        return len(self._arena)

    def node_id(self, task: Task) -> int:
        return self._index[id(task)]

    def get(self, task: Task) -> StepAnnotation | None:
        node = self._index.get(id(task))
        return None if node is None else self._annotations.get(node)

    def _set(self, task: Task, annotation: StepAnnotation) -> None:
        node = self._index.get(id(task))
        if node is None:
            # Task not part of the tree this stack was created for.
            node = len(self._arena)
            self._index[id(task)] = node
            self._arena.append(task)
        self._annotations[node] = annotation

    def mark_active(self, task: Task) -> None:
        self._set(task, StepAnnotation(StepState.ACTIVE))

    def mark_skipped(self, task: Task) -> None:
        self._set(task, StepAnnotation(StepState.SKIPPED))

    def mark_aborted(self, task: Task, message: str) -> None:
        self._set(task, StepAnnotation(StepState.ABORTED, message))

    def clear_active(self, task: Task) -> None:
        annotation = self.get(task)
        if annotation is not None and annotation.state is StepState.ACTIVE:
            del self._annotations[self.node_id(task)]

    def snapshot(self) -> list[dict[str, Any]]:
        """The workflow tree with the current annotations applied.

        Skipped steps are listed without their prerequisites, since those never
        ran.
        """

        return self._render(self.workflow)

    def _render(self, workflow: Workflow) -> list[dict[str, Any]]:
        rendered: list[dict[str, Any]] = []
        for task in workflow:
            entry: dict[str, Any] = {
                "name": task_short_name(task),
                "description": task.description,
            }
            annotation = self.get(task)
            if annotation is not None:
                entry[annotation.state.value] = (
                    annotation.message if annotation.state is StepState.ABORTED else True
                )
            skipped = annotation is not None and annotation.state is StepState.SKIPPED
            if task.prerequisites and not skipped:
                entry["prerequisites"] = [self._render(p) for p in task.prerequisites]
            rendered.append(entry)
        return rendered
