"""Unit tests for the per-run workflow stack."""

from __future__ import annotations

from rules_engine.workflow.model import Task, Workflow
from rules_engine.workflow.stack import StepState, WorkflowStack


def _tree() -> tuple[Workflow, Task, Task, Task]:
    count = Task(verb="doingCount", description="Count")
    check = Task(verb="willCreate", description="Check", prerequisites=(Workflow(tasks=(count,)),))
    store = Task(verb="doingCreate", description="Store")
    return Workflow(tasks=(check, store)), check, count, store


def test_tasks_are_indexed_depth_first() -> None:
    workflow, check, count, store = _tree()
    stack = WorkflowStack(workflow)

    assert len(stack) == 3
    assert [stack.node_id(task) for task in (check, count, store)] == [0, 1, 2]


def test_annotations_do_not_touch_the_workflow() -> None:
    workflow, check, count, store = _tree()
    stack = WorkflowStack(workflow)

    stack.mark_active(check)
    stack.mark_aborted(count, "backend down")
    stack.mark_skipped(store)

    assert stack.get(check).state is StepState.ACTIVE
    assert stack.get(count).message == "backend down"
    assert WorkflowStack(workflow).get(check) is None


def test_clear_active_keeps_other_states() -> None:
    workflow, check, _, store = _tree()
    stack = WorkflowStack(workflow)

    stack.mark_active(check)
    stack.clear_active(check)
    stack.mark_aborted(store, "boom")
    stack.clear_active(store)

    assert stack.get(check) is None
    assert stack.get(store).state is StepState.ABORTED


def test_snapshot_renders_annotations() -> None:
    workflow, check, count, store = _tree()
    stack = WorkflowStack(workflow)

    stack.mark_aborted(count, "backend down")
    stack.mark_active(check)

    assert stack.snapshot() == [
        {
            "name": "willCreate_{generic}_{generic}",
            "description": "Check",
            "_ACTIVE": True,
            "prerequisites": [
                [
                    {
                        "name": "doingCount_{generic}_{generic}",
                        "description": "Count",
                        "_ABORTED": "backend down",
                    }
                ]
            ],
        },
        {"name": "doingCreate_{generic}_{generic}", "description": "Store"},
    ]


def test_skipped_task_hides_its_prerequisites() -> None:
    workflow, check, _, _ = _tree()
    stack = WorkflowStack(workflow)

    stack.mark_skipped(check)

    assert stack.snapshot()[0] == {
        "name": "willCreate_{generic}_{generic}",
        "description": "Check",
        "_SKIPPED": True,
    }
