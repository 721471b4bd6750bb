"""Human readable renderings of a resolved workflow.

Both renderings are recomputed on every call; nothing is cached on the
workflow.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

GENERIC = "{generic}"
NO_WORKFLOW = "- No Workflow Defined -"


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def task_short_name(task: Any) -> str:
    """``verb_namespace_relation[_status]`` for a task or a context."""

    verb = _field(task, "verb") or "transformation"
    namespace = _field(task, "namespace") or GENERIC
    relation = _field(task, "relation") or GENERIC
    status = _field(task, "status")
    if status:
        return f"{verb}_{namespace}_{relation}_{status}"
    return f"{verb}_{namespace}_{relation}"


def task_description(task: Any) -> str:
    return f"{task_short_name(task)} - {_field(task, 'description') or ''}"


def _tree(prefix: str, workflow: Iterable[Any], user_context: Any) -> str:
    tasks = list(workflow)
    if not tasks:
        return NO_WORKFLOW
    result = ""
    if not prefix:
        result = f"─┐ Workflow for {task_description(user_context)}\n"

    for index, task in enumerate(tasks):
        prerequisites = _field(task, "prerequisites") or ()
        if prerequisites:
            marker = "├─┐"
        elif index == len(tasks) - 1:
            marker = "└──"
        else:
            marker = "├──"
        result += f"{prefix} {marker} {task_description(task)}\n"
        for prerequisite in prerequisites:
            result += _tree(prefix + " │", prerequisite, user_context)
    return result


def workflow_to_string(workflow: Iterable[Any], context: Mapping[str, Any]) -> str:
    """Render the workflow as a box-drawing tree.

    Example::

        ─┐ Workflow for remove_item_type -
         ├─┐ willRemove_item_type - Prevent deletion of types still in use
         │ ├── TRANSFORMATION_{generic}_{generic} - Data transformation towards count_item_item
         │ └── doingCount_{generic}_{generic} - Count records
         └── doingRemove_{generic}_{generic} - Remove the record
    """

    return _tree("", workflow, context)


def workflow_to_json(workflow: Iterable[Any]) -> list[dict[str, Any]]:
    """Simplified tree of ``{name, description, prerequisites?}`` entries."""

    result: list[dict[str, Any]] = []
    for task in workflow:
        entry: dict[str, Any] = {
            "name": task_short_name(task),
            "description": _field(task, "description"),
        }
        prerequisites = _field(task, "prerequisites") or ()
        if prerequisites:
            entry["prerequisites"] = [workflow_to_json(p) for p in prerequisites]
        result.append(entry)
    return result
