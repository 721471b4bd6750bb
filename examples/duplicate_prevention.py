#!/usr/bin/env python3
"""Duplicate prevention with a prerequisite count (programmatic example).

This demonstrates:

* a generic ``willCreate`` rule that counts records with the same title
  before anything is created, for every namespace/relation
* ``doing*`` rules backed by an in-memory store
* a ``didGet`` rule that creates default settings when none exist yet

Run it directly, or through the CLI::

    rules-engine run --rules examples.duplicate_prevention:RULES \
        --verb create --namespace item --relation type --data '{"title": "Spoon"}'
"""

from __future__ import annotations

import argparse
import asyncio
import json
from collections import defaultdict
from typing import Any, Sequence

from rules_engine import EngineSettings, RulesEngine
from rules_engine.logging import configure_logging
from rules_engine.workflow.model import DataResult, Failure, StepInputs, TransformInputs

STORE: dict[str, list[dict[str, Any]]] = defaultdict(list)


def _collection(context: dict[str, Any]) -> list[dict[str, Any]]:
    return STORE[f"{context['namespace']}/{context['relation']}"]


def _count_query(inputs: TransformInputs) -> dict[str, Any]:
    return {"title": inputs.data["title"]}


def prevent_duplicates(inputs: StepInputs) -> Any:
    [count] = inputs.prerequisite_results
    if isinstance(count, Failure):
        raise count.error
    if count > 0:
        context = inputs.context
        message = (
            f"Duplicate Exception: another {context['namespace']}/{context['relation']} "
            "with the same title already exists."
        )
        inputs.log.warn(message, context, inputs.workflow_stack)
        raise ValueError(message)
    return None


def do_count(inputs: StepInputs) -> DataResult:
    title = inputs.data["query"]["title"]
    # A bare 0 would read as "no result".
    return DataResult(
        data=sum(1 for record in _collection(inputs.context) if record.get("title") == title)
    )


def do_create(inputs: StepInputs) -> dict[str, Any]:
    record = {"_id": len(_collection(inputs.context)) + 1, **inputs.data}
    _collection(inputs.context).append(record)
    return record


def do_get(inputs: StepInputs) -> list[dict[str, Any]]:
    return list(_collection(inputs.context))


def _settings_title(inputs: TransformInputs) -> str:
    if inputs.data:
        raise LookupError("Global Settings already exist. No need to create a new one.")
    inputs.log.info("Creating new global settings.", inputs.context)
    return "Global Settings"


def assure_one(inputs: StepInputs) -> list[Any]:
    [created] = inputs.prerequisite_results
    if isinstance(created, Failure):
        return inputs.data
    return [*inputs.data, created]


RULES: list[dict[str, Any]] = [
    {
        "verb": "willCreate",
        "description": "Count records with the same title to make sure none exist yet",
        "priority": 10,
        "prerequisites": [{"context": {"verb": "count"}, "query": _count_query}],
        "logic": prevent_duplicates,
    },
    {"verb": "doingCount", "description": "Count matching records", "logic": do_count},
    {"verb": "doingCreate", "description": "Store the record", "logic": do_create},
    {"verb": "doingGet", "description": "List the records", "logic": do_get},
    {
        "verb": "didGet",
        "namespace": "application",
        "relation": "globalSettings",
        "description": "Assure there is always a global settings object.",
        "priority": 10,
        "prerequisites": [
            {"context": {"verb": "create"}, "title": _settings_title, "timeout": 500},
        ],
        "logic": assure_one,
    },
]


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Duplicate prevention (programmatic example).")
    parser.add_argument("--title", default="Spoon", help="Title of the record to create twice")
    parser.add_argument("--log-level", default="WARNING", help="Log level")
    return parser.parse_args(argv)


async def _demo(title: str) -> None:
    engine = RulesEngine(RULES, EngineSettings(cache_age=0), dispatch=_print_dispatch)
    context = {"verb": "create", "namespace": "item", "relation": "type"}

    print(await engine.create_workflow(context), end="")

    created = await engine.execute({"title": title}, context)
    print("Created:", json.dumps(created))
    try:
        await engine.execute({"title": title}, context)
    except ValueError as e:
        print("Rejected:", e)

    settings = await engine.execute(
        [], {"verb": "get", "namespace": "application", "relation": "globalSettings"}
    )
    print("Global settings:", json.dumps(settings))


async def _print_dispatch(data: Any, context: dict[str, Any]) -> None:
    print(f"dispatch {context['verb']} {context.get('status')}")


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(args.log_level)
    asyncio.run(_demo(args.title))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
