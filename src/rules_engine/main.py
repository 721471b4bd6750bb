"""CLI entrypoint: inspect and run rule workflows from the shell.

Rules are loaded from a Python module attribute (``package.module:RULES``)
holding a list of rules or a rules provider.
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import logging
import sys
from typing import Any

from pydantic import ValidationError

from rules_engine import __version__
from rules_engine.config import EngineSettings
from rules_engine.dispatch import EngineDispatcher
from rules_engine.engine import RulesEngine
from rules_engine.errors import (
    InvalidRequest,
    MalformedPrerequisite,
    RulesEngineError,
    UnknownVerb,
    WorkflowCycleError,
)
from rules_engine.logging import configure_logging

logger = logging.getLogger(__name__)


def load_rules(reference: str) -> Any:
    """Import ``module:attribute`` and return the attribute."""

    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Expected 'module:attribute', got {reference!r}")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attribute)
    except AttributeError as e:
        raise ValueError(f"Module {module_name!r} has no attribute {attribute!r}") from e


def _request_context(args: argparse.Namespace) -> dict[str, Any]:
    context: dict[str, Any] = {"verb": args.verb}
    if args.namespace:
        context["namespace"] = args.namespace
    if args.relation:
        context["relation"] = args.relation
    return context


def _add_request_arguments(parser: argparse.ArgumentParser, *, addressed: bool) -> None:
    parser.add_argument(
        "--rules",
        required=True,
        help="Rules to load, in the form 'package.module:ATTRIBUTE'",
    )
    parser.add_argument("--verb", required=True, help="Verb of the request, e.g. 'create'")
    parser.add_argument(
        "--namespace",
        required=addressed,
        default=None,
        help="Namespace of the request",
    )
    parser.add_argument(
        "--relation",
        required=addressed,
        default=None,
        help="Relation of the request",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rules-engine",
        description="Build and run business-rule workflows",
    )
    parser.add_argument(
        "--version", action="version", version=f"rules-workflow-engine {__version__}"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level (e.g. DEBUG)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    describe = subparsers.add_parser("describe", help="Print the workflow resolved for a request")
    _add_request_arguments(describe, addressed=False)
    describe.add_argument(
        "--json",
        action="store_true",
        help="Print the JSON summary instead of the tree",
    )

    run = subparsers.add_parser("run", help="Execute the workflow for a request")
    _add_request_arguments(run, addressed=True)
    run.add_argument(
        "--data",
        default="{}",
        help="Input payload as JSON (default: '{}')",
    )

    return parser


async def _describe(engine: RulesEngine, args: argparse.Namespace) -> int:
    workflow = await engine.create_workflow(_request_context(args))
    if args.json:
        print(json.dumps(workflow.to_json(), indent=2, ensure_ascii=False))
    else:
        print(workflow.to_string(), end="")
    return 0


async def _run(engine: RulesEngine, args: argparse.Namespace, data: Any) -> int:
    try:
        result = await engine.execute(data, _request_context(args))
    finally:
        # Follow-up workflows run in the background; let them finish first.
        if isinstance(engine.dispatch, EngineDispatcher):
            await engine.dispatch.drain()
    print(json.dumps(result, indent=2, ensure_ascii=False, default=str))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = EngineSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your environment / .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(args.log_level or settings.log_level)

    try:
        engine = RulesEngine(load_rules(args.rules), settings)
        data = json.loads(args.data) if args.command == "run" else None
    except (RulesEngineError, ValueError, ImportError) as e:
        logger.warning(str(e), extra={"command": args.command})
        print(str(e), file=sys.stderr)
        return 3

    try:
        if args.command == "describe":
            return asyncio.run(_describe(engine, args))

        if args.command == "run":
            return asyncio.run(_run(engine, args, data))

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except (InvalidRequest, UnknownVerb, MalformedPrerequisite, WorkflowCycleError) as e:
        logger.warning(str(e), extra={"command": args.command})
        print(str(e), file=sys.stderr)
        return 3

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
