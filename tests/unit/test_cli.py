"""Unit tests for the CLI entrypoint."""

from __future__ import annotations

import json
import logging
import sys
import textwrap
from collections.abc import Iterator
from pathlib import Path

import pytest

from rules_engine.main import build_parser, load_rules, main

RULES_MODULE = textwrap.dedent(
    """
    def _create(inputs):
        return {**inputs.data, "created": True}

    def _fail(inputs):
        raise RuntimeError("storage offline")

    RULES = [
        {"verb": "willCreate", "description": "Check",
         "prerequisites": [{"context": {"verb": "count"}, "title": "x"}]},
        {"verb": "doingCount", "description": "Count"},
        {"verb": "doingCreate", "namespace": "item", "description": "Store", "logic": _create},
        {"verb": "doingRemove", "description": "Remove", "logic": _fail},
    ]
    """
)


@pytest.fixture
def rules_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[str]:
    (tmp_path / "cli_rules.py").write_text(RULES_MODULE, encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.setenv("RULES_ENGINE_CACHE_AGE", "0")
    yield "cli_rules:RULES"
    sys.modules.pop("cli_rules", None)


@pytest.fixture(autouse=True)
def _restore_root_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_run_requires_namespace_and_relation() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["run", "--rules", "m:R", "--verb", "create"])


def test_load_rules_rejects_bad_reference() -> None:
    with pytest.raises(ValueError):
        load_rules("no_attribute")


def test_describe_prints_tree(rules_module: str, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(
        [
            "--log-level",
            "ERROR",
            "describe",
            "--rules",
            rules_module,
            "--verb",
            "create",
            "--namespace",
            "item",
            "--relation",
            "type",
        ]
    )

    assert code == 0
    assert capsys.readouterr().out == (
        "─┐ Workflow for create_item_type - \n"
        " ├─┐ willCreate_{generic}_{generic} - Check\n"
        " │ ├── TRANSFORMATION_{generic}_{generic} - Data transformation towards count_item_type\n"
        " │ └── doingCount_{generic}_{generic} - Count\n"
        " └── doingCreate_item_{generic} - Store\n"
    )


def test_describe_json(rules_module: str, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(
        ["--log-level", "ERROR", "describe", "--rules", rules_module, "--verb", "remove", "--json"]
    )

    assert code == 0
    assert json.loads(capsys.readouterr().out) == [
        {"name": "doingRemove_{generic}_{generic}", "description": "Remove"}
    ]


def test_run_prints_result(rules_module: str, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(
        [
            "--log-level",
            "ERROR",
            "run",
            "--rules",
            rules_module,
            "--verb",
            "create",
            "--namespace",
            "item",
            "--relation",
            "type",
            "--data",
            '{"title": "Spoon"}',
        ]
    )

    assert code == 0
    out = capsys.readouterr().out
    assert json.loads(out[out.index("{") :]) == {"title": "Spoon", "created": True}


def test_run_failure_exit_code(rules_module: str) -> None:
    code = main(
        [
            "--log-level",
            "CRITICAL",
            "run",
            "--rules",
            rules_module,
            "--verb",
            "remove",
            "--namespace",
            "item",
            "--relation",
            "type",
        ]
    )

    assert code == 1


def test_unknown_verb_exit_code(rules_module: str) -> None:
    code = main(
        ["--log-level", "CRITICAL", "describe", "--rules", rules_module, "--verb", "archive"]
    )

    assert code == 3


def test_missing_rules_module_exit_code() -> None:
    assert main(["--log-level", "CRITICAL", "describe", "--rules", "missing_mod:R", "--verb", "get"]) == 3
