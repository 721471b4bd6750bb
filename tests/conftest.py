"""Test configuration and fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from rules_engine.config import EngineSettings
from rules_engine.workflow.context import ContextResolver
from rules_engine.workflow.executor import WorkflowExecutor


class RecordingDispatch:
    """Async dispatch that records every ``(data, context)`` it receives."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, dict[str, Any]]] = []

    async def __call__(self, data: Any, context: dict[str, Any]) -> None:
        self.calls.append((data, context))

    @property
    def statuses(self) -> list[str | None]:
        return [context.get("status") for _, context in self.calls]


class RecordingLog:
    """Log provider that keeps ``(level, message)`` pairs."""

    def __init__(self) -> None:
        self.records: list[tuple[str, Any]] = []

    def _record(self, level: str, message: Any) -> None:
        self.records.append((level, message))

    def debug(self, message: Any, context: Any = None, workflow_stack: Any = None) -> None:
        self._record("debug", message)

    def info(self, message: Any, context: Any = None, workflow_stack: Any = None) -> None:
        self._record("info", message)

    def warn(self, message: Any, context: Any = None, workflow_stack: Any = None) -> None:
        self._record("warn", message)

    def error(self, message: Any, context: Any = None, workflow_stack: Any = None) -> None:
        self._record("error", message)

    def messages(self, level: str) -> list[Any]:
        return [message for lvl, message in self.records if lvl == level]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Any) -> None:
    """Keep a developer's environment / .env out of settings-driven tests."""
    for name in (
        "CACHE_AGE",
        "ENABLE_WORKFLOW_STACK",
        "SUCCESS_STATE",
        "FAIL_STATE",
        "CONTEXT_EXCLUDED_FIELDS",
        "MAX_DEPTH",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(f"RULES_ENGINE_{name}", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def dispatch() -> RecordingDispatch:
    return RecordingDispatch()


@pytest.fixture
def log() -> RecordingLog:
    return RecordingLog()


@pytest.fixture
def resolver() -> ContextResolver:
    return ContextResolver()


@pytest.fixture
def executor(
    dispatch: RecordingDispatch, log: RecordingLog, resolver: ContextResolver
) -> WorkflowExecutor:
    return WorkflowExecutor(dispatch, log, resolver)


@pytest.fixture
def settings() -> EngineSettings:
    """Provide settings with caching disabled."""
    return EngineSettings(cache_age=0)


@pytest.fixture
def request_context() -> dict[str, Any]:
    return {"verb": "create", "namespace": "item", "relation": "type"}
