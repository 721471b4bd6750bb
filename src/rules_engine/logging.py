"""Structured logging configuration and the engine's log provider.

Uses standard library logging with a JSON formatter. The engine itself only
talks to a :class:`LogProvider` (four severity methods taking the message,
the context and the optional workflow stack); :class:`StandardLogProvider`
forwards those calls to a ``logging.Logger``.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from rules_engine.workflow.serialization import task_short_name

if TYPE_CHECKING:
    from rules_engine.workflow.stack import WorkflowStack

_RESERVED_LOG_RECORD_ATTRS: set[str] = {
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}

LogMessage = str | BaseException


class LogProvider(Protocol):
    def debug(self, message: LogMessage, context: Any = None, workflow_stack: Any = None) -> None: ...

    def info(self, message: LogMessage, context: Any = None, workflow_stack: Any = None) -> None: ...

    def warn(self, message: LogMessage, context: Any = None, workflow_stack: Any = None) -> None: ...

    def error(self, message: LogMessage, context: Any = None, workflow_stack: Any = None) -> None: ...


class JsonFormatter(logging.Formatter):
    """A minimal JSON formatter for logging records."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_LOG_RECORD_ATTRS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        # Contexts carry arbitrary criteria values.
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str) -> None:
    """Configure root logging with structured JSON output."""

    root = logging.getLogger()

    # Remove any existing handlers to avoid duplicate logs when re-configuring.
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter())

    root.addHandler(handler)
    root.setLevel(level.upper())


class StandardLogProvider:
    """Forward engine log calls to a standard library logger.

    The short name of the context and, when the engine runs with a workflow
    stack, a snapshot of it are attached as ``extra`` fields.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("rules_engine")

    def _log(
        self,
        level: int,
        message: LogMessage,
        context: Any,
        workflow_stack: WorkflowStack | None,
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        extra: dict[str, Any] = {}
        if isinstance(context, Mapping):
            extra["rule_context"] = task_short_name(context)
        if workflow_stack is not None:
            extra["workflow_stack"] = workflow_stack.snapshot()
        if isinstance(message, BaseException):
            self.logger.log(
                level,
                str(message),
                exc_info=(type(message), message, message.__traceback__),
                extra=extra,
            )
        else:
            self.logger.log(level, message, extra=extra)

    def debug(self, message: LogMessage, context: Any = None, workflow_stack: Any = None) -> None:
        self._log(logging.DEBUG, message, context, workflow_stack)

    def info(self, message: LogMessage, context: Any = None, workflow_stack: Any = None) -> None:
        self._log(logging.INFO, message, context, workflow_stack)

    def warn(self, message: LogMessage, context: Any = None, workflow_stack: Any = None) -> None:
        self._log(logging.WARNING, message, context, workflow_stack)

    def error(self, message: LogMessage, context: Any = None, workflow_stack: Any = None) -> None:
        self._log(logging.ERROR, message, context, workflow_stack)


class MergedLogProvider:
    """A log provider where any subset of the four methods is overridden."""

    _METHODS = ("debug", "info", "warn", "error")

    def __init__(self, base: LogProvider, overrides: Any = None) -> None:
        for name in self._METHODS:
            method = _lookup(overrides, name) if overrides is not None else None
            setattr(self, name, method if callable(method) else getattr(base, name))


def _lookup(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)
