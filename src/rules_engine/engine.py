"""Main engine implementation."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from rules_engine.cache import TTLMemoizer
from rules_engine.config import EngineSettings
from rules_engine.dispatch import EngineDispatcher
from rules_engine.errors import EngineConfigurationError, InvalidRequest
from rules_engine.logging import LogProvider, MergedLogProvider, StandardLogProvider
from rules_engine.workflow.builder import WorkflowBuilder
from rules_engine.workflow.context import ContextResolver
from rules_engine.workflow.executor import WorkflowExecutor
from rules_engine.workflow.model import Dispatch, Rule, Task, Workflow
from rules_engine.workflow.rule_index import RuleIndex, RulesProvider
from rules_engine.workflow.steps import Tenses, merge_steps

logger = logging.getLogger(__name__)

_REQUIRED_REQUEST_FIELDS = ("verb", "namespace", "relation")


class RulesEngine:
    """Resolve and run the business rules applicable to a request.

    The engine wires a rules provider, a workflow builder and a workflow
    executor together, and memoizes built workflows for
    ``settings.cache_age`` seconds.
    """

    def __init__(
        self,
        rules: Sequence[Rule | Mapping[str, Any]] | RulesProvider | None,
        settings: EngineSettings | None = None,
        *,
        dispatch: Dispatch | None = None,
        log: LogProvider | Mapping[str, Any] | None = None,
        steps: Mapping[str, Tenses | list[str]] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            rules: A non-empty list of rules (``Rule`` objects or dicts), or any
                object with an async ``find(context)`` method.
            settings: Settings object. If None, loads from environment.
            dispatch: Completion-event callable ``(data, context)``. Defaults
                to re-entering this engine with the status-bearing context.
            log: Log provider; may override any subset of
                ``debug``/``info``/``warn``/``error``.
            steps: Extra verbs, or replacement tenses for default verbs.
        """
        self.settings = settings or EngineSettings()
        self.rules_provider = self._rules_provider(rules)

        if dispatch is not None and not callable(dispatch):
            raise EngineConfigurationError("`dispatch` should be a callable.")

        self.steps = merge_steps(steps)
        self.log = MergedLogProvider(StandardLogProvider(), log)
        self.dispatch: Dispatch = dispatch or EngineDispatcher(self)
        self.resolver = ContextResolver(self.settings.context_excluded_fields)

        self.builder = WorkflowBuilder(
            self.steps,
            self.rules_provider,
            self.log,
            self.resolver,
            max_depth=self.settings.max_depth,
        )
        self.executor = WorkflowExecutor(
            self.dispatch,
            self.log,
            self.resolver,
            success_state=self.settings.success_state,
            fail_state=self.settings.fail_state,
            enable_workflow_stack=self.settings.enable_workflow_stack,
        )
        self._memoized_create = TTLMemoizer(self.builder.create_workflow, self.settings.cache_age)

        logger.debug(
            "Rules engine initialized",
            extra={"verbs": sorted(self.steps), "cache_age": self.settings.cache_age},
        )

    @staticmethod
    def _rules_provider(rules: Any) -> RulesProvider:
        if rules is None:
            raise EngineConfigurationError(
                "`rules` should be passed as the first argument to the RulesEngine constructor"
            )
        if isinstance(rules, list | tuple):
            if not rules:
                raise EngineConfigurationError("At least 1 rule should be provided.")
            return RuleIndex(rules)
        if callable(getattr(rules, "find", None)):
            return rules
        raise EngineConfigurationError(
            "`rules` should either be a list, or an object with a `find` method."
        )

    @property
    def states(self) -> dict[str, str]:
        return {"success": self.settings.success_state, "fail": self.settings.fail_state}

    async def create_workflow(self, context: Mapping[str, Any]) -> Workflow:
        """Build (or fetch from cache) the workflow for ``context``."""

        return await self._memoized_create(context)

    async def execute(
        self,
        data: Any,
        context_or_workflow: Mapping[str, Any] | Workflow | list[Task],
        context: Mapping[str, Any] | None = None,
    ) -> Any:
        """Run the rules for a request and return the resulting payload.

        Called as ``execute(data, context)`` the workflow is built first;
        called as ``execute(data, workflow, context)`` a pre-built workflow is
        run as-is.
        """

        workflow = context_or_workflow
        if context is None:
            candidate = context_or_workflow
            if not isinstance(candidate, Mapping) or not all(
                candidate.get(field) for field in _REQUIRED_REQUEST_FIELDS
            ):
                raise InvalidRequest(
                    "A proper context is required. The third argument is missing, "
                    "and the second argument does not appear to be a context."
                )
            context = candidate
            workflow = await self.builder.create_workflow(context)
        return await self.executor.execute(data, workflow, context)
