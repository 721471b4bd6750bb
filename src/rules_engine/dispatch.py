"""Default dispatcher: completion events re-enter the engine.

A ``success``/``fail`` dispatch is just another request, addressed by the
same context plus a ``status``, so rules such as ``didCreate`` with
``status="success"`` react to completed workflows.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from rules_engine.engine import RulesEngine

logger = logging.getLogger(__name__)


class EngineDispatcher:
    """Run the follow-up workflow in the background, without awaiting it.

    With caching enabled the workflow is built (or fetched) before returning,
    so a build failure surfaces to the executor, which logs it as a dispatch
    failure.
    """

    def __init__(self, engine: RulesEngine) -> None:
        self.engine = engine
        self._pending: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> frozenset[asyncio.Task[Any]]:
        return frozenset(self._pending)

    async def __call__(self, data: Any, context: Mapping[str, Any]) -> None:
        if self.engine.settings.cache_age:
            workflow = await self.engine.create_workflow(context)
            self._schedule(self.engine.execute(data, workflow, context), context)
        else:
            self._schedule(self.engine.execute(data, context), context)

    def _schedule(self, coro: Any, context: Mapping[str, Any]) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(lambda done: self._finished(done, context))

    def _finished(self, task: asyncio.Task[Any], context: Mapping[str, Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(
                "Dispatched workflow failed: %s",
                error,
                extra={"status": context.get("status"), "verb": context.get("verb")},
            )

    async def drain(self) -> None:
        """Wait for every dispatched workflow scheduled so far."""

        while True:
            pending = [task for task in self._pending if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)
