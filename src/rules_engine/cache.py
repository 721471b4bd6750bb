"""Time bounded memoization of async calls keyed by a context."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from rules_engine.workflow.builder import canonical_context

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class _Entry(Generic[T]):
    created_at: float
    future: asyncio.Future[T]


class TTLMemoizer(Generic[T]):
    """Memoize ``func(context)`` for ``max_age`` seconds.

    Calls with equal contexts (compared through their canonical JSON form)
    share one result, including while it is still being computed. A call
    that raises is not cached.
    """

    def __init__(
        self,
        func: Callable[[Mapping[str, Any]], Awaitable[T]],
        max_age: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.func = func
        self.max_age = max_age
        self.clock = clock
        self._entries: dict[str, _Entry[T]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    async def __call__(self, context: Mapping[str, Any]) -> T:
        if self.max_age <= 0:
            return await self.func(context)

        key = canonical_context(context)
        now = self.clock()
        self._purge(now)
        entry = self._entries.get(key)
        if entry is not None:
            return await asyncio.shield(entry.future)

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._entries[key] = _Entry(created_at=now, future=future)
        try:
            result = await self.func(context)
        except asyncio.CancelledError:
            self._evict(key, future)
            future.cancel()
            raise
        except Exception as error:
            self._evict(key, future)
            future.set_exception(error)
            # Mark retrieved: there may be no other waiter.
            future.exception()
            raise
        future.set_result(result)
        logger.debug("Cached result for %s", key)
        return result

    def _purge(self, now: float) -> None:
        # Entries are inserted in creation order, so the stale ones come first.
        while self._entries:
            key, entry = next(iter(self._entries.items()))
            if now - entry.created_at < self.max_age:
                return
            del self._entries[key]

    def _evict(self, key: str, future: asyncio.Future[T]) -> None:
        entry = self._entries.get(key)
        if entry is not None and entry.future is future:
            del self._entries[key]
