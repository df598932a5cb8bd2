"""
Single-Flight Loading

Deduplicates concurrent loads of the same resource. While a load for a key is
in flight, every caller awaiting that key shares the same future; the entry is
removed as soon as the load finishes, whether it succeeded or failed.

Caching the *result* is the caller's job. This registry only tracks pending
work, so a failed load is retried by the next caller.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Generic, Hashable, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Registry of in-progress loads keyed by cache key."""

    def __init__(self) -> None:
        self._pending: Dict[Hashable, asyncio.Future[T]] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._pending

    async def do(self, key: Hashable, loader: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``loader`` for ``key`` unless a load is already pending, in which
        case wait for that one instead.
        """
        pending = self._pending.get(key)
        if pending is not None:
            # shield: one waiter being cancelled must not cancel the shared load
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(loader())
        self._pending[key] = task
        task.add_done_callback(lambda done: self._clear(key, done))
        return await asyncio.shield(task)

    def _clear(self, key: Hashable, done: asyncio.Future[T]) -> None:
        if self._pending.get(key) is done:
            del self._pending[key]
