"""
Concurrency primitives shared by the cache store and the orchestrator.

- KeyedLock: serializes writers per key without a global lock
- SingleFlight: first caller computes, concurrent callers await the same result
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Hashable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

T = TypeVar("T")


class KeyedLock:
    """One asyncio.Lock per key, created on demand and dropped when idle."""

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._holders: dict[Hashable, int] = {}

    @asynccontextmanager
    async def acquire(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


class SingleFlight:
    """
    Deduplicates concurrent work per key.

    The first caller for a key runs the factory; callers arriving while it is
    in flight await the same future. If the leader is cancelled (for example
    because its own root render was aborted), waiting callers that are not
    themselves being cancelled retry and one of them becomes the new leader.
    """

    def __init__(self):
        self._inflight: dict[Hashable, asyncio.Future] = {}

    def is_inflight(self, key: Hashable) -> bool:
        return key in self._inflight

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        while True:
            existing = self._inflight.get(key)
            if existing is None:
                return await self._lead(key, factory)

            try:
                return await asyncio.shield(existing)
            except asyncio.CancelledError:
                task = asyncio.current_task()
                if existing.cancelled() and task is not None and not task.cancelling():
                    continue
                raise

    async def _lead(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume_exception)
        self._inflight[key] = future
        try:
            result = await factory()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]


def _consume_exception(future: asyncio.Future) -> Any:
    # Followers may never await a failed future; mark the exception retrieved.
    if not future.cancelled():
        future.exception()
