"""
Tests for KeyedLock and SingleFlight.
"""

import asyncio

import pytest

from composition.utils.concurrency import KeyedLock, SingleFlight


@pytest.mark.unit
@pytest.mark.asyncio
class TestKeyedLock:
    """Test per-key serialization."""

    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order = []

        async def worker(name: str):
            async with locks.acquire("k"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-in", "a-out", "b-in", "b-out"]

    async def test_different_keys_run_concurrently(self):
        locks = KeyedLock()
        entered = asyncio.Event()

        async def holder():
            async with locks.acquire("a"):
                await entered.wait()

        task = asyncio.create_task(holder())
        await asyncio.sleep(0)
        async with locks.acquire("b"):
            assert locks.locked("a")
            entered.set()
        await task

    async def test_idle_locks_are_dropped(self):
        locks = KeyedLock()
        async with locks.acquire("k"):
            assert len(locks) == 1
        assert len(locks) == 0
        assert not locks.locked("k")

    async def test_lock_released_on_error(self):
        locks = KeyedLock()
        with pytest.raises(RuntimeError):
            async with locks.acquire("k"):
                raise RuntimeError("boom")
        assert len(locks) == 0


@pytest.mark.unit
@pytest.mark.asyncio
class TestSingleFlight:
    """Test deduplication of concurrent work."""

    async def test_concurrent_callers_share_result(self):
        flight = SingleFlight()
        calls = 0

        async def work():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.02)
            return "done"

        results = await asyncio.gather(*(flight.run("k", work) for _ in range(5)))

        assert results == ["done"] * 5
        assert calls == 1
        assert not flight.is_inflight("k")

    async def test_sequential_calls_run_again(self):
        flight = SingleFlight()
        calls = 0

        async def work():
            nonlocal calls
            calls += 1
            return calls

        assert await flight.run("k", work) == 1
        assert await flight.run("k", work) == 2

    async def test_error_reaches_every_caller(self):
        flight = SingleFlight()

        async def work():
            await asyncio.sleep(0.01)
            raise ValueError("bad")

        results = await asyncio.gather(
            flight.run("k", work), flight.run("k", work), return_exceptions=True
        )

        assert all(isinstance(result, ValueError) for result in results)

    async def test_follower_takes_over_when_leader_is_cancelled(self):
        flight = SingleFlight()
        calls = 0

        async def work():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.05)
            return calls

        leader = asyncio.create_task(flight.run("k", work))
        await asyncio.sleep(0)
        follower = asyncio.create_task(flight.run("k", work))
        await asyncio.sleep(0.01)
        leader.cancel()

        assert await follower == 2
        assert leader.cancelled()
