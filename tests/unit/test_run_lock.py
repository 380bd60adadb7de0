"""
Unit tests for WeekRunLock

Tests per-week serialization, re-entrancy within one task and the optional
Redis lock.
"""

import asyncio
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import LockError

from tutormatch.exceptions import MatchingRunInProgressError
from tutormatch.services.run_lock import WeekRunLock, redis_lock_name

WEEK = date(2025, 3, 10)
OTHER_WEEK = date(2025, 3, 17)


def fake_redis(acquired=True):
    redis_lock = MagicMock()
    redis_lock.acquire = AsyncMock(return_value=acquired)
    redis_lock.release = AsyncMock()
    client = MagicMock()
    client.lock.return_value = redis_lock
    return client, redis_lock


class TestLocalLock:

    @pytest.mark.asyncio
    async def test_concurrent_attempt_rejected_without_wait(self):
        lock = WeekRunLock(redis_provider=lambda: None)
        entered = asyncio.Event()
        release = asyncio.Event()

        async def holder():
            async with lock.hold(WEEK):
                entered.set()
                await release.wait()

        task = asyncio.create_task(holder())
        await entered.wait()

        with pytest.raises(MatchingRunInProgressError):
            async with lock.hold(WEEK, wait=False):
                pass

        release.set()
        await task
        assert not lock.is_locked(WEEK)

    @pytest.mark.asyncio
    async def test_waiting_attempt_runs_after_holder(self):
        lock = WeekRunLock(redis_provider=lambda: None)
        order = []

        async def run(name, delay):
            async with lock.hold(WEEK):
                order.append(f"{name} start")
                await asyncio.sleep(delay)
                order.append(f"{name} end")

        await asyncio.gather(run("first", 0.02), run("second", 0))

        assert order == ["first start", "first end", "second start", "second end"]

    @pytest.mark.asyncio
    async def test_reentrant_in_same_task(self):
        lock = WeekRunLock(redis_provider=lambda: None)

        async with lock.hold(WEEK):
            async with lock.hold(WEEK, wait=False):
                assert lock.is_locked(WEEK)
            assert lock.is_locked(WEEK)

        assert not lock.is_locked(WEEK)

    @pytest.mark.asyncio
    async def test_weeks_are_independent(self):
        lock = WeekRunLock(redis_provider=lambda: None)

        async with lock.hold(WEEK):
            async with lock.hold(OTHER_WEEK, wait=False):
                assert lock.is_locked(WEEK) and lock.is_locked(OTHER_WEEK)

    @pytest.mark.asyncio
    async def test_released_after_exception(self):
        lock = WeekRunLock(redis_provider=lambda: None)

        with pytest.raises(RuntimeError):
            async with lock.hold(WEEK):
                raise RuntimeError("boom")

        assert not lock.is_locked(WEEK)
        assert lock._locks == {}

    @pytest.mark.asyncio
    async def test_idle_weeks_are_forgotten(self):
        lock = WeekRunLock(redis_provider=lambda: None)

        for week in (WEEK, OTHER_WEEK):
            async with lock.hold(week):
                assert week in lock._locks

        assert lock._locks == {}
        assert lock._waiting == {}

    @pytest.mark.asyncio
    async def test_lock_kept_while_a_run_is_waiting(self):
        lock = WeekRunLock(redis_provider=lambda: None)
        entered = asyncio.Event()
        release = asyncio.Event()
        order = []

        async def holder():
            async with lock.hold(WEEK):
                entered.set()
                await release.wait()
                order.append("holder")

        async def waiter():
            async with lock.hold(WEEK):
                order.append("waiter")

        first = asyncio.create_task(holder())
        await entered.wait()
        second = asyncio.create_task(waiter())
        await asyncio.sleep(0)
        assert lock._waiting[WEEK] == 1

        release.set()
        await asyncio.gather(first, second)

        assert order == ["holder", "waiter"]
        assert lock._locks == {}


    @pytest.mark.asyncio
    async def test_redis_lock_taken_and_released(self):
        client, redis_lock = fake_redis()
        lock = WeekRunLock(redis_provider=lambda: client, redis_timeout=60)

        async with lock.hold(WEEK):
            redis_lock.acquire.assert_awaited_once()
            redis_lock.release.assert_not_awaited()

        client.lock.assert_called_once_with(redis_lock_name(WEEK), timeout=60, blocking=True)
        redis_lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_redis_lock_not_retaken_when_reentered(self):
        client, redis_lock = fake_redis()
        lock = WeekRunLock(redis_provider=lambda: client)

        async with lock.hold(WEEK):
            async with lock.hold(WEEK):
                pass

        assert client.lock.call_count == 1

    @pytest.mark.asyncio
    async def test_held_elsewhere_rejected(self):
        client, _ = fake_redis(acquired=False)
        lock = WeekRunLock(redis_provider=lambda: client)

        with pytest.raises(MatchingRunInProgressError):
            async with lock.hold(WEEK, wait=False):
                pass

        client.lock.assert_called_once()
        assert client.lock.call_args.kwargs["blocking"] is False
        assert not lock.is_locked(WEEK)

    @pytest.mark.asyncio
    async def test_expired_redis_lock_does_not_fail_run(self):
        client, redis_lock = fake_redis()
        redis_lock.release.side_effect = LockError("not owned")
        lock = WeekRunLock(redis_provider=lambda: client)

        async with lock.hold(WEEK):
            pass

        assert not lock.is_locked(WEEK)

    def test_lock_name(self):
        assert redis_lock_name(WEEK) == "tutormatch:matching-run:2025-03-10"
