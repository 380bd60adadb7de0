"""
Matching Run Lock

Serializes matching runs per target week. Within one process an asyncio.Lock
per week is used; the owning task may re-acquire it (the weekly cycle holds
the lock while it calls the matching orchestrator). When Redis is configured
the same lock is also taken in Redis so separate workers do not overlap.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Callable, Dict, Optional

from redis.exceptions import LockError

from tutormatch.database import get_redis
from tutormatch.exceptions import MatchingRunInProgressError

logger = logging.getLogger(__name__)

REDIS_LOCK_PREFIX = "tutormatch:matching-run"
# Upper bound on a single run; the Redis key expires after this
REDIS_LOCK_TIMEOUT_SECONDS = 1800


def redis_lock_name(target_week: date) -> str:
    return f"{REDIS_LOCK_PREFIX}:{target_week.isoformat()}"


class WeekRunLock:
    """One matching run per target week at a time"""

    def __init__(
        self,
        redis_provider: Callable = get_redis,
        redis_timeout: int = REDIS_LOCK_TIMEOUT_SECONDS,
    ):
        self.redis_provider = redis_provider
        self.redis_timeout = redis_timeout
        self._locks: Dict[date, asyncio.Lock] = {}
        self._owners: Dict[date, asyncio.Task] = {}
        self._depth: Dict[date, int] = {}
        self._waiting: Dict[date, int] = {}

    def is_locked(self, target_week: date) -> bool:
        lock = self._locks.get(target_week)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, target_week: date, wait: bool = True):
        """
        Hold the run lock for a week.

        Args:
            target_week: Monday of the week being processed
            wait: Block until the lock is free; if False, fail immediately

        Raises:
            MatchingRunInProgressError: If wait is False and another run holds the lock
        """
        task = asyncio.current_task()

        if task is not None and self._owners.get(target_week) is task:
            self._depth[target_week] += 1
            try:
                yield
            finally:
                self._depth[target_week] -= 1
        else:
            lock = self._locks.setdefault(target_week, asyncio.Lock())
            if not wait and lock.locked():
                raise MatchingRunInProgressError(target_week)

            self._waiting[target_week] = self._waiting.get(target_week, 0) + 1
            try:
                await lock.acquire()
            finally:
                self._waiting[target_week] -= 1
                self._discard_if_idle(target_week, lock)

            redis_lock = None
            try:
                redis_lock = await self._acquire_redis(target_week, wait)
                self._owners[target_week] = task
                self._depth[target_week] = 1
                yield
            finally:
                self._owners.pop(target_week, None)
                self._depth.pop(target_week, None)
                if redis_lock is not None:
                    await self._release_redis(redis_lock, target_week)
                lock.release()
                self._discard_if_idle(target_week, lock)

    def _discard_if_idle(self, target_week: date, lock: asyncio.Lock) -> None:
        """Forget a week's lock once nobody holds or waits for it."""
        if lock.locked() or self._waiting.get(target_week, 0) > 0:
            return
        if self._locks.get(target_week) is lock:
            del self._locks[target_week]
        self._waiting.pop(target_week, None)

    async def _acquire_redis(self, target_week: date, wait: bool):
        client = self.redis_provider()
        if client is None:
            return None

        redis_lock = client.lock(
            redis_lock_name(target_week),
            timeout=self.redis_timeout,
            blocking=wait,
        )
        acquired = await redis_lock.acquire()
        if not acquired:
            raise MatchingRunInProgressError(target_week)

        logger.debug(f"Acquired Redis run lock for week {target_week}")
        return redis_lock

    async def _release_redis(self, redis_lock, target_week: date) -> None:
        try:
            await redis_lock.release()
        except LockError:
            # Expired while the run was still going
            logger.warning(f"Redis run lock for week {target_week} was already released")


_run_lock: Optional[WeekRunLock] = None


def get_run_lock() -> WeekRunLock:
    """Get or create the process-wide WeekRunLock."""
    global _run_lock
    if _run_lock is None:
        _run_lock = WeekRunLock()
    return _run_lock
