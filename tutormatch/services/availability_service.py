"""Availability Store - read-only access to users' weekly availability slots"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from tutormatch.database import AsyncSessionLocal
from tutormatch.models import AvailabilitySlot, Weekday

logger = logging.getLogger(__name__)

_DAY_ORDER = {day: index for index, day in enumerate(Weekday)}


def _timetable_order(slot: AvailabilitySlot):
    return (_DAY_ORDER[slot.day_of_week], slot.period.number)


class AvailabilityService:
    """Async store for availability slots, ordered Monday P1 first"""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def find_by_user(self, user_id: int) -> List[AvailabilitySlot]:
        slots = await self.find_by_users([user_id])
        return slots.get(user_id, [])

    async def find_by_users(self, user_ids: Iterable[int]) -> Dict[int, List[AvailabilitySlot]]:
        user_ids = sorted(set(user_ids))
        if not user_ids:
            return {}

        async with self.session_factory() as session:
            result = await session.execute(
                select(AvailabilitySlot).where(AvailabilitySlot.user_id.in_(user_ids))
            )
            slots = result.scalars().all()

        by_user: Dict[int, List[AvailabilitySlot]] = defaultdict(list)
        for slot in sorted(slots, key=lambda s: (s.user_id,) + _timetable_order(s)):
            by_user[slot.user_id].append(slot)

        logger.debug(f"Loaded {len(slots)} availability slots for {len(user_ids)} users")
        return dict(by_user)
