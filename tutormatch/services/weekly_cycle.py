"""
Weekly Matching Cycle

Regenerates recurring requests and then runs matching for the same week,
holding the week's run lock for the whole sequence.
"""

import logging
import time
from datetime import date
from typing import Any, Dict, Optional

from tutormatch.services.matching_service import MatchingService, get_matching_service
from tutormatch.services.recurrence_service import RecurrenceService, get_recurrence_service
from tutormatch.services.run_lock import WeekRunLock, get_run_lock
from tutormatch.services.target_week import ensure_monday, upcoming_monday

logger = logging.getLogger(__name__)


class WeeklyCycle:
    def __init__(
        self,
        matching_service: Optional[MatchingService] = None,
        recurrence_service: Optional[RecurrenceService] = None,
        run_lock: Optional[WeekRunLock] = None,
    ):
        self.matching_service = matching_service or get_matching_service()
        self.recurrence_service = recurrence_service or get_recurrence_service()
        self.run_lock = run_lock or get_run_lock()

    async def run(self, target_week: Optional[date] = None, wait: bool = True) -> Dict[str, Any]:
        """
        Run one full cycle.

        Args:
            target_week: Monday to schedule; defaults to the upcoming Monday
            wait: Wait for a concurrent run of the same week instead of failing

        Returns:
            Summary dict with target_week, recurring_pairs_generated,
            matches_created and duration_ms
        """
        target_week = ensure_monday(target_week or upcoming_monday())
        start_time = time.time()

        async with self.run_lock.hold(target_week, wait=wait):
            logger.info(f"Starting weekly matching cycle for week {target_week}")
            pairs = await self.recurrence_service.generate_for_week(target_week)
            matches = await self.matching_service.run_for_week(target_week)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Weekly cycle for week {target_week} complete: {pairs} recurring pairs, "
            f"{matches} matches in {duration_ms:.2f}ms"
        )
        return {
            "target_week": target_week.isoformat(),
            "recurring_pairs_generated": pairs,
            "matches_created": matches,
            "duration_ms": duration_ms,
        }


_weekly_cycle: Optional[WeeklyCycle] = None


def get_weekly_cycle() -> WeeklyCycle:
    """Get or create global WeeklyCycle instance."""
    global _weekly_cycle
    if _weekly_cycle is None:
        _weekly_cycle = WeeklyCycle()
    return _weekly_cycle
