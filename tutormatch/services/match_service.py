"""
Match Store

Persists tutor/tutee pairings. Each pairing is written in its own
transaction together with the status flips of both requests, so a run that
stops midway leaves only complete pairings behind.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import aliased

from tutormatch.database import AsyncSessionLocal
from tutormatch.exceptions import PairingError, RequestNotFoundError
from tutormatch.models import (
    MATCH_STATUS_ACTIVE, Match, RequestStatus, RequestType, Timeslot, TutoringRequest,
)

logger = logging.getLogger(__name__)

# Tutor requests keep accepting tutees until the tutor's weekly capacity is used
_PAIRABLE_TUTOR_STATUSES = (RequestStatus.OUTSTANDING, RequestStatus.MATCHED)


class MatchService:
    """Async store for Match records"""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def save(self, match: Match) -> Match:
        async with self.session_factory() as session:
            session.add(match)
            await session.commit()
            return await session.get(Match, match.id, populate_existing=True)

    async def create_match(
        self,
        tutor_request_id: int,
        tutee_request_id: int,
        timeslot_id: int,
    ) -> Match:
        """
        Materialize one pairing atomically.

        Inserts the Match, flips both requests to MATCHED and links them as
        matched partners. A tutor request that already has a partner keeps it.

        Raises:
            RequestNotFoundError: If either request no longer exists
            PairingError: If either request can no longer be paired
        """
        async with self.session_factory() as session:
            async with session.begin():
                tutor_request = await self._lock_request(session, tutor_request_id)
                tutee_request = await self._lock_request(session, tutee_request_id)

                if tutee_request.kind != RequestType.TUTEE or tutor_request.kind != RequestType.TUTOR:
                    raise PairingError(
                        f"Requests {tutor_request_id}/{tutee_request_id} are not a tutor/tutee pair"
                    )
                if tutee_request.status != RequestStatus.OUTSTANDING:
                    raise PairingError(
                        f"Tutee request {tutee_request_id} is {tutee_request.status.value}, not OUTSTANDING"
                    )
                if tutor_request.status not in _PAIRABLE_TUTOR_STATUSES:
                    raise PairingError(
                        f"Tutor request {tutor_request_id} is {tutor_request.status.value}"
                    )

                match = Match(
                    tutor_request_id=tutor_request.id,
                    tutee_request_id=tutee_request.id,
                    timeslot_id=timeslot_id,
                    status=MATCH_STATUS_ACTIVE,
                    # A regenerated pair that meets again keeps its agreement
                    recurrence_accepted=(
                        tutee_request.is_recurring
                        and tutee_request.recurring_tutor_id == tutor_request.user_id
                    ),
                )
                session.add(match)

                tutee_request.status = RequestStatus.MATCHED
                tutee_request.matched_partner_id = tutor_request.id
                tutor_request.status = RequestStatus.MATCHED
                if tutor_request.matched_partner_id is None:
                    tutor_request.matched_partner_id = tutee_request.id

            return await session.get(Match, match.id, populate_existing=True)

    async def _lock_request(self, session, request_id: int) -> TutoringRequest:
        result = await session.execute(
            select(TutoringRequest)
            .where(TutoringRequest.id == request_id)
            .with_for_update()
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    async def find_all(self, target_week: Optional[date] = None) -> List[Match]:
        """All matches, optionally restricted to one target week, oldest first."""
        async with self.session_factory() as session:
            stmt = select(Match).order_by(Match.id)
            if target_week is not None:
                stmt = stmt.join(
                    TutoringRequest, Match.tutor_request_id == TutoringRequest.id
                ).where(TutoringRequest.target_week == target_week)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count(self) -> int:
        async with self.session_factory() as session:
            result = await session.execute(select(func.count(Match.id)))
            return result.scalar() or 0

    async def booked_sessions_for_week(
        self,
        target_week: date,
    ) -> Tuple[Dict[int, int], Set[Tuple[int, str]]]:
        """
        Sessions already committed for a week.

        Returns:
            (sessions per tutor user id, set of (tutor user id, timeslot label))
        """
        tutor_request = aliased(TutoringRequest)
        async with self.session_factory() as session:
            result = await session.execute(
                select(tutor_request.user_id, Timeslot.label)
                .select_from(Match)
                .join(tutor_request, Match.tutor_request_id == tutor_request.id)
                .join(Timeslot, Match.timeslot_id == Timeslot.id)
                .where(
                    tutor_request.target_week == target_week,
                    Match.status == MATCH_STATUS_ACTIVE,
                )
            )
            rows = result.all()

        sessions: Dict[int, int] = defaultdict(int)
        slots: Set[Tuple[int, str]] = set()
        for tutor_id, label in rows:
            sessions[tutor_id] += 1
            slots.add((tutor_id, label))
        return dict(sessions), slots

    async def delete_all(self) -> int:
        async with self.session_factory() as session:
            result = await session.execute(delete(Match))
            await session.commit()
            return result.rowcount

    async def clear_all_matches(self) -> Dict[str, int]:
        """
        Delete every match and reset the linked requests to OUTSTANDING.

        Destructive administrative reset; not part of a normal weekly cycle.
        """
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(Match.tutor_request_id, Match.tutee_request_id)
                )
                request_ids = {request_id for row in result.all() for request_id in row}

                reset = 0
                if request_ids:
                    reset_result = await session.execute(
                        update(TutoringRequest)
                        .where(
                            TutoringRequest.id.in_(request_ids),
                            TutoringRequest.status == RequestStatus.MATCHED,
                        )
                        .values(status=RequestStatus.OUTSTANDING, matched_partner_id=None)
                        .execution_options(synchronize_session=False)
                    )
                    reset = reset_result.rowcount

                deleted = await session.execute(delete(Match))

        logger.warning(f"Cleared {deleted.rowcount} matches and reset {reset} requests to OUTSTANDING")
        return {"matches_deleted": deleted.rowcount, "requests_reset": reset}
