"""
Recurring Request Generator

A matched pair can agree to meet again: the tutee requests recurrence, the
tutor accepts it for that tutee. Acceptance is recorded on the Match, since
one tutor request can be matched with several tutees. Before each weekly
matching run the generator creates fresh OUTSTANDING requests for every agreed
pair and hands the agreement over to them, so it lasts until either side
cancels it.
"""

import logging
import time
from datetime import date
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from tutormatch.database import AsyncSessionLocal
from tutormatch.exceptions import RecurrenceValidationError, RequestNotFoundError
from tutormatch.models import MATCH_STATUS_ACTIVE, Match, RequestStatus, RequestType, TutoringRequest
from tutormatch.services.request_service import RequestService
from tutormatch.services.run_lock import WeekRunLock, get_run_lock
from tutormatch.services.target_week import ensure_monday, upcoming_monday

logger = logging.getLogger(__name__)


class RecurrenceService:
    """Recurrence agreements and weekly regeneration of recurring requests"""

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        request_service: Optional[RequestService] = None,
        run_lock: Optional[WeekRunLock] = None,
    ):
        self.session_factory = session_factory
        self.request_service = request_service or RequestService(session_factory)
        self.run_lock = run_lock or get_run_lock()

    async def request_recurrence(self, tutee_request_id: int) -> TutoringRequest:
        """
        Tutee asks to continue with the same tutor next week.

        Raises:
            RequestNotFoundError: If the request does not exist
            RecurrenceValidationError: If it is not a MATCHED tutee request
        """
        async with self.session_factory() as session:
            request = await self._get(session, tutee_request_id)
            if request.kind != RequestType.TUTEE:
                raise RecurrenceValidationError(
                    f"Only tutee requests can request recurrence (request {request.id} is {request.kind.value})"
                )
            if request.status != RequestStatus.MATCHED:
                raise RecurrenceValidationError(
                    f"Request {request.id} must be MATCHED to request recurrence, not {request.status.value}"
                )

            request.is_recurring = True
            await session.commit()
            logger.info(f"Recurrence requested by tutee request {request.id}")
            return request

    async def accept_recurrence(
        self,
        tutor_request_id: int,
        tutee_request_id: Optional[int] = None,
    ) -> TutoringRequest:
        """
        Tutor accepts recurrence requested by their matched tutees.

        Only tutees that have already asked are accepted. With
        tutee_request_id the acceptance is limited to that one tutee.

        Raises:
            RequestNotFoundError: If the request does not exist
            RecurrenceValidationError: If it is not a MATCHED tutor request, the
                tutee is not matched with it, or no matched tutee has requested
                recurrence
        """
        async with self.session_factory() as session:
            request = await self._get(session, tutor_request_id)
            if request.kind != RequestType.TUTOR:
                raise RecurrenceValidationError(
                    f"Only tutor requests can accept recurrence (request {request.id} is {request.kind.value})"
                )
            if request.status != RequestStatus.MATCHED:
                raise RecurrenceValidationError(
                    f"Request {request.id} must be MATCHED to accept recurrence, not {request.status.value}"
                )

            matches = await self._matches(session, Match.tutor_request_id == request.id)
            if tutee_request_id is not None:
                matches = [match for match in matches if match.tutee_request_id == tutee_request_id]
                if not matches:
                    raise RecurrenceValidationError(
                        f"Tutee request {tutee_request_id} is not matched with request {request.id}"
                    )

            requested = [match for match in matches if match.tutee_request.is_recurring]
            if not requested:
                raise RecurrenceValidationError(
                    f"Matched tutee of request {request.id} has not requested recurrence"
                )

            for match in requested:
                match.recurrence_accepted = True
            request.is_recurring = True
            await session.commit()
            logger.info(
                f"Recurrence accepted by tutor request {request.id} for tutee requests "
                f"{[match.tutee_request_id for match in requested]}"
            )
            return request

    async def cancel_recurrence(self, request_id: int) -> TutoringRequest:
        """
        Stop recurrence for a request.

        Cancelling a tutee request ends its agreement with its tutor; the
        tutor request stays recurring only while other tutees are still
        accepted. Cancelling a tutor request ends the agreements with all of
        its tutees.
        """
        async with self.session_factory() as session:
            request = await self._get(session, request_id)
            request.is_recurring = False

            if request.kind == RequestType.TUTEE:
                for match in await self._matches(session, Match.tutee_request_id == request.id):
                    match.recurrence_accepted = False
                    tutor = await session.get(TutoringRequest, match.tutor_request_id)
                    if tutor is not None:
                        tutor.is_recurring = await self._has_other_agreements(
                            session, tutor.id, exclude_match_id=match.id
                        )
            else:
                for match in await self._matches(session, Match.tutor_request_id == request.id):
                    match.recurrence_accepted = False
                    tutee = await session.get(TutoringRequest, match.tutee_request_id)
                    if tutee is not None:
                        tutee.is_recurring = False

            await session.commit()
            logger.info(f"Recurrence cancelled for request {request.id}")
            return request

    async def list_recurring_requests(self) -> List[TutoringRequest]:
        return await self.request_service.find_recurring()

    async def generate_for_upcoming_week(self, wait: bool = True) -> int:
        return await self.generate_for_week(upcoming_monday(), wait=wait)

    async def generate_for_week(self, target_week: date, wait: bool = True) -> int:
        """
        Create next-week requests for every agreed recurring pair.

        Only pairs from earlier weeks are considered. An OUTSTANDING request
        that already exists for the same user, subject and kind is reused, and
        the agreement moves to the new pair, so running this twice for the same
        week creates nothing new.

        Returns:
            Number of pairs processed successfully
        """
        target_week = ensure_monday(target_week)

        async with self.run_lock.hold(target_week, wait=wait):
            start_time = time.time()
            pairs = await self._find_recurring_pairs(target_week)
            logger.info(f"Generating recurring requests for week {target_week}: {len(pairs)} pairs")

            processed = 0
            for match in pairs:
                try:
                    await self._regenerate_pair(match, target_week)
                    processed += 1
                except Exception as e:
                    logger.error(
                        f"Failed to regenerate recurring pair {match.tutor_request_id}/{match.tutee_request_id}: {e}",
                        exc_info=True,
                    )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                f"Recurring generation for week {target_week} complete: "
                f"{processed}/{len(pairs)} pairs in {duration_ms:.2f}ms"
            )
            return processed

    async def _matches(self, session: AsyncSession, condition) -> List[Match]:
        result = await session.execute(
            select(Match)
            .where(condition, Match.status == MATCH_STATUS_ACTIVE)
            .order_by(Match.id)
        )
        return list(result.scalars().all())

    async def _has_other_agreements(self, session: AsyncSession, tutor_request_id: int, exclude_match_id: int) -> bool:
        result = await session.execute(
            select(func.count(Match.id)).where(
                Match.tutor_request_id == tutor_request_id,
                Match.recurrence_accepted.is_(True),
                Match.id != exclude_match_id,
            )
        )
        return result.scalar_one() > 0

    async def _find_recurring_pairs(self, target_week: date) -> List[Match]:
        """Accepted matches from earlier weeks whose tutee still wants to recur."""
        tutee = aliased(TutoringRequest)
        tutor = aliased(TutoringRequest)
        async with self.session_factory() as session:
            result = await session.execute(
                select(Match)
                .join(tutee, Match.tutee_request_id == tutee.id)
                .join(tutor, Match.tutor_request_id == tutor.id)
                .where(
                    Match.status == MATCH_STATUS_ACTIVE,
                    Match.recurrence_accepted.is_(True),
                    tutee.is_recurring.is_(True),
                    tutee.status == RequestStatus.MATCHED,
                    tutor.status == RequestStatus.MATCHED,
                    tutee.target_week < target_week,
                )
                .order_by(Match.id)
            )
            return list(result.scalars().all())

    async def _regenerate_pair(self, match: Match, target_week: date) -> None:
        """
        Create (or reuse) next week's requests for one agreed pair.

        The agreement moves to the new requests in the same transaction: the
        source match is no longer accepted and the source requests stop
        recurring, so only the latest pair is ever regenerated.
        """
        tutee_request = match.tutee_request
        tutor_request = match.tutor_request

        async with self.session_factory() as session:
            async with session.begin():
                for source in (tutee_request, tutor_request):
                    target = await self.request_service.find_outstanding_in_session(
                        session, source.user_id, source.subject_id, source.kind
                    )
                    if target is not None:
                        target.is_recurring = True
                        logger.debug(
                            f"Reusing outstanding {source.kind.value} request {target.id} "
                            f"for user {source.user_id}"
                        )
                    else:
                        target = await self.request_service.create_in_session(
                            session,
                            user_id=source.user_id,
                            subject_id=source.subject_id,
                            kind=source.kind,
                            year_group=source.year_group,
                            target_week=target_week,
                            timeslot_ids=[timeslot.id for timeslot in source.possible_timeslots],
                            is_recurring=True,
                        )
                        logger.debug(
                            f"Created recurring {source.kind.value} request {target.id} "
                            f"from request {source.id}"
                        )
                    if source.kind == RequestType.TUTEE:
                        target.recurring_tutor_id = tutor_request.user_id

                source_match = await session.get(Match, match.id)
                source_match.recurrence_accepted = False
                source_tutee = await session.get(TutoringRequest, tutee_request.id)
                source_tutee.is_recurring = False
                source_tutor = await session.get(TutoringRequest, tutor_request.id)
                source_tutor.is_recurring = await self._has_other_agreements(
                    session, tutor_request.id, exclude_match_id=match.id
                )

    async def _get(self, session: AsyncSession, request_id: int) -> TutoringRequest:
        request = await session.get(TutoringRequest, request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request


_recurrence_service: Optional[RecurrenceService] = None


def get_recurrence_service() -> RecurrenceService:
    """Get or create global RecurrenceService instance."""
    global _recurrence_service
    if _recurrence_service is None:
        _recurrence_service = RecurrenceService()
    return _recurrence_service
