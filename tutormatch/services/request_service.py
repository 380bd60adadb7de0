"""
Tutoring Request Store

Reads and writes TutoringRequest rows for the matching engine and the
recurrence generator. Enforces the "one outstanding request per user,
subject and kind" invariant on creation.
"""

import logging
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutormatch.database import AsyncSessionLocal
from tutormatch.exceptions import DuplicateRequestError, RequestNotFoundError
from tutormatch.models import (
    RequestStatus, RequestType, Timeslot, TutoringRequest, User, YearGroup,
)
from tutormatch.services.target_week import ensure_monday

logger = logging.getLogger(__name__)


class RequestService:
    """Async store for tutoring requests"""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def find_outstanding_by_kind_and_week(
        self,
        kind: RequestType,
        target_week: date,
    ) -> List[TutoringRequest]:
        """Outstanding requests of one kind for one week, ordered by id."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(TutoringRequest)
                .where(
                    TutoringRequest.kind == kind,
                    TutoringRequest.status == RequestStatus.OUTSTANDING,
                    TutoringRequest.target_week == target_week,
                )
                .order_by(TutoringRequest.id)
            )
            return list(result.scalars().all())

    async def find_by_id(self, request_id: int) -> Optional[TutoringRequest]:
        async with self.session_factory() as session:
            return await session.get(TutoringRequest, request_id)

    async def get_by_id(self, request_id: int) -> TutoringRequest:
        """
        Fetch a request or fail.

        Raises:
            RequestNotFoundError: If no request has this id
        """
        request = await self.find_by_id(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    async def find_all(self) -> List[TutoringRequest]:
        async with self.session_factory() as session:
            result = await session.execute(select(TutoringRequest).order_by(TutoringRequest.id))
            return list(result.scalars().all())

    async def find_recurring(self) -> List[TutoringRequest]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TutoringRequest)
                .where(TutoringRequest.is_recurring.is_(True))
                .order_by(TutoringRequest.id)
            )
            return list(result.scalars().all())

    async def count_by_status(self) -> dict:
        """Number of requests per (kind, status), keyed "KIND:STATUS"."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(TutoringRequest.kind, TutoringRequest.status, func.count(TutoringRequest.id))
                .group_by(TutoringRequest.kind, TutoringRequest.status)
            )
            return {f"{kind.value}:{status.value}": count for kind, status, count in result.all()}

    async def save(self, request: TutoringRequest) -> TutoringRequest:
        async with self.session_factory() as session:
            merged = await session.merge(request)
            await session.commit()
            return await session.get(TutoringRequest, merged.id, populate_existing=True)

    async def create_request(
        self,
        user_id: int,
        subject_id: int,
        kind: RequestType,
        target_week: date,
        timeslot_ids: Sequence[int] = (),
        is_recurring: bool = False,
    ) -> TutoringRequest:
        """
        Create an outstanding request, capturing the owner's current year group.

        Raises:
            DuplicateRequestError: If the user already has an outstanding
                request for this subject and kind
            ValueError: If the user or a timeslot does not exist, or a tutee
                request has no timeslots
        """
        ensure_monday(target_week)

        async with self.session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise ValueError(f"User {user_id} not found")

            request = await self.create_in_session(
                session,
                user_id=user_id,
                subject_id=subject_id,
                kind=kind,
                year_group=user.year_group,
                target_week=target_week,
                timeslot_ids=timeslot_ids,
                is_recurring=is_recurring,
            )
            await session.commit()
            logger.info(
                f"Created {kind.value} request {request.id} for user {user_id}, "
                f"subject {subject_id}, week {target_week}"
            )
            return await session.get(TutoringRequest, request.id, populate_existing=True)

    async def find_outstanding_in_session(
        self,
        session: AsyncSession,
        user_id: int,
        subject_id: int,
        kind: RequestType,
    ) -> Optional[TutoringRequest]:
        result = await session.execute(
            select(TutoringRequest)
            .where(
                TutoringRequest.user_id == user_id,
                TutoringRequest.subject_id == subject_id,
                TutoringRequest.kind == kind,
                TutoringRequest.status == RequestStatus.OUTSTANDING,
            )
            .order_by(TutoringRequest.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_in_session(
        self,
        session: AsyncSession,
        user_id: int,
        subject_id: int,
        kind: RequestType,
        year_group: YearGroup,
        target_week: date,
        timeslot_ids: Sequence[int] = (),
        is_recurring: bool = False,
    ) -> TutoringRequest:
        """Insert a request inside the caller's transaction (flushes, does not commit)."""
        existing = await self.find_outstanding_in_session(session, user_id, subject_id, kind)
        if existing is not None:
            raise DuplicateRequestError(
                f"User {user_id} already has an outstanding {kind.value} request "
                f"for subject {subject_id} (request {existing.id})"
            )

        timeslots = []
        if timeslot_ids:
            result = await session.execute(
                select(Timeslot).where(Timeslot.id.in_(list(timeslot_ids))).order_by(Timeslot.id)
            )
            timeslots = list(result.scalars().all())
            if len(timeslots) != len(set(timeslot_ids)):
                raise ValueError(f"Unknown timeslot in {list(timeslot_ids)}")

        if kind == RequestType.TUTEE and not timeslots:
            raise ValueError("At least one valid timeslot is required for a tutee request")

        request = TutoringRequest(
            user_id=user_id,
            subject_id=subject_id,
            kind=kind,
            status=RequestStatus.OUTSTANDING,
            year_group=year_group,
            target_week=target_week,
            is_recurring=is_recurring,
            possible_timeslots=timeslots,
        )
        session.add(request)
        await session.flush()
        return request
