"""
Shared fixtures

Every test gets its own in-memory SQLite database (aiosqlite) with the full
schema, plus a small factory for users, availability and requests.
"""

from datetime import date
from typing import Iterable, Optional

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tutormatch.database import init_models
from tutormatch.models import (
    AvailabilitySlot, RequestStatus, RequestType, Subject, Timeslot, TutoringRequest, User, YearGroup,
)
from tutormatch.services.matching_service import MatchingService
from tutormatch.services.recurrence_service import RecurrenceService
from tutormatch.services.run_lock import WeekRunLock

# A Monday
WEEK = date(2025, 3, 10)
NEXT_WEEK = date(2025, 3, 17)


class DataFactory:
    """Creates committed rows and returns detached, fully loaded instances"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self._users = 0

    async def timeslots(self) -> dict:
        """Create the full Monday-Friday, Period 1-7 timetable once; label -> Timeslot."""
        async with self.session_factory() as session:
            existing = (await session.execute(select(Timeslot))).scalars().all()
            if not existing:
                session.add_all([Timeslot(label=label) for label in Timeslot.all_labels()])
                await session.commit()
                existing = (await session.execute(select(Timeslot))).scalars().all()
            return {timeslot.label: timeslot for timeslot in existing}

    async def subject(self, name: str = "Mathematics") -> Subject:
        async with self.session_factory() as session:
            subject = (await session.execute(select(Subject).where(Subject.name == name))).scalar_one_or_none()
            if subject is None:
                subject = Subject(name=name)
                session.add(subject)
                await session.commit()
            return subject

    async def user(
        self,
        year_group: YearGroup = YearGroup.YEAR_12,
        max_sessions: int = 3,
        availability: Iterable[str] = (),
    ) -> User:
        self._users += 1
        async with self.session_factory() as session:
            user = User(
                full_name=f"Student {self._users}",
                email=f"student{self._users}@school.test",
                year_group=year_group,
                max_sessions_per_week=max_sessions,
            )
            session.add(user)
            await session.flush()
            for label in availability:
                day, period = Timeslot.parse_label(label)
                session.add(AvailabilitySlot(user_id=user.id, day_of_week=day, period=period))
            await session.commit()
            return await session.get(User, user.id, populate_existing=True)

    async def request(
        self,
        user: User,
        subject: Subject,
        kind: RequestType,
        target_week: date = WEEK,
        timeslots: Iterable[str] = (),
        status: RequestStatus = RequestStatus.OUTSTANDING,
        year_group: Optional[YearGroup] = None,
        is_recurring: bool = False,
        matched_partner_id: Optional[int] = None,
    ) -> TutoringRequest:
        labels = list(timeslots)
        await self.timeslots()
        async with self.session_factory() as session:
            possible = []
            if labels:
                result = await session.execute(
                    select(Timeslot).where(Timeslot.label.in_(labels)).order_by(Timeslot.id)
                )
                possible = list(result.scalars().all())
            request = TutoringRequest(
                user_id=user.id,
                subject_id=subject.id,
                kind=kind,
                status=status,
                year_group=year_group or user.year_group,
                target_week=target_week,
                is_recurring=is_recurring,
                matched_partner_id=matched_partner_id,
                possible_timeslots=possible,
            )
            session.add(request)
            await session.commit()
            return await session.get(TutoringRequest, request.id, populate_existing=True)

    async def tutor_request(self, user: User, subject: Subject, **kwargs) -> TutoringRequest:
        return await self.request(user, subject, RequestType.TUTOR, **kwargs)

    async def tutee_request(self, user: User, subject: Subject, timeslots: Iterable[str], **kwargs) -> TutoringRequest:
        return await self.request(user, subject, RequestType.TUTEE, timeslots=timeslots, **kwargs)

    async def reload(self, request_id: int) -> TutoringRequest:
        async with self.session_factory() as session:
            return await session.get(TutoringRequest, request_id)

    async def requests_for_week(self, target_week: date):
        async with self.session_factory() as session:
            result = await session.execute(
                select(TutoringRequest)
                .where(TutoringRequest.target_week == target_week)
                .order_by(TutoringRequest.id)
            )
            return list(result.scalars().all())


@pytest.fixture
async def db_engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def data(session_factory):
    return DataFactory(session_factory)


@pytest.fixture
def run_lock():
    return WeekRunLock(redis_provider=lambda: None)


@pytest.fixture
def matching_service(session_factory, run_lock):
    return MatchingService(session_factory, run_lock=run_lock)


@pytest.fixture
def recurrence_service(session_factory, run_lock):
    return RecurrenceService(session_factory, run_lock=run_lock)
