"""
Weekly Matching Orchestrator

Runs the maximum-matching pipeline for one target week:

1. Load outstanding tutor and tutee requests for the week
2. Build the candidate graph from requests and tutor availability
3. Solve it with Hopcroft-Karp
4. Persist accepted pairings, one transaction per pairing

A tutee with several acceptable timeslots appears as several left nodes, and a
tutor's replicated session nodes may be picked for the same day and period.
Pairings that break those rules are rejected at persistence time, so the run
repeats on the still-unmatched tutees (with the new bookings counted) until a
round produces no new matches.
"""

import logging
import time
from datetime import date
from typing import Any, Dict, Optional, Set, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from tutormatch.algorithms.bipartite_matching import MatchingResult
from tutormatch.database import AsyncSessionLocal
from tutormatch.models import RequestStatus, RequestType
from tutormatch.services.availability_service import AvailabilityService
from tutormatch.services.candidate_builder import CandidateGraph, CandidateGraphBuilder
from tutormatch.services.match_service import MatchService
from tutormatch.services.request_service import RequestService
from tutormatch.services.run_lock import WeekRunLock, get_run_lock
from tutormatch.services.target_week import ensure_monday, upcoming_monday

logger = logging.getLogger(__name__)


class MatchingService:
    """Matches outstanding tutee requests to tutor sessions for a week"""

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        request_service: Optional[RequestService] = None,
        availability_service: Optional[AvailabilityService] = None,
        match_service: Optional[MatchService] = None,
        run_lock: Optional[WeekRunLock] = None,
    ):
        self.session_factory = session_factory
        self.request_service = request_service or RequestService(session_factory)
        self.availability_service = availability_service or AvailabilityService(session_factory)
        self.match_service = match_service or MatchService(session_factory)
        self.run_lock = run_lock or get_run_lock()

    async def run_for_upcoming_week(self, wait: bool = True) -> int:
        return await self.run_for_week(upcoming_monday(), wait=wait)

    async def run_for_week(self, target_week: date, wait: bool = True) -> int:
        """
        Match all outstanding requests for a target week.

        Args:
            target_week: Monday of the week to schedule
            wait: Wait for a concurrent run of the same week instead of failing

        Returns:
            Number of Match records created

        Raises:
            InvalidTargetWeekError: If target_week is not a Monday
            MatchingRunInProgressError: If wait is False and the week is locked
        """
        target_week = ensure_monday(target_week)

        async with self.run_lock.hold(target_week, wait=wait):
            return await self._run_locked(target_week)

    async def _run_locked(self, target_week: date) -> int:
        start_time = time.time()
        logger.info(f"Starting matching run for week {target_week}")

        tutor_requests = await self.request_service.find_outstanding_by_kind_and_week(
            RequestType.TUTOR, target_week
        )
        tutee_requests = await self.request_service.find_outstanding_by_kind_and_week(
            RequestType.TUTEE, target_week
        )

        if not tutor_requests or not tutee_requests:
            logger.info(
                f"Nothing to match for week {target_week}: "
                f"{len(tutor_requests)} tutor requests, {len(tutee_requests)} tutee requests"
            )
            return 0

        availability = await self.availability_service.find_by_users(
            {request.user_id for request in tutor_requests}
        )

        total_created = 0
        rounds = 0
        failed_tutees: Set[int] = set()
        pending = list(tutee_requests)

        while pending:
            rounds += 1
            sessions_booked, slots_booked = await self.match_service.booked_sessions_for_week(target_week)

            candidate = CandidateGraphBuilder(
                tutee_requests=pending,
                tutor_requests=tutor_requests,
                availability_by_user=availability,
                sessions_booked=sessions_booked,
                slots_booked=slots_booked,
            ).build()
            result = candidate.graph.solve()
            logger.debug(f"Round {rounds}: solver matched {result.size} nodes")

            created, matched, failed = await self._persist(candidate, result, sessions_booked, slots_booked)
            total_created += created
            failed_tutees |= failed

            if created == 0:
                break
            pending = [
                request for request in pending
                if request.id not in matched and request.id not in failed_tutees
            ]

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Matching run for week {target_week} complete: {total_created} matches created "
            f"from {len(tutee_requests)} tutee and {len(tutor_requests)} tutor requests "
            f"in {rounds} rounds ({duration_ms:.2f}ms)"
        )
        if failed_tutees:
            logger.warning(f"{len(failed_tutees)} tutee requests could not be paired: {sorted(failed_tutees)}")

        return total_created

    async def _persist(
        self,
        candidate: CandidateGraph,
        result: MatchingResult,
        sessions_booked: Dict[int, int],
        slots_booked: Set[Tuple[int, str]],
    ) -> Tuple[int, Set[int], Set[int]]:
        """
        Write the solver's pairs in left-node order.

        Returns:
            (matches created, tutee request ids matched, tutee request ids that failed)
        """
        sessions = dict(sessions_booked)
        slots = set(slots_booked)
        matched: Set[int] = set()
        failed: Set[int] = set()
        created = 0

        for left_id, right_id in result.pairs():
            tutee_node = candidate.tutee_nodes[left_id]
            tutor_node = candidate.tutor_nodes[right_id]
            tutee_request = tutee_node.request
            tutor = tutor_node.tutor

            if tutee_request.id in matched:
                logger.debug(f"Tutee request {tutee_request.id} already matched this run, skipping {tutee_node.timeslot.label}")
                continue

            tutor_request = candidate.tutor_request_for(tutor.id, tutee_request.subject_id)
            if tutor_request is None:
                logger.warning(
                    f"No tutor request for tutor {tutor.id} in subject {tutee_request.subject_id}, "
                    f"skipping tutee request {tutee_request.id}"
                )
                continue

            if sessions.get(tutor.id, 0) >= tutor.session_capacity:
                logger.warning(f"Tutor {tutor.id} is at capacity, skipping tutee request {tutee_request.id}")
                continue

            if tutor_node.slot_key in slots:
                logger.warning(
                    f"Tutor {tutor.id} already booked for {tutor_node.label}, "
                    f"skipping tutee request {tutee_request.id}"
                )
                continue

            try:
                match = await self.match_service.create_match(
                    tutor_request_id=tutor_request.id,
                    tutee_request_id=tutee_request.id,
                    timeslot_id=tutee_node.timeslot.id,
                )
            except Exception as e:
                logger.error(
                    f"Failed to pair tutor request {tutor_request.id} with tutee request "
                    f"{tutee_request.id}: {e}",
                    exc_info=True,
                )
                failed.add(tutee_request.id)
                continue

            created += 1
            matched.add(tutee_request.id)
            sessions[tutor.id] = sessions.get(tutor.id, 0) + 1
            slots.add(tutor_node.slot_key)
            logger.debug(
                f"Match {match.id}: tutor request {tutor_request.id} -> tutee request "
                f"{tutee_request.id} at {tutor_node.label}"
            )

        return created, matched, failed

    async def get_matching_stats(self) -> Dict[str, Any]:
        """
        Request and match counts for the admin dashboard.

        Returns:
            Dict with outstanding_tutors, outstanding_tutees, total_matches,
            total_requests, matching_potential and matching_efficiency (percent)
        """
        by_status = await self.request_service.count_by_status()
        total_matches = await self.match_service.count()

        outstanding_tutors = by_status.get(f"{RequestType.TUTOR.value}:{RequestStatus.OUTSTANDING.value}", 0)
        outstanding_tutees = by_status.get(f"{RequestType.TUTEE.value}:{RequestStatus.OUTSTANDING.value}", 0)
        total_requests = sum(by_status.values())

        efficiency = round(total_matches / total_requests * 100, 1) if total_requests else 0.0

        return {
            "outstanding_tutors": outstanding_tutors,
            "outstanding_tutees": outstanding_tutees,
            "total_matches": total_matches,
            "total_requests": total_requests,
            "matching_potential": min(outstanding_tutors, outstanding_tutees),
            "matching_efficiency": efficiency,
        }


_matching_service: Optional[MatchingService] = None


def get_matching_service() -> MatchingService:
    """Get or create global MatchingService instance."""
    global _matching_service
    if _matching_service is None:
        _matching_service = MatchingService()
    return _matching_service
