"""
Integration tests for RecurrenceService

Tests the request/accept/cancel flow and weekly regeneration of recurring
requests.
"""

from datetime import date
from unittest.mock import patch

import pytest

from tests.conftest import NEXT_WEEK, WEEK
from tutormatch.exceptions import InvalidTargetWeekError, RecurrenceValidationError, RequestNotFoundError
from tutormatch.models import RequestStatus, RequestType, YearGroup
from tutormatch.services.request_service import RequestService

WEEK_AFTER_NEXT = date(2025, 3, 24)


async def matched_pair(data, matching_service, subject_name="Mathematics"):
    """Create and match one tutor/tutee pair for WEEK"""
    subject = await data.subject(subject_name)
    tutor = await data.user(YearGroup.YEAR_13, availability=["Monday Period 1", "Tuesday Period 2"])
    tutee = await data.user(YearGroup.YEAR_10)
    tutor_request = await data.tutor_request(tutor, subject)
    tutee_request = await data.tutee_request(tutee, subject, ["Monday Period 1", "Tuesday Period 2"])
    assert await matching_service.run_for_week(WEEK) == 1
    return tutor_request, tutee_request


@pytest.mark.asyncio
@pytest.mark.integration
class TestRecurrenceAgreement:

    async def test_request_then_accept(self, data, matching_service, recurrence_service):
        tutor_request, tutee_request = await matched_pair(data, matching_service)

        requested = await recurrence_service.request_recurrence(tutee_request.id)
        accepted = await recurrence_service.accept_recurrence(tutor_request.id)

        assert requested.is_recurring and accepted.is_recurring
        recurring_ids = [request.id for request in await recurrence_service.list_recurring_requests()]
        assert recurring_ids == [tutor_request.id, tutee_request.id]

    async def test_accept_before_request_fails_without_mutation(self, data, matching_service, recurrence_service):
        tutor_request, tutee_request = await matched_pair(data, matching_service)

        with pytest.raises(RecurrenceValidationError, match="has not requested recurrence"):
            await recurrence_service.accept_recurrence(tutor_request.id)

        assert (await data.reload(tutor_request.id)).is_recurring is False
        assert (await data.reload(tutee_request.id)).is_recurring is False

    async def test_request_on_tutor_request_rejected(self, data, matching_service, recurrence_service):
        tutor_request, _ = await matched_pair(data, matching_service)

        with pytest.raises(RecurrenceValidationError, match="Only tutee requests"):
            await recurrence_service.request_recurrence(tutor_request.id)

    async def test_accept_on_tutee_request_rejected(self, data, matching_service, recurrence_service):
        _, tutee_request = await matched_pair(data, matching_service)
        await recurrence_service.request_recurrence(tutee_request.id)

        with pytest.raises(RecurrenceValidationError, match="Only tutor requests"):
            await recurrence_service.accept_recurrence(tutee_request.id)

    async def test_unmatched_request_rejected(self, data, recurrence_service):
        maths = await data.subject("Mathematics")
        tutee_request = await data.tutee_request(await data.user(YearGroup.YEAR_10), maths, ["Monday Period 1"])

        with pytest.raises(RecurrenceValidationError, match="must be MATCHED"):
            await recurrence_service.request_recurrence(tutee_request.id)
        assert (await data.reload(tutee_request.id)).is_recurring is False

    async def test_unknown_request(self, recurrence_service):
        with pytest.raises(RequestNotFoundError, match="Request 999 not found"):
            await recurrence_service.request_recurrence(999)
        with pytest.raises(RequestNotFoundError):
            await recurrence_service.accept_recurrence(999)
        with pytest.raises(RequestNotFoundError):
            await recurrence_service.cancel_recurrence(999)

    async def test_cancel_clears_both_partners(self, data, matching_service, recurrence_service):
        tutor_request, tutee_request = await matched_pair(data, matching_service)
        await recurrence_service.request_recurrence(tutee_request.id)
        await recurrence_service.accept_recurrence(tutor_request.id)

        await recurrence_service.cancel_recurrence(tutor_request.id)

        assert (await data.reload(tutor_request.id)).is_recurring is False
        assert (await data.reload(tutee_request.id)).is_recurring is False
        assert await recurrence_service.list_recurring_requests() == []


@pytest.mark.asyncio
@pytest.mark.integration
class TestRecurringGeneration:

    async def agreed_pair(self, data, matching_service, recurrence_service, subject_name="Mathematics"):
        tutor_request, tutee_request = await matched_pair(data, matching_service, subject_name)
        await recurrence_service.request_recurrence(tutee_request.id)
        await recurrence_service.accept_recurrence(tutor_request.id)
        return tutor_request, tutee_request

    async def test_generates_one_request_per_partner(self, data, matching_service, recurrence_service):
        tutor_request, tutee_request = await self.agreed_pair(data, matching_service, recurrence_service)

        processed = await recurrence_service.generate_for_week(NEXT_WEEK)

        assert processed == 1
        generated = await data.requests_for_week(NEXT_WEEK)
        assert sorted(request.kind for request in generated) == [RequestType.TUTEE, RequestType.TUTOR]
        for request in generated:
            assert request.status == RequestStatus.OUTSTANDING
            assert request.is_recurring is True
            assert request.matched_partner_id is None

        new_tutee = next(request for request in generated if request.kind == RequestType.TUTEE)
        new_tutor = next(request for request in generated if request.kind == RequestType.TUTOR)
        assert new_tutee.user_id == tutee_request.user_id
        assert new_tutee.subject_id == tutee_request.subject_id
        assert new_tutee.year_group == tutee_request.year_group
        assert [t.label for t in new_tutee.possible_timeslots] == ["Monday Period 1", "Tuesday Period 2"]
        assert new_tutor.user_id == tutor_request.user_id

    async def test_generation_is_idempotent(self, data, matching_service, recurrence_service):
        await self.agreed_pair(data, matching_service, recurrence_service)

        await recurrence_service.generate_for_week(NEXT_WEEK)
        await recurrence_service.generate_for_week(NEXT_WEEK)

        assert len(await data.requests_for_week(NEXT_WEEK)) == 2

    async def test_generated_pair_is_matched_next_week(self, data, matching_service, recurrence_service):
        await self.agreed_pair(data, matching_service, recurrence_service)
        await recurrence_service.generate_for_week(NEXT_WEEK)

        assert await matching_service.run_for_week(NEXT_WEEK) == 1

    async def test_pairs_without_agreement_skipped(self, data, matching_service, recurrence_service):
        tutor_request, tutee_request = await matched_pair(data, matching_service)
        await recurrence_service.request_recurrence(tutee_request.id)

        assert await recurrence_service.generate_for_week(NEXT_WEEK) == 0
        assert await data.requests_for_week(NEXT_WEEK) == []

    async def test_current_week_pairs_not_regenerated_into_same_week(self, data, matching_service, recurrence_service):
        await self.agreed_pair(data, matching_service, recurrence_service)

        assert await recurrence_service.generate_for_week(WEEK) == 0

    async def test_failure_on_one_pair_does_not_stop_others(self, data, matching_service, recurrence_service):
        first_tutor, first_tutee = await self.agreed_pair(data, matching_service, recurrence_service, "Mathematics")
        second_tutor, second_tutee = await self.agreed_pair(data, matching_service, recurrence_service, "Physics")

        real_create = RequestService.create_in_session

        async def failing_create(self, session, user_id, subject_id, kind, *args, **kwargs):
            if user_id == first_tutee.user_id:
                raise RuntimeError("simulated failure")
            return await real_create(self, session, user_id, subject_id, kind, *args, **kwargs)

        with patch.object(RequestService, "create_in_session", failing_create):
            processed = await recurrence_service.generate_for_week(NEXT_WEEK)

        assert processed == 1
        generated = await data.requests_for_week(NEXT_WEEK)
        assert {request.user_id for request in generated} == {second_tutor.user_id, second_tutee.user_id}

    async def test_non_monday_rejected(self, recurrence_service):
        with pytest.raises(InvalidTargetWeekError):
            await recurrence_service.generate_for_week(date(2025, 3, 18))


@pytest.mark.asyncio
@pytest.mark.integration
class TestRecurrenceLifecycle:

    async def agreed_pair(self, data, matching_service, recurrence_service):
        tutor_request, tutee_request = await matched_pair(data, matching_service)
        await recurrence_service.request_recurrence(tutee_request.id)
        await recurrence_service.accept_recurrence(tutor_request.id)
        return tutor_request, tutee_request

    async def test_agreement_carries_into_following_weeks(self, data, matching_service, recurrence_service):
        tutor_request, tutee_request = await self.agreed_pair(data, matching_service, recurrence_service)

        assert await recurrence_service.generate_for_week(NEXT_WEEK) == 1
        assert await matching_service.run_for_week(NEXT_WEEK) == 1

        next_week = await data.requests_for_week(NEXT_WEEK)
        recurring_ids = [request.id for request in await recurrence_service.list_recurring_requests()]
        assert recurring_ids == [request.id for request in next_week]
        assert (await data.reload(tutee_request.id)).is_recurring is False
        assert (await data.reload(tutor_request.id)).is_recurring is False

        assert await recurrence_service.generate_for_week(WEEK_AFTER_NEXT) == 1
        assert len(await data.requests_for_week(WEEK_AFTER_NEXT)) == 2

    async def test_cancel_on_regenerated_pair_stops_recurrence(self, data, matching_service, recurrence_service):
        await self.agreed_pair(data, matching_service, recurrence_service)
        await recurrence_service.generate_for_week(NEXT_WEEK)
        await matching_service.run_for_week(NEXT_WEEK)
        new_tutee = next(
            request for request in await data.requests_for_week(NEXT_WEEK) if request.kind == RequestType.TUTEE
        )

        await recurrence_service.cancel_recurrence(new_tutee.id)

        assert await recurrence_service.generate_for_week(WEEK_AFTER_NEXT) == 0
        assert await data.requests_for_week(WEEK_AFTER_NEXT) == []
        assert await recurrence_service.list_recurring_requests() == []


@pytest.mark.asyncio
@pytest.mark.integration
class TestAcceptancePerTutee:

    async def tutor_with_two_tutees(self, data, matching_service):
        maths = await data.subject("Mathematics")
        tutor = await data.user(YearGroup.YEAR_13, max_sessions=2, availability=["Monday Period 1", "Tuesday Period 2"])
        tutor_request = await data.tutor_request(tutor, maths)
        first = await data.tutee_request(await data.user(YearGroup.YEAR_10), maths, ["Monday Period 1"])
        second = await data.tutee_request(await data.user(YearGroup.YEAR_11), maths, ["Tuesday Period 2"])
        assert await matching_service.run_for_week(WEEK) == 2
        return tutor_request, first, second

    async def test_later_request_needs_its_own_acceptance(self, data, matching_service, recurrence_service):
        tutor_request, first, second = await self.tutor_with_two_tutees(data, matching_service)
        await recurrence_service.request_recurrence(first.id)
        await recurrence_service.accept_recurrence(tutor_request.id)
        await recurrence_service.request_recurrence(second.id)

        assert await recurrence_service.generate_for_week(NEXT_WEEK) == 1

        tutees = [r for r in await data.requests_for_week(NEXT_WEEK) if r.kind == RequestType.TUTEE]
        assert [r.user_id for r in tutees] == [first.user_id]

    async def test_accept_second_tutee_when_first_has_not_asked(self, data, matching_service, recurrence_service):
        tutor_request, first, second = await self.tutor_with_two_tutees(data, matching_service)
        await recurrence_service.request_recurrence(second.id)

        with pytest.raises(RecurrenceValidationError, match="has not requested recurrence"):
            await recurrence_service.accept_recurrence(tutor_request.id, tutee_request_id=first.id)
        accepted = await recurrence_service.accept_recurrence(tutor_request.id, tutee_request_id=second.id)

        assert accepted.is_recurring is True
        assert await recurrence_service.generate_for_week(NEXT_WEEK) == 1
        tutees = [r for r in await data.requests_for_week(NEXT_WEEK) if r.kind == RequestType.TUTEE]
        assert [r.user_id for r in tutees] == [second.user_id]

    async def test_accept_for_unmatched_tutee_rejected(self, data, matching_service, recurrence_service):
        tutor_request, first, _ = await self.tutor_with_two_tutees(data, matching_service)
        await recurrence_service.request_recurrence(first.id)

        with pytest.raises(RecurrenceValidationError, match="is not matched with request"):
            await recurrence_service.accept_recurrence(tutor_request.id, tutee_request_id=4242)

    async def test_tutee_cancel_keeps_other_agreements(self, data, matching_service, recurrence_service):
        tutor_request, first, second = await self.tutor_with_two_tutees(data, matching_service)
        await recurrence_service.request_recurrence(first.id)
        await recurrence_service.request_recurrence(second.id)
        await recurrence_service.accept_recurrence(tutor_request.id)

        await recurrence_service.cancel_recurrence(first.id)

        assert (await data.reload(tutor_request.id)).is_recurring is True
        assert await recurrence_service.generate_for_week(NEXT_WEEK) == 1
        tutees = [r for r in await data.requests_for_week(NEXT_WEEK) if r.kind == RequestType.TUTEE]
        assert [r.user_id for r in tutees] == [second.user_id]
