"""
Matching Admin API Endpoints

POST /api/v1/matching/run - Match the upcoming week now
POST /api/v1/matching/run-for-week - Match a specific week
POST /api/v1/matching/cycle - Regenerate recurring requests, then match
POST /api/v1/matching/generate-recurring - Regenerate recurring requests only
POST /api/v1/matching/clear-matches - Delete all matches (destructive)
GET /api/v1/matching/stats - Request and match counts
GET /api/v1/matching/matches - Matches, optionally for one week
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from tutormatch.api.auth import require_admin
from tutormatch.exceptions import InvalidTargetWeekError, MatchingRunInProgressError
from tutormatch.models import Match
from tutormatch.services.matching_service import MatchingService, get_matching_service
from tutormatch.services.recurrence_service import RecurrenceService, get_recurrence_service
from tutormatch.services.target_week import parse_target_week, upcoming_monday
from tutormatch.services.weekly_cycle import WeeklyCycle, get_weekly_cycle

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/matching",
    tags=["matching"],
    dependencies=[Depends(require_admin)],
)


# Request/Response models
class TargetWeekRequest(BaseModel):
    """Target week as an ISO date that falls on a Monday"""
    target_week: str = Field(..., description="Monday of the target week (YYYY-MM-DD)")


class OptionalTargetWeekRequest(BaseModel):
    target_week: Optional[str] = Field(None, description="Defaults to the upcoming Monday")


class MatchingResponse(BaseModel):
    """Standard response wrapper"""
    data: Dict[str, Any]


class MatchItem(BaseModel):
    id: int
    tutor_request_id: int
    tutee_request_id: int
    timeslot_id: int
    timeslot: Optional[str]
    status: str
    created_at: Optional[str]


class MatchListResponse(BaseModel):
    data: List[MatchItem]
    metadata: Dict[str, Any]


def _match_item(match: Match) -> MatchItem:
    return MatchItem(
        id=match.id,
        tutor_request_id=match.tutor_request_id,
        tutee_request_id=match.tutee_request_id,
        timeslot_id=match.timeslot_id,
        timeslot=match.timeslot.label if match.timeslot else None,
        status=match.status,
        created_at=match.created_at.isoformat() if match.created_at else None,
    )


def _resolve_week(value: Optional[str]):
    return parse_target_week(value) if value else upcoming_monday()


def _in_progress(e: MatchingRunInProgressError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/run", response_model=MatchingResponse)
async def run_matching(matching: MatchingService = Depends(get_matching_service)):
    """Run matching now for the upcoming week."""
    target_week = upcoming_monday()
    try:
        created = await matching.run_for_week(target_week, wait=False)
        return MatchingResponse(data={"target_week": target_week.isoformat(), "matches_created": created})
    except MatchingRunInProgressError as e:
        raise _in_progress(e)
    except Exception as e:
        logger.error(f"Matching run failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Matching run failed: {str(e)}")


@router.post("/run-for-week", response_model=MatchingResponse)
async def run_matching_for_week(
    request: TargetWeekRequest,
    matching: MatchingService = Depends(get_matching_service),
):
    """
    Run matching for a specific week.

    Raises:
        400: If target_week is malformed or not a Monday
        409: If a run for that week is already in progress
    """
    try:
        target_week = parse_target_week(request.target_week)
        created = await matching.run_for_week(target_week, wait=False)
        return MatchingResponse(data={"target_week": target_week.isoformat(), "matches_created": created})
    except InvalidTargetWeekError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MatchingRunInProgressError as e:
        raise _in_progress(e)
    except Exception as e:
        logger.error(f"Matching run failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Matching run failed: {str(e)}")


@router.post("/cycle", response_model=MatchingResponse)
async def run_weekly_cycle(
    request: Optional[OptionalTargetWeekRequest] = None,
    cycle: WeeklyCycle = Depends(get_weekly_cycle),
):
    """Run the full weekly cycle (recurring generation, then matching) on demand."""
    try:
        target_week = _resolve_week(request.target_week if request else None)
        summary = await cycle.run(target_week, wait=False)
        return MatchingResponse(data=summary)
    except InvalidTargetWeekError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MatchingRunInProgressError as e:
        raise _in_progress(e)
    except Exception as e:
        logger.error(f"Weekly cycle failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Weekly cycle failed: {str(e)}")


@router.post("/generate-recurring", response_model=MatchingResponse)
async def generate_recurring(
    request: Optional[OptionalTargetWeekRequest] = None,
    recurrence: RecurrenceService = Depends(get_recurrence_service),
):
    """Create next-week requests for all agreed recurring pairs."""
    try:
        target_week = _resolve_week(request.target_week if request else None)
        pairs = await recurrence.generate_for_week(target_week, wait=False)
        return MatchingResponse(data={"target_week": target_week.isoformat(), "recurring_pairs_generated": pairs})
    except InvalidTargetWeekError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MatchingRunInProgressError as e:
        raise _in_progress(e)
    except Exception as e:
        logger.error(f"Recurring generation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Recurring generation failed: {str(e)}")


@router.post("/clear-matches", response_model=MatchingResponse)
async def clear_matches(matching: MatchingService = Depends(get_matching_service)):
    """Delete every match and reset matched requests to OUTSTANDING."""
    try:
        summary = await matching.match_service.clear_all_matches()
        return MatchingResponse(data=summary)
    except Exception as e:
        logger.error(f"Failed to clear matches: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to clear matches: {str(e)}")


@router.get("/stats", response_model=MatchingResponse)
async def get_stats(matching: MatchingService = Depends(get_matching_service)):
    try:
        stats = await matching.get_matching_stats()
        return MatchingResponse(data=stats)
    except Exception as e:
        logger.error(f"Failed to load matching stats: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to load matching stats: {str(e)}")


@router.get("/matches", response_model=MatchListResponse)
async def list_matches(
    target_week: Optional[str] = Query(None, description="Monday of the week (YYYY-MM-DD)"),
    matching: MatchingService = Depends(get_matching_service),
):
    try:
        week = parse_target_week(target_week) if target_week else None
        matches = await matching.match_service.find_all(target_week=week)
        return MatchListResponse(
            data=[_match_item(match) for match in matches],
            metadata={"count": len(matches), "target_week": week.isoformat() if week else None},
        )
    except InvalidTargetWeekError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to list matches: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to list matches: {str(e)}")
