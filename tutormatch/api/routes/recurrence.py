"""
Recurrence API Endpoints

POST /api/v1/requests/{id}/recurrence - Tutee asks to keep the same tutor
POST /api/v1/requests/{id}/recurrence/accept - Tutor accepts (optionally ?tutee_request_id=)
DELETE /api/v1/requests/{id}/recurrence - Cancel the agreement
GET /api/v1/requests/recurring - All requests flagged as recurring
"""
import logging
from functools import partial
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel

from tutormatch.exceptions import RecurrenceValidationError, RequestNotFoundError
from tutormatch.models import TutoringRequest
from tutormatch.services.recurrence_service import RecurrenceService, get_recurrence_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/requests", tags=["recurrence"])


class RequestItem(BaseModel):
    id: int
    user_id: int
    subject_id: int
    kind: str
    status: str
    target_week: str
    is_recurring: bool
    matched_partner_id: Optional[int]


class RequestResponse(BaseModel):
    data: RequestItem


class RequestListResponse(BaseModel):
    data: List[RequestItem]
    metadata: Dict[str, Any]


def _request_item(request: TutoringRequest) -> RequestItem:
    return RequestItem(
        id=request.id,
        user_id=request.user_id,
        subject_id=request.subject_id,
        kind=request.kind.value,
        status=request.status.value,
        target_week=request.target_week.isoformat(),
        is_recurring=request.is_recurring,
        matched_partner_id=request.matched_partner_id,
    )


async def _apply(operation, request_id: int) -> RequestResponse:
    try:
        request = await operation(request_id)
        return RequestResponse(data=_request_item(request))
    except RequestNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RecurrenceValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Recurrence update for request {request_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Recurrence update failed: {str(e)}")


@router.get("/recurring", response_model=RequestListResponse)
async def list_recurring(recurrence: RecurrenceService = Depends(get_recurrence_service)):
    try:
        requests = await recurrence.list_recurring_requests()
        return RequestListResponse(
            data=[_request_item(request) for request in requests],
            metadata={"count": len(requests)},
        )
    except Exception as e:
        logger.error(f"Failed to list recurring requests: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to list recurring requests: {str(e)}")


@router.post("/{request_id}/recurrence", response_model=RequestResponse)
async def request_recurrence(
    request_id: int = Path(..., description="Matched tutee request id"),
    recurrence: RecurrenceService = Depends(get_recurrence_service),
):
    """
    Ask for the same pairing next week.

    Raises:
        404: If the request does not exist
        400: If it is not a MATCHED tutee request
    """
    return await _apply(recurrence.request_recurrence, request_id)


@router.post("/{request_id}/recurrence/accept", response_model=RequestResponse)
async def accept_recurrence(
    request_id: int = Path(..., description="Matched tutor request id"),
    tutee_request_id: Optional[int] = Query(None, description="Accept only this matched tutee"),
    recurrence: RecurrenceService = Depends(get_recurrence_service),
):
    """
    Accept recurrence for matched tutees that have asked for it.

    Raises:
        404: If the request does not exist
        400: If it is not a MATCHED tutor request or no matched tutee has asked
    """
    return await _apply(partial(recurrence.accept_recurrence, tutee_request_id=tutee_request_id), request_id)


@router.delete("/{request_id}/recurrence", response_model=RequestResponse)
async def cancel_recurrence(
    request_id: int = Path(...),
    recurrence: RecurrenceService = Depends(get_recurrence_service),
):
    return await _apply(recurrence.cancel_recurrence, request_id)
