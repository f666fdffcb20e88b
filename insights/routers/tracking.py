"""
Tracking router.

POST /analytics/track   record one proposal interaction
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from insights.core.errors import IngestionError
from insights.db.base import get_db, store_error
from insights.routers.deps import client_ip, enforce_track_rate_limit, user_agent
from insights.schemas.common import ErrorResponse
from insights.schemas.tracking import TrackEventRequest, TrackEventResponse
from insights.services.tracking import TrackedEvent, track_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["tracking"])


@router.post(
    "/track",
    response_model=TrackEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a proposal interaction event",
    dependencies=[Depends(enforce_track_rate_limit)],
    responses={
        404: {"model": ErrorResponse, "description": "Referenced proposal does not exist."},
        422: {"model": ErrorResponse, "description": "Missing proposalId / eventType / sessionId, or unknown eventType."},
        429: {"model": ErrorResponse, "description": "Per-IP rate limit exceeded."},
        500: {"model": ErrorResponse, "description": "Persistence failure; nothing was written."},
        503: {"model": ErrorResponse, "description": "Store timeout; safe to retry."},
    },
)
def track(payload: TrackEventRequest, request: Request, db: Session = Depends(get_db)):
    """
    Append one event to the proposal's interaction log.

    - `page_view` opens a view for a new session (and moves a `sent`
      proposal to `viewed`); repeat views from the same session are no-ops.
    - `time_spent` adds `eventData.timeSpent` seconds to the session's view.

    The viewer's IP and user agent are taken from the request headers.
    """
    event = TrackedEvent(
        proposal_id=payload.proposal_id,
        event_type=payload.event_type.value,
        session_id=payload.session_id,
        event_data=payload.event_data,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    try:
        track_event(db, event)
    except SQLAlchemyError as exc:
        logger.exception(
            "Failed to track %s for proposal=%s session=%s",
            event.event_type, event.proposal_id, event.session_id,
        )
        raise store_error(
            exc,
            "event ingestion",
            IngestionError("Failed to track event.", event_type=event.event_type),
        ) from exc

    return TrackEventResponse(success=True)
