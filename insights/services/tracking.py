"""
Event ingestion: validate, apply side effects, append to the event log.

Public API
----------
track_event(db, event, now)   → TrackResult   (single, transactional)

Side effects by event_type
--------------------------
  page_view    register the session's view (and sent → viewed) first
  time_spent   time_spent += event_data.timeSpent, last_viewed_at = now
  others       none beyond the log append

Exactly one ProposalEvent row is appended per call. The whole call is one
transaction: on any failure it is rolled back and the error propagates.
Retries, if any, belong to the caller.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from insights.core.errors import MissingFieldError, ProposalNotFoundError
from insights.models.proposal_event import EventType, ProposalEvent
from insights.models.proposal_view import ProposalView
from insights.services.dedupe import register_view
from insights.services.event_data import TimeSpentData, parse_event_data
from insights.services.proposals import get_proposal

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------

@dataclass
class TrackedEvent:
    """Lightweight DTO so the service layer stays schema-agnostic."""
    proposal_id: Optional[str]
    event_type: Optional[str]
    session_id: Optional[str]
    event_data: dict[str, Any] = field(default_factory=dict)
    ip_address: str = UNKNOWN
    user_agent: str = UNKNOWN


@dataclass
class TrackResult:
    event: ProposalEvent
    view_created: bool = False
    status_transitioned: bool = False
    time_added: int = 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _validate(event: TrackedEvent) -> EventType:
    missing = [
        name for name in ("proposal_id", "event_type", "session_id")
        if _blank(getattr(event, name))
    ]
    if missing:
        raise MissingFieldError(*missing)
    try:
        return EventType(event.event_type)
    except ValueError:
        raise MissingFieldError("event_type") from None


def _add_time_spent(
    db: Session,
    proposal_id: str,
    session_id: str,
    seconds: int,
    now: datetime,
) -> bool:
    """Atomic increment on the session's view. False when no view exists."""
    updated = (
        db.query(ProposalView)
        .filter(
            ProposalView.proposal_id == proposal_id,
            ProposalView.session_id == session_id,
        )
        .update(
            {
                ProposalView.time_spent: ProposalView.time_spent + seconds,
                ProposalView.last_viewed_at: now,
            },
            synchronize_session=False,
        )
    )
    return bool(updated)


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def track_event(
    db: Session,
    event: TrackedEvent,
    now: Optional[datetime] = None,
) -> TrackResult:
    """Validate, apply side effects, append, commit. Returns TrackResult."""
    event_type = _validate(event)
    proposal_id = event.proposal_id.strip()
    session_id = event.session_id.strip()
    stamp = now or _now()
    raw_data = event.event_data if isinstance(event.event_data, dict) else {}

    view_created = status_transitioned = False
    time_added = 0

    try:
        if get_proposal(db, proposal_id) is None:
            raise ProposalNotFoundError(proposal_id)

        if event_type is EventType.page_view:
            reg = register_view(
                db,
                proposal_id=proposal_id,
                session_id=session_id,
                viewer_ip=event.ip_address or UNKNOWN,
                user_agent=event.user_agent or UNKNOWN,
                now=stamp,
            )
            view_created = reg.created
            status_transitioned = reg.status_transitioned

        elif event_type is EventType.time_spent:
            payload: TimeSpentData = parse_event_data(event_type, raw_data)
            if _add_time_spent(db, proposal_id, session_id, payload.time_spent, stamp):
                time_added = payload.time_spent
            else:
                logger.debug(
                    "time_spent for proposal=%s session=%s has no view; logged only",
                    proposal_id, session_id,
                )

        row = ProposalEvent(
            proposal_id=proposal_id,
            session_id=session_id,
            event_type=event_type,
            event_data=json.dumps(raw_data, default=str),
            user_agent=event.user_agent or UNKNOWN,
            ip_address=event.ip_address or UNKNOWN,
            created_at=stamp,
        )
        db.add(row)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(row)
    logger.debug(
        "Tracked %s for proposal=%s session=%s", event_type.value, proposal_id, session_id
    )
    return TrackResult(
        event=row,
        view_created=view_created,
        status_transitioned=status_transitioned,
        time_added=time_added,
    )
