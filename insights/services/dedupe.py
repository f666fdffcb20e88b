"""
View deduplication: one ProposalView per (proposal_id, session_id).

Check-then-insert inside a savepoint. If a concurrent request wins the race
the unique constraint rejects our insert; the savepoint is rolled back and
the existing row is returned, so callers always see exactly one view.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from insights.models.proposal_view import ProposalView
from insights.services.proposals import mark_viewed

logger = logging.getLogger(__name__)


@dataclass
class ViewRegistration:
    view: Optional[ProposalView]
    created: bool
    status_transitioned: bool = False


def _find_view(db: Session, proposal_id: str, session_id: str) -> Optional[ProposalView]:
    return (
        db.query(ProposalView)
        .filter(
            ProposalView.proposal_id == proposal_id,
            ProposalView.session_id == session_id,
        )
        .first()
    )


def register_view(
    db: Session,
    proposal_id: str,
    session_id: str,
    viewer_ip: str,
    user_agent: str,
    now: datetime,
) -> ViewRegistration:
    """
    Create the view for a new session and promote a `sent` proposal to
    `viewed`. Idempotent for a session that already has a view.
    Flushes only; the caller commits.
    """
    existing = _find_view(db, proposal_id, session_id)
    if existing is not None:
        return ViewRegistration(view=existing, created=False)

    view = ProposalView(
        proposal_id=proposal_id,
        session_id=session_id,
        viewer_ip=viewer_ip,
        user_agent=user_agent,
        time_spent=0,
        created_at=now,
    )
    savepoint = db.begin_nested()
    try:
        db.add(view)
        db.flush()
        savepoint.commit()
    except IntegrityError:
        # Another request inserted the same session first.
        savepoint.rollback()
        logger.info(
            "Concurrent first view for proposal=%s session=%s; keeping existing row",
            proposal_id, session_id,
        )
        return ViewRegistration(view=_find_view(db, proposal_id, session_id), created=False)

    logger.info("New view for proposal=%s session=%s", proposal_id, session_id)
    transitioned = mark_viewed(db, proposal_id)
    return ViewRegistration(view=view, created=True, status_transitioned=transitioned)
