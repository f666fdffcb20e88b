"""
Status-transition collaborator for proposals.

The analytics side owns exactly one write on a proposal: the first view of
a sent proposal moves it to `viewed`. Everything else about a proposal's
lifecycle belongs to the proposal service.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from insights.models.proposal import Proposal, ProposalStatus

logger = logging.getLogger(__name__)


def get_proposal(db: Session, proposal_id: str) -> Optional[Proposal]:
    return db.query(Proposal).filter(Proposal.id == proposal_id).first()


def mark_viewed(db: Session, proposal_id: str) -> bool:
    """
    Conditional `sent` → `viewed` transition. Returns True if it happened.

    Done as a single UPDATE ... WHERE status = 'sent' so it never reverts a
    later status and two concurrent first views transition at most once.
    Flushes only; the caller commits.
    """
    updated = (
        db.query(Proposal)
        .filter(Proposal.id == proposal_id, Proposal.status == ProposalStatus.sent)
        .update({Proposal.status: ProposalStatus.viewed}, synchronize_session=False)
    )
    if updated:
        logger.info("Proposal %s transitioned sent -> viewed", proposal_id)
    return bool(updated)
