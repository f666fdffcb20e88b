"""
Analytics read service: load rows, gate access, run the pure aggregators.

Public API
----------
get_proposal_analytics(db, proposal_id, user_id)          -> ProposalSnapshot
get_workspace_analytics(db, workspace_id, user_id, ...)   -> WorkspaceAnalytics

Every read happens before any computation. A failed read propagates and
fails the whole request, so a snapshot is never computed from half of its
inputs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from insights.core.config import settings
from insights.core.errors import InvalidIntervalError, ProposalNotFoundError, WorkspaceNotFoundError
from insights.models.proposal import Proposal
from insights.models.proposal_event import ProposalEvent
from insights.models.proposal_view import ProposalView
from insights.models.workspace import Workspace
from insights.services import aggregation, funnel
from insights.services.access import require_member
from insights.services.aggregation import EngagementWeights, ProposalSnapshot, SectionStats
from insights.services.funnel import FunnelStage, TimeBucket, WorkspaceMetrics
from insights.services.proposals import get_proposal


@dataclass
class WorkspaceAnalytics:
    metrics: WorkspaceMetrics
    proposals_by_status: dict[str, int]
    proposals_over_time: list[TimeBucket]
    revenue_over_time: list[TimeBucket]
    section_engagement: list[SectionStats]
    conversion_funnel: list[FunnelStage]
    top_proposals: list[dict] = field(default_factory=list)
    recent_activity: list[dict] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def engagement_weights() -> EngagementWeights:
    return EngagementWeights(
        views=settings.ENGAGEMENT_VIEWS_WEIGHT,
        time=settings.ENGAGEMENT_TIME_WEIGHT,
        diversity=settings.ENGAGEMENT_DIVERSITY_WEIGHT,
        views_target=settings.ENGAGEMENT_VIEWS_TARGET,
        time_target=settings.ENGAGEMENT_TIME_TARGET_SECONDS,
    )


def _views_for(db: Session, proposal_ids: list[str]) -> list[ProposalView]:
    if not proposal_ids:
        return []
    return (
        db.query(ProposalView)
        .filter(ProposalView.proposal_id.in_(proposal_ids))
        .order_by(ProposalView.created_at.desc())
        .all()
    )


def _events_for(db: Session, proposal_ids: list[str]) -> list[ProposalEvent]:
    if not proposal_ids:
        return []
    return (
        db.query(ProposalEvent)
        .filter(ProposalEvent.proposal_id.in_(proposal_ids))
        .order_by(ProposalEvent.created_at.desc())
        .all()
    )


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Public: single proposal
# ---------------------------------------------------------------------------

def get_proposal_analytics(
    db: Session,
    proposal_id: str,
    user_id: str,
) -> ProposalSnapshot:
    """Engagement snapshot for one proposal the requester can access."""
    proposal = get_proposal(db, proposal_id)
    if proposal is None:
        raise ProposalNotFoundError(proposal_id)
    require_member(db, proposal.workspace_id, user_id)

    views = _views_for(db, [proposal.id])
    events = _events_for(db, [proposal.id])

    return aggregation.aggregate(
        views,
        events,
        weights=engagement_weights(),
        tz=aggregation.resolve_timezone(settings.ANALYTICS_TIMEZONE),
    )


# ---------------------------------------------------------------------------
# Public: workspace
# ---------------------------------------------------------------------------

def get_workspace_analytics(
    db: Session,
    workspace_id: str,
    user_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    interval: str = "day",
    now: Optional[datetime] = None,
) -> WorkspaceAnalytics:
    """
    Workspace-wide metrics for proposals created in [start_date, end_date]
    (both inclusive, whole UTC days).
    """
    if interval not in funnel.INTERVALS:
        raise InvalidIntervalError(interval, funnel.INTERVALS)

    workspace = db.query(Workspace).filter(Workspace.id == workspace_id).first()
    if workspace is None:
        raise WorkspaceNotFoundError(workspace_id)
    require_member(db, workspace_id, user_id)

    q = db.query(Proposal).filter(Proposal.workspace_id == workspace_id)
    if start_date is not None:
        q = q.filter(Proposal.created_at >= _day_start(start_date))
    if end_date is not None:
        q = q.filter(Proposal.created_at < _day_start(end_date + timedelta(days=1)))
    proposals = q.all()

    ids = [p.id for p in proposals]
    views = _views_for(db, ids)
    events = _events_for(db, ids)

    viewed_ids = {v.proposal_id for v in views}
    return WorkspaceAnalytics(
        metrics=funnel.workspace_metrics(proposals, views),
        proposals_by_status=funnel.group_by_status(proposals, now or _now()),
        proposals_over_time=funnel.time_series(proposals, interval, "created_at"),
        revenue_over_time=funnel.time_series(proposals, interval, "updated_at", revenue=True),
        section_engagement=aggregation.section_engagement(events),
        conversion_funnel=funnel.conversion_funnel(proposals, viewed_ids),
        top_proposals=funnel.top_performing(proposals, views, settings.TOP_PROPOSALS_LIMIT),
        recent_activity=aggregation.activity_feed(events, settings.RECENT_ACTIVITY_LIMIT),
    )
