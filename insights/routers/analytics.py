"""
Analytics router.

GET /analytics/proposals/{proposal_id}     engagement snapshot for one proposal
GET /analytics/workspace                   workspace-wide metrics and funnel
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from insights.core.errors import AnalyticsUnavailableError
from insights.db.base import get_db, store_error
from insights.routers.deps import get_requester
from insights.schemas.common import ErrorResponse
from insights.schemas.analytics import (
    ActivityOut,
    FunnelStageOut,
    ProposalAnalyticsResponse,
    ProposalSummaryOut,
    SectionEngagementOut,
    TimeBucketOut,
    TimedPayloadOut,
    TopProposalOut,
    ViewOut,
    WorkspaceAnalyticsResponse,
    WorkspaceMetricsOut,
)
from insights.services.aggregation import ProposalSnapshot, SectionStats
from insights.services.analytics import (
    WorkspaceAnalytics,
    get_proposal_analytics,
    get_workspace_analytics,
)
from insights.services.funnel import TimeBucket

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _section_out(s: SectionStats) -> SectionEngagementOut:
    return SectionEngagementOut(
        section_id=s.section_id,
        section_title=s.section_title,
        views=s.views,
        interactions=s.interactions,
        avg_time_spent=s.avg_time_spent,
        scroll_depth=s.scroll_depth,
    )


def _bucket_out(b: TimeBucket) -> TimeBucketOut:
    return TimeBucketOut(
        date=b.date,
        count=b.count,
        revenue=float(b.revenue) if b.revenue is not None else None,
    )


def _snapshot_to_response(snap: ProposalSnapshot) -> ProposalAnalyticsResponse:
    s = snap.summary
    return ProposalAnalyticsResponse(
        summary=ProposalSummaryOut(
            total_views=s.total_views,
            unique_viewers=s.unique_viewers,
            avg_time_spent=s.avg_time_spent,
            engagement_score=s.engagement_score,
            engagement_level=s.engagement_level,
            max_scroll_depth=s.max_scroll_depth,
            total_clicks=s.total_clicks,
            total_downloads=s.total_downloads,
        ),
        section_engagement=[_section_out(x) for x in snap.section_engagement],
        view_timeline=[ViewOut(**v) for v in snap.view_timeline],
        activity_timeline=[ActivityOut(**a) for a in snap.activity_timeline],
        device_breakdown=snap.device_breakdown,
        browser_breakdown=snap.browser_breakdown,
        hourly_activity=snap.hourly_activity,
        click_events=[TimedPayloadOut(**c) for c in snap.click_events],
        download_events=[TimedPayloadOut(**d) for d in snap.download_events],
    )


def _workspace_to_response(w: WorkspaceAnalytics) -> WorkspaceAnalyticsResponse:
    m = w.metrics
    return WorkspaceAnalyticsResponse(
        metrics=WorkspaceMetricsOut(
            total_proposals=m.total_proposals,
            proposals_sent=m.proposals_sent,
            win_rate=float(m.win_rate),
            avg_deal_size=float(m.avg_deal_size),
            total_revenue=float(m.total_revenue),
            avg_time_to_close=float(m.avg_time_to_close),
            view_rate=float(m.view_rate),
            avg_time_spent=m.avg_time_spent,
        ),
        proposals_by_status=w.proposals_by_status,
        proposals_over_time=[_bucket_out(b) for b in w.proposals_over_time],
        revenue_over_time=[_bucket_out(b) for b in w.revenue_over_time],
        section_engagement=[_section_out(x) for x in w.section_engagement],
        conversion_funnel=[
            FunnelStageOut(stage=f.stage, count=f.count, percentage=f.percentage, drop_off=f.drop_off)
            for f in w.conversion_funnel
        ],
        top_proposals=[
            TopProposalOut(
                id=t["id"],
                title=t["title"],
                status=t["status"],
                view_count=t["view_count"],
                avg_time_spent=t["avg_time_spent"],
            )
            for t in w.top_proposals
        ],
        recent_activity=[ActivityOut(**a) for a in w.recent_activity],
    )


# ---------------------------------------------------------------------------
# GET /analytics/proposals/{proposal_id}
# ---------------------------------------------------------------------------

@router.get(
    "/proposals/{proposal_id}",
    response_model=ProposalAnalyticsResponse,
    summary="Engagement analytics for one proposal",
    responses={
        401: {"model": ErrorResponse, "description": "No requester identity."},
        403: {"model": ErrorResponse, "description": "Requester is not a member of the proposal's workspace."},
        404: {"model": ErrorResponse, "description": "Proposal not found."},
        503: {"model": ErrorResponse, "description": "Store timeout; safe to retry."},
    },
)
def proposal_analytics(
    proposal_id: str,
    requester: str = Depends(get_requester),
    db: Session = Depends(get_db),
):
    """
    Compute views, unique viewers, time spent, scroll depth, per-section
    engagement, device/browser/hourly breakdowns and the 0–100 engagement
    score. Recomputed on every call; nothing is cached.
    """
    try:
        snap = get_proposal_analytics(db, proposal_id=proposal_id, user_id=requester)
    except SQLAlchemyError as exc:
        logger.exception("Failed to load analytics for proposal=%s", proposal_id)
        raise store_error(exc, "proposal analytics", AnalyticsUnavailableError("proposal")) from exc
    return _snapshot_to_response(snap)


# ---------------------------------------------------------------------------
# GET /analytics/workspace
# ---------------------------------------------------------------------------

@router.get(
    "/workspace",
    response_model=WorkspaceAnalyticsResponse,
    summary="Workspace-wide proposal metrics, funnel and time series",
    responses={
        401: {"model": ErrorResponse, "description": "No requester identity."},
        403: {"model": ErrorResponse, "description": "Requester is not a member of the workspace."},
        404: {"model": ErrorResponse, "description": "Workspace not found."},
        422: {"model": ErrorResponse, "description": "Missing workspace_id or unsupported interval."},
        503: {"model": ErrorResponse, "description": "Store timeout; safe to retry."},
    },
)
def workspace_analytics(
    workspace_id: str = Query(
        min_length=1,
        description="Workspace to report on.",
        examples=["ws_acme"],
    ),
    start_date: Optional[date] = Query(
        default=None,
        description="First creation day included (UTC).",
        examples=["2026-01-01"],
    ),
    end_date: Optional[date] = Query(
        default=None,
        description="Last creation day included (UTC).",
        examples=["2026-01-31"],
    ),
    interval: str = Query(
        default="day",
        description='Time-series bucket: "day", "week" or "month".',
        examples=["week"],
    ),
    requester: str = Depends(get_requester),
    db: Session = Depends(get_db),
):
    """
    ### Metrics
    | Field | Definition |
    |---|---|
    | `winRate` | accepted / (accepted + rejected) |
    | `totalRevenue` | Σ totalValue of accepted proposals |
    | `avgTimeToClose` | mean days from creation to decision |
    | `viewRate` | share of sent proposals with ≥1 view |

    `revenueOverTime` only counts accepted proposals, bucketed by their
    last update.
    """
    try:
        result = get_workspace_analytics(
            db,
            workspace_id=workspace_id,
            user_id=requester,
            start_date=start_date,
            end_date=end_date,
            interval=interval,
        )
    except SQLAlchemyError as exc:
        logger.exception("Failed to load analytics for workspace=%s", workspace_id)
        raise store_error(exc, "workspace analytics", AnalyticsUnavailableError("workspace")) from exc
    return _workspace_to_response(result)
