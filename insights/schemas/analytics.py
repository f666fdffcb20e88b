"""
Analytics response schemas.

GET /analytics/proposals/{proposal_id} → ProposalAnalyticsResponse
GET /analytics/workspace               → WorkspaceAnalyticsResponse
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from insights.schemas.common import CamelModel


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------

class SectionEngagementOut(CamelModel):
    section_id: str
    section_title: str
    views: int = Field(description="section_view events for this section.")
    interactions: int = Field(description="All events naming this section.")
    avg_time_spent: int = Field(description="Seconds, mean of reported times.")
    scroll_depth: int = Field(description="Mean reported scroll depth (%).")


class ActivityOut(CamelModel):
    id: int
    timestamp: Optional[str]
    event_type: str
    event_data: dict[str, Any]
    session_id: str


# ---------------------------------------------------------------------------
# Proposal analytics
# ---------------------------------------------------------------------------

class ProposalSummaryOut(CamelModel):
    total_views: int
    unique_viewers: int = Field(description="Distinct viewer IPs (approximate).")
    avg_time_spent: int = Field(description="Seconds, over views with recorded time.")
    engagement_score: int = Field(description="Composite score 0–100.")
    engagement_level: str = Field(description='"High" (≥80), "Medium" (≥50) or "Low".')
    max_scroll_depth: float
    total_clicks: int
    total_downloads: int


class ViewOut(CamelModel):
    id: int
    session_id: str
    viewed_at: Optional[str]
    last_viewed_at: Optional[str]
    time_spent: int
    viewer_ip: str
    user_agent: str
    device: str
    browser: str


class TimedPayloadOut(CamelModel):
    timestamp: Optional[str]
    data: dict[str, Any]


class ProposalAnalyticsResponse(CamelModel):
    summary: ProposalSummaryOut
    section_engagement: list[SectionEngagementOut]
    view_timeline: list[ViewOut]
    activity_timeline: list[ActivityOut]
    device_breakdown: dict[str, int]
    browser_breakdown: dict[str, int]
    hourly_activity: dict[int, int] = Field(description="Events per hour of day, 0–23.")
    click_events: list[TimedPayloadOut]
    download_events: list[TimedPayloadOut]


# ---------------------------------------------------------------------------
# Workspace analytics
# ---------------------------------------------------------------------------

class WorkspaceMetricsOut(CamelModel):
    total_proposals: int
    proposals_sent: int
    win_rate: float = Field(description="accepted / (accepted + rejected), 0.0–1.0.")
    avg_deal_size: float
    total_revenue: float
    avg_time_to_close: float = Field(description="Days from creation to decision.")
    view_rate: float = Field(description="Share of sent proposals viewed, 0.0–1.0.")
    avg_time_spent: int


class TimeBucketOut(CamelModel):
    date: str
    count: int
    revenue: Optional[float] = None


class FunnelStageOut(CamelModel):
    stage: str
    count: int
    percentage: int
    drop_off: int


class TopProposalOut(CamelModel):
    id: str
    title: str
    status: str
    view_count: int
    avg_time_spent: int


class WorkspaceAnalyticsResponse(CamelModel):
    metrics: WorkspaceMetricsOut
    proposals_by_status: dict[str, int]
    proposals_over_time: list[TimeBucketOut]
    revenue_over_time: list[TimeBucketOut]
    section_engagement: list[SectionEngagementOut]
    conversion_funnel: list[FunnelStageOut]
    top_proposals: list[TopProposalOut]
    recent_activity: list[ActivityOut]
