"""
Aggregation engine: proposal engagement statistics.

Pure functions of (views, events): no queries, no clock, no hidden state.
Every function treats empty input as a valid zero result and never raises
on sparse or malformed event payloads.

Public API
----------
total_views(views)                       -> int
unique_viewers(views)                    -> int
avg_time_spent(views)                    -> int    (seconds, zero-time views excluded)
max_scroll_depth(events)                 -> float
section_engagement(events)               -> list[SectionStats]
device_breakdown(views)                  -> dict[str, int]
browser_breakdown(views)                 -> dict[str, int]
hourly_activity(events, tz)              -> dict[int, int]  (0–23, zero filled)
engagement_score(views, events, weights) -> int    (0–100)
engagement_level(score)                  -> "High" | "Medium" | "Low"
aggregate(views, events, weights, tz)    -> ProposalSnapshot

Engagement score
----------------
  score = w_views     * min(total_views / views_target, 1)
        + w_time      * min(avg_time_spent / time_target, 1)
        + w_diversity * (distinct interaction kinds / 5)

Weights are normalized to sum to 100. No views → 0.
uniqueViewers counts distinct viewer IPs: NAT undercounts, dynamic IPs
overcount. Known limitation.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from insights.models.proposal_event import EventType
from insights.services.classify import Browser, Device, classify_browser, classify_device
from insights.services.event_data import (
    SectionViewData,
    parse_event_data,
    reported_scroll_depth_of,
    scroll_depth_of,
    section_of,
    time_spent_of,
)


INTERACTION_KINDS = (
    EventType.time_spent,
    EventType.click,
    EventType.download,
    EventType.scroll,
    EventType.section_view,
)

HIGH_ENGAGEMENT = 80
MEDIUM_ENGAGEMENT = 50


# ---------------------------------------------------------------------------
# Result types (plain dataclasses, no ORM or Pydantic)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EngagementWeights:
    views: float = 20.0
    time: float = 50.0
    diversity: float = 30.0
    views_target: int = 5
    time_target: int = 300

    def normalized(self) -> tuple[float, float, float]:
        parts = [max(0.0, self.views), max(0.0, self.time), max(0.0, self.diversity)]
        total = sum(parts)
        if total == 0:
            return (0.0, 0.0, 0.0)
        return tuple(100.0 * p / total for p in parts)  # type: ignore[return-value]


@dataclass
class SectionStats:
    section_id: str
    section_title: str
    views: int = 0
    interactions: int = 0
    avg_time_spent: int = 0
    scroll_depth: int = 0


@dataclass
class ProposalSummary:
    total_views: int
    unique_viewers: int
    avg_time_spent: int
    engagement_score: int
    engagement_level: str
    max_scroll_depth: float
    total_clicks: int
    total_downloads: int


@dataclass
class ProposalSnapshot:
    summary: ProposalSummary
    section_engagement: list[SectionStats] = field(default_factory=list)
    view_timeline: list[dict] = field(default_factory=list)
    activity_timeline: list[dict] = field(default_factory=list)
    device_breakdown: dict[str, int] = field(default_factory=dict)
    browser_breakdown: dict[str, int] = field(default_factory=dict)
    hourly_activity: dict[int, int] = field(default_factory=dict)
    click_events: list[dict] = field(default_factory=list)
    download_events: list[dict] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def as_utc(value: datetime) -> datetime:
    """Stored timestamps without tzinfo are UTC (SQLite drops the offset)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_timezone(name: Optional[str]) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def _event_kind(event: Any) -> Optional[EventType]:
    try:
        return EventType(event.event_type)
    except ValueError:
        return None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return as_utc(value).isoformat() if value is not None else None


def _mean(values: Iterable[float]) -> float:
    items = list(values)
    return sum(items) / len(items) if items else 0.0


# ---------------------------------------------------------------------------
# View statistics
# ---------------------------------------------------------------------------

def total_views(views: Sequence[Any]) -> int:
    return len(views)


def unique_viewers(views: Sequence[Any]) -> int:
    return len({v.viewer_ip for v in views})


def avg_time_spent(views: Sequence[Any]) -> int:
    """Mean of time_spent over views that recorded any time; 0 if none did."""
    timed = [v.time_spent for v in views if (v.time_spent or 0) > 0]
    if not timed:
        return 0
    return round_half_up(sum(timed) / len(timed))


def device_breakdown(views: Sequence[Any]) -> dict[str, int]:
    counts = Counter(classify_device(v.user_agent).value for v in views)
    return {d.value: counts[d.value] for d in Device if counts[d.value]}


def browser_breakdown(views: Sequence[Any]) -> dict[str, int]:
    counts = Counter(classify_browser(v.user_agent).value for v in views)
    return {b.value: counts[b.value] for b in Browser if counts[b.value]}


# ---------------------------------------------------------------------------
# Event statistics
# ---------------------------------------------------------------------------

def max_scroll_depth(events: Sequence[Any]) -> float:
    return max((scroll_depth_of(e.data) for e in events), default=0.0)


def count_events(events: Sequence[Any], kind: EventType) -> int:
    return sum(1 for e in events if _event_kind(e) is kind)


def section_engagement(events: Sequence[Any]) -> list[SectionStats]:
    """
    Per-section stats for events that name a section.

    views         section_view events for the section
    interactions  every event naming the section
    avg_time      mean of positive timeSpent values reported for it
    scroll_depth  mean of reported scrollDepth values
    """
    buckets: dict[str, dict[str, Any]] = {}
    for event in events:
        data = event.data
        section_id = section_of(data)
        if section_id is None:
            continue
        bucket = buckets.setdefault(
            section_id,
            {"title": None, "views": 0, "interactions": 0, "times": [], "depths": []},
        )
        bucket["interactions"] += 1

        kind = _event_kind(event)
        if kind is EventType.section_view:
            bucket["views"] += 1
            payload: SectionViewData = parse_event_data(kind, data)
            if payload.section_title and bucket["title"] is None:
                bucket["title"] = payload.section_title

        seconds = time_spent_of(data)
        if seconds > 0:
            bucket["times"].append(seconds)
        depth = reported_scroll_depth_of(data)
        if depth is not None:
            bucket["depths"].append(depth)

    stats = [
        SectionStats(
            section_id=section_id,
            section_title=b["title"] or section_id,
            views=b["views"],
            interactions=b["interactions"],
            avg_time_spent=round_half_up(_mean(b["times"])),
            scroll_depth=round_half_up(_mean(b["depths"])),
        )
        for section_id, b in buckets.items()
    ]
    stats.sort(key=lambda s: (-s.views, -s.interactions, s.section_id))
    return stats


def hourly_activity(events: Sequence[Any], tz: Optional[tzinfo] = None) -> dict[int, int]:
    """Events per hour of day (0–23) in `tz` (default UTC)."""
    zone = tz or timezone.utc
    counts = {hour: 0 for hour in range(24)}
    for event in events:
        if event.created_at is None:
            continue
        counts[as_utc(event.created_at).astimezone(zone).hour] += 1
    return counts


# ---------------------------------------------------------------------------
# Engagement score
# ---------------------------------------------------------------------------

def interaction_diversity(events: Sequence[Any]) -> int:
    kinds = {_event_kind(e) for e in events}
    return sum(1 for kind in INTERACTION_KINDS if kind in kinds)


def engagement_score(
    views: Sequence[Any],
    events: Sequence[Any],
    weights: Optional[EngagementWeights] = None,
) -> int:
    if not views:
        return 0
    w = weights or EngagementWeights()
    w_views, w_time, w_diversity = w.normalized()

    view_ratio = min(len(views) / w.views_target, 1.0) if w.views_target > 0 else 1.0
    time_ratio = min(avg_time_spent(views) / w.time_target, 1.0) if w.time_target > 0 else 1.0
    diversity_ratio = interaction_diversity(events) / len(INTERACTION_KINDS)

    score = w_views * view_ratio + w_time * time_ratio + w_diversity * diversity_ratio
    return max(0, min(100, round_half_up(score)))


def engagement_level(score: int) -> str:
    if score >= HIGH_ENGAGEMENT:
        return "High"
    if score >= MEDIUM_ENGAGEMENT:
        return "Medium"
    return "Low"


# ---------------------------------------------------------------------------
# Timelines
# ---------------------------------------------------------------------------

def _view_item(view: Any) -> dict:
    return {
        "id": view.id,
        "session_id": view.session_id,
        "viewed_at": _iso(view.created_at),
        "last_viewed_at": _iso(view.last_viewed_at),
        "time_spent": view.time_spent or 0,
        "viewer_ip": view.viewer_ip,
        "user_agent": view.user_agent,
        "device": classify_device(view.user_agent).value,
        "browser": classify_browser(view.user_agent).value,
    }


def _event_item(event: Any) -> dict:
    kind = _event_kind(event)
    return {
        "id": event.id,
        "timestamp": _iso(event.created_at),
        "event_type": kind.value if kind else str(event.event_type),
        "event_data": event.data,
        "session_id": event.session_id,
    }


def _newest_first(rows: Sequence[Any]) -> list[Any]:
    return sorted(
        rows,
        key=lambda r: as_utc(r.created_at) if r.created_at else datetime.min.replace(tzinfo=timezone.utc),
        reverse=True,
    )


def activity_feed(events: Sequence[Any], limit: Optional[int] = None) -> list[dict]:
    items = [_event_item(e) for e in _newest_first(events)]
    return items[:limit] if limit is not None else items


# ---------------------------------------------------------------------------
# Public: full snapshot
# ---------------------------------------------------------------------------

def aggregate(
    views: Sequence[Any],
    events: Sequence[Any],
    weights: Optional[EngagementWeights] = None,
    tz: Optional[tzinfo] = None,
) -> ProposalSnapshot:
    """Build the engagement snapshot for one proposal (or any view/event set)."""
    score = engagement_score(views, events, weights)
    clicks = [e for e in _newest_first(events) if _event_kind(e) is EventType.click]
    downloads = [e for e in _newest_first(events) if _event_kind(e) is EventType.download]

    summary = ProposalSummary(
        total_views=total_views(views),
        unique_viewers=unique_viewers(views),
        avg_time_spent=avg_time_spent(views),
        engagement_score=score,
        engagement_level=engagement_level(score),
        max_scroll_depth=max_scroll_depth(events),
        total_clicks=count_events(events, EventType.click),
        total_downloads=count_events(events, EventType.download),
    )
    return ProposalSnapshot(
        summary=summary,
        section_engagement=section_engagement(events),
        view_timeline=[_view_item(v) for v in _newest_first(views)],
        activity_timeline=activity_feed(events),
        device_breakdown=device_breakdown(views),
        browser_breakdown=browser_breakdown(views),
        hourly_activity=hourly_activity(events, tz),
        click_events=[{"timestamp": _iso(e.created_at), "data": e.data} for e in clicks],
        download_events=[{"timestamp": _iso(e.created_at), "data": e.data} for e in downloads],
    )
