"""
Unit tests for the aggregation engine (pure functions, no DB).

Views and events are plain namespaces carrying the attributes the engine
reads, so each scenario is built in one line.
"""
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from insights.services.aggregation import (
    EngagementWeights,
    activity_feed,
    aggregate,
    avg_time_spent,
    browser_breakdown,
    device_breakdown,
    engagement_level,
    engagement_score,
    hourly_activity,
    max_scroll_depth,
    resolve_timezone,
    round_half_up,
    section_engagement,
    unique_viewers,
)

CHROME = "Mozilla/5.0 (Windows NT 10.0) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"
EDGE = CHROME + " Edg/120.0"
IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0) AppleWebKit/605.1.15 Mobile/15E148 Safari/604.1"

T0 = datetime(2026, 3, 2, 9, 15, tzinfo=timezone.utc)


def view(time_spent=0, ip="10.0.0.1", ua=CHROME, created_at=T0, session="s1", id=1):
    return SimpleNamespace(
        id=id,
        proposal_id="p1",
        session_id=session,
        viewer_ip=ip,
        user_agent=ua,
        time_spent=time_spent,
        created_at=created_at,
        last_viewed_at=None,
    )


def event(event_type, data=None, created_at=T0, id=1):
    return SimpleNamespace(
        id=id,
        session_id="s1",
        event_type=event_type,
        data=data or {},
        created_at=created_at,
    )


# ---------------------------------------------------------------------------
# Empty input
# ---------------------------------------------------------------------------

class TestEmptySnapshot:
    def test_no_views_no_events(self):
        snap = aggregate([], [])
        s = snap.summary
        assert s.total_views == 0
        assert s.unique_viewers == 0
        assert s.avg_time_spent == 0
        assert s.engagement_score == 0
        assert s.engagement_level == "Low"
        assert s.max_scroll_depth == 0
        assert s.total_clicks == 0 and s.total_downloads == 0
        assert snap.section_engagement == []
        assert snap.device_breakdown == {}
        assert snap.browser_breakdown == {}
        assert snap.hourly_activity == {h: 0 for h in range(24)}
        assert snap.view_timeline == [] and snap.activity_timeline == []


# ---------------------------------------------------------------------------
# View statistics
# ---------------------------------------------------------------------------

class TestViewStatistics:
    def test_avg_time_excludes_zero_time_views(self):
        views = [view(0), view(0), view(10), view(20)]
        assert avg_time_spent(views) == 15

    def test_avg_time_all_zero(self):
        assert avg_time_spent([view(0), view(0)]) == 0

    def test_avg_time_rounds_half_up(self):
        assert avg_time_spent([view(10), view(15)]) == 13

    def test_unique_viewers_by_ip(self):
        views = [view(ip="1.1.1.1"), view(ip="1.1.1.1", session="s2"), view(ip="2.2.2.2")]
        assert unique_viewers(views) == 2

    def test_breakdowns_sum_to_total_views(self):
        views = [view(ua=CHROME), view(ua=EDGE), view(ua=IPHONE), view(ua=None)]
        devices = device_breakdown(views)
        browsers = browser_breakdown(views)
        assert devices == {"Mobile": 1, "Desktop": 3}
        assert browsers == {"Chrome": 1, "Safari": 1, "Edge": 1, "Other": 1}
        assert sum(devices.values()) == sum(browsers.values()) == len(views)


# ---------------------------------------------------------------------------
# Event statistics
# ---------------------------------------------------------------------------

class TestEventStatistics:
    def test_max_scroll_depth_across_kinds(self):
        events = [
            event("scroll", {"scrollDepth": 40}),
            event("section_view", {"sectionId": "a", "scrollDepth": 85}),
            event("click", {"scrollDepth": "bad"}),
        ]
        assert max_scroll_depth(events) == 85

    def test_section_engagement(self):
        events = [
            event("section_view", {"sectionId": "intro", "sectionTitle": "Intro", "timeSpent": 30, "scrollDepth": 50}),
            event("section_view", {"sectionId": "intro", "timeSpent": 10, "scrollDepth": 100}),
            event("click", {"sectionId": "intro"}),
            event("section_view", {"sectionId": "pricing", "timeSpent": 60}),
            event("page_view", {}),
        ]
        stats = section_engagement(events)
        assert [s.section_id for s in stats] == ["intro", "pricing"]

        intro, pricing = stats
        assert intro.section_title == "Intro"
        assert intro.views == 2
        assert intro.interactions == 3
        assert intro.avg_time_spent == 20
        assert intro.scroll_depth == 75

        assert pricing.section_title == "pricing"
        assert pricing.views == 1
        assert pricing.avg_time_spent == 60
        assert pricing.scroll_depth == 0

    def test_section_fields_read_both_spellings(self):
        events = [
            event("section_view", {"sectionId": "terms", "timeSpent": None, "time_spent": 40, "scroll_depth": 30}),
            event("section_view", {"section_id": "terms", "timeSpent": "bad", "scrollDepth": -5}),
            event("section_view", {"section": "terms", "timeSpent": 1e20}),
        ]
        (terms,) = section_engagement(events)
        assert terms.views == 3
        assert terms.avg_time_spent == 40
        assert terms.scroll_depth == 30

    def test_hourly_activity_zero_filled(self):
        events = [
            event("click", created_at=datetime(2026, 3, 2, 9, 1, tzinfo=timezone.utc)),
            event("click", created_at=datetime(2026, 3, 3, 9, 59, tzinfo=timezone.utc)),
            event("scroll", created_at=datetime(2026, 3, 2, 23, 30, tzinfo=timezone.utc)),
        ]
        hours = hourly_activity(events)
        assert len(hours) == 24
        assert hours[9] == 2
        assert hours[23] == 1
        assert sum(hours.values()) == 3

    def test_naive_timestamps_read_as_utc(self):
        hours = hourly_activity([event("click", created_at=datetime(2026, 3, 2, 7, 0))])
        assert hours[7] == 1

    def test_resolve_timezone_utc(self):
        assert resolve_timezone("UTC") is timezone.utc
        assert resolve_timezone(None) is timezone.utc

    def test_hourly_activity_in_named_zone(self):
        # 2026-03-02 is before the US DST switch: New York is UTC-5.
        tz = resolve_timezone("America/New_York")
        hours = hourly_activity([event("click", created_at=datetime(2026, 3, 2, 23, 30, tzinfo=timezone.utc))], tz)
        assert hours[18] == 1
        assert hours[23] == 0

    def test_hourly_activity_across_dst(self):
        tz = resolve_timezone("America/New_York")
        events = [
            event("click", created_at=datetime(2026, 3, 7, 14, 0, tzinfo=timezone.utc)),
            event("click", created_at=datetime(2026, 3, 9, 14, 0, tzinfo=timezone.utc)),
        ]
        hours = hourly_activity(events, tz)
        assert hours[9] == 1
        assert hours[10] == 1

    def test_aggregate_uses_reference_timezone(self):
        events = [event("click", created_at=datetime(2026, 3, 2, 3, 0, tzinfo=timezone.utc))]
        snap = aggregate([view()], events, tz=resolve_timezone("Asia/Tokyo"))
        assert snap.hourly_activity[12] == 1
        assert snap.hourly_activity[3] == 0


# ---------------------------------------------------------------------------
# Engagement score
# ---------------------------------------------------------------------------

class TestEngagementScore:
    def test_zero_without_views(self):
        events = [event(k) for k in ("time_spent", "click", "download", "scroll", "section_view")]
        assert engagement_score([], events) == 0

    def test_maximum(self):
        views = [view(300, session=f"s{i}") for i in range(5)]
        events = [event(k) for k in ("time_spent", "click", "download", "scroll", "section_view")]
        assert engagement_score(views, events) == 100

    def test_saturates_past_targets(self):
        views = [view(3000, session=f"s{i}") for i in range(50)]
        events = [event(k) for k in ("time_spent", "click", "download", "scroll", "section_view")]
        assert engagement_score(views, events) == 100

    def test_single_idle_view(self):
        # views: 20 * 1/5
        assert engagement_score([view(0)], []) == 4

    def test_partial(self):
        # 20 * 1/5 + 50 * 150/300 + 30 * 2/5 = 4 + 25 + 12
        events = [event("time_spent"), event("click"), event("click"), event("page_view")]
        assert engagement_score([view(150)], events) == 41

    def test_custom_weights_are_normalized(self):
        weights = EngagementWeights(views=1, time=0, diversity=0, views_target=1)
        assert engagement_score([view(0)], [], weights) == 100

    @pytest.mark.parametrize("score, level", [
        (100, "High"), (80, "High"), (79, "Medium"), (50, "Medium"), (49, "Low"), (0, "Low"),
    ])
    def test_levels(self, score, level):
        assert engagement_level(score) == level


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

class TestAggregate:
    def test_snapshot(self):
        later = datetime(2026, 3, 2, 11, 0, tzinfo=timezone.utc)
        views = [view(40, ua=EDGE, id=1), view(0, ua=IPHONE, ip="10.0.0.2", session="s2", id=2, created_at=later)]
        events = [
            event("page_view", id=1),
            event("click", {"element": "cta"}, id=2, created_at=later),
            event("download", {"format": "pdf"}, id=3),
            event("scroll", {"scrollDepth": 64}, id=4),
        ]
        snap = aggregate(views, events)

        assert snap.summary.total_views == 2
        assert snap.summary.unique_viewers == 2
        assert snap.summary.avg_time_spent == 40
        assert snap.summary.total_clicks == 1
        assert snap.summary.total_downloads == 1
        assert snap.summary.max_scroll_depth == 64
        assert snap.browser_breakdown == {"Safari": 1, "Edge": 1}
        assert snap.click_events[0]["data"] == {"element": "cta"}
        assert snap.view_timeline[0]["session_id"] == "s2"
        assert snap.view_timeline[1]["browser"] == "Edge"
        assert snap.activity_timeline[0]["event_type"] == "click"

    def test_activity_feed_limit(self):
        events = [event("click", id=i, created_at=datetime(2026, 3, 2, i, 0, tzinfo=timezone.utc)) for i in range(5)]
        feed = activity_feed(events, limit=2)
        assert [item["id"] for item in feed] == [4, 3]


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.4) == 2
