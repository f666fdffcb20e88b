"""
Service-level tests for ingestion and view deduplication (no HTTP layer).
"""
from datetime import datetime, timezone

import pytest

from insights.core.errors import MissingFieldError, ProposalNotFoundError
from insights.models import ProposalEvent, ProposalStatus, ProposalView
from insights.services import dedupe
from insights.services.aggregation import as_utc
from insights.services.tracking import TrackedEvent, track_event

CHROME = "Mozilla/5.0 (Windows NT 10.0) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"


def page_view(proposal_id, session_id="sess-1", ip="203.0.113.7"):
    return TrackedEvent(
        proposal_id=proposal_id,
        event_type="page_view",
        session_id=session_id,
        ip_address=ip,
        user_agent=CHROME,
    )


def time_spent(proposal_id, seconds, session_id="sess-1"):
    return TrackedEvent(
        proposal_id=proposal_id,
        event_type="time_spent",
        session_id=session_id,
        event_data={"timeSpent": seconds},
    )


def _views(db, proposal_id):
    db.expire_all()
    return db.query(ProposalView).filter(ProposalView.proposal_id == proposal_id).all()


def _events(db, proposal_id):
    db.expire_all()
    return db.query(ProposalEvent).filter(ProposalEvent.proposal_id == proposal_id).all()


def _status(db, proposal):
    db.expire_all()
    db.refresh(proposal)
    return ProposalStatus(proposal.status)


# ---------------------------------------------------------------------------
# View deduplication
# ---------------------------------------------------------------------------

class TestPageView:
    def test_first_view_creates_view_and_marks_viewed(self, db, make_workspace, make_proposal):
        p = make_proposal(make_workspace().id, status=ProposalStatus.sent)
        result = track_event(db, page_view(p.id))

        assert result.view_created is True
        assert result.status_transitioned is True
        views = _views(db, p.id)
        assert len(views) == 1
        assert views[0].viewer_ip == "203.0.113.7"
        assert views[0].time_spent == 0
        assert _status(db, p) is ProposalStatus.viewed

    def test_same_session_is_idempotent(self, db, make_workspace, make_proposal):
        p = make_proposal(make_workspace().id)
        first = track_event(db, page_view(p.id))
        second = track_event(db, page_view(p.id))
        third = track_event(db, page_view(p.id))

        assert first.view_created is True
        assert second.view_created is False and third.view_created is False
        assert second.status_transitioned is False
        assert len(_views(db, p.id)) == 1
        # every call is still logged
        assert len(_events(db, p.id)) == 3

    def test_new_session_adds_view(self, db, make_workspace, make_proposal):
        p = make_proposal(make_workspace().id)
        track_event(db, page_view(p.id, "sess-1"))
        result = track_event(db, page_view(p.id, "sess-2"))

        assert result.view_created is True
        assert result.status_transitioned is False
        assert len(_views(db, p.id)) == 2
        assert _status(db, p) is ProposalStatus.viewed

    @pytest.mark.parametrize("status", [
        ProposalStatus.draft, ProposalStatus.accepted, ProposalStatus.rejected, ProposalStatus.expired,
    ])
    def test_status_is_never_regressed(self, db, make_workspace, make_proposal, status):
        p = make_proposal(make_workspace().id, status=status)
        result = track_event(db, page_view(p.id))
        assert result.view_created is True
        assert result.status_transitioned is False
        assert _status(db, p) is status

    def test_concurrent_first_view_keeps_single_row(self, db, make_workspace, make_proposal, monkeypatch):
        p = make_proposal(make_workspace().id)
        track_event(db, page_view(p.id))

        # Simulate losing the race: the pre-insert lookup misses the row
        # another request has just committed.
        real_find = dedupe._find_view
        calls = []

        def racing_find(session, proposal_id, session_id):
            calls.append(proposal_id)
            if len(calls) == 1:
                return None
            return real_find(session, proposal_id, session_id)

        monkeypatch.setattr(dedupe, "_find_view", racing_find)
        result = track_event(db, page_view(p.id))

        assert result.view_created is False
        assert len(calls) == 2
        assert len(_views(db, p.id)) == 1
        assert len(_events(db, p.id)) == 2


# ---------------------------------------------------------------------------
# Time accumulation
# ---------------------------------------------------------------------------

class TestTimeSpent:
    def test_accumulates_and_stamps_last_viewed(self, db, make_workspace, make_proposal):
        p = make_proposal(make_workspace().id)
        t1 = datetime(2026, 3, 2, 10, 0, 30, tzinfo=timezone.utc)
        t2 = datetime(2026, 3, 2, 10, 1, 15, tzinfo=timezone.utc)

        track_event(db, page_view(p.id), now=datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc))
        first = track_event(db, time_spent(p.id, 30), now=t1)
        second = track_event(db, time_spent(p.id, 45), now=t2)

        assert first.time_added == 30
        assert second.time_added == 45
        (v,) = _views(db, p.id)
        assert v.time_spent == 75
        assert as_utc(v.last_viewed_at) == t2

    def test_without_view_is_logged_only(self, db, make_workspace, make_proposal):
        p = make_proposal(make_workspace().id)
        result = track_event(db, time_spent(p.id, 30, session_id="never-viewed"))

        assert result.time_added == 0
        assert _views(db, p.id) == []
        assert len(_events(db, p.id)) == 1

    @pytest.mark.parametrize("raw", [-20, "abc", None, 1e20, "1e20", 86_401])
    def test_malformed_seconds_add_nothing(self, db, make_workspace, make_proposal, raw):
        p = make_proposal(make_workspace().id)
        track_event(db, page_view(p.id))
        track_event(db, TrackedEvent(
            proposal_id=p.id, event_type="time_spent", session_id="sess-1",
            event_data={"timeSpent": raw},
        ))
        (v,) = _views(db, p.id)
        assert v.time_spent == 0
        assert len(_events(db, p.id)) == 2


# ---------------------------------------------------------------------------
# Event log
# ---------------------------------------------------------------------------

class TestEventLog:
    def test_event_persisted_with_payload(self, db, make_workspace, make_proposal):
        p = make_proposal(make_workspace().id)
        stamp = datetime(2026, 3, 2, 14, 5, tzinfo=timezone.utc)
        result = track_event(db, TrackedEvent(
            proposal_id=p.id,
            event_type="click",
            session_id="sess-9",
            event_data={"element": "accept-button", "sectionId": "pricing"},
            ip_address="198.51.100.1",
            user_agent=CHROME,
        ), now=stamp)

        row = result.event
        assert row.id is not None
        assert row.data == {"element": "accept-button", "sectionId": "pricing"}
        assert row.ip_address == "198.51.100.1"
        assert as_utc(row.created_at) == stamp
        # clicks never create views
        assert _views(db, p.id) == []

    def test_missing_request_metadata_defaults_to_unknown(self, db, make_workspace, make_proposal):
        p = make_proposal(make_workspace().id)
        result = track_event(db, TrackedEvent(
            proposal_id=p.id, event_type="scroll", session_id="s",
            ip_address="", user_agent="",
        ))
        assert result.event.ip_address == "unknown"
        assert result.event.user_agent == "unknown"


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------

class TestRejections:
    @pytest.mark.parametrize("field", ["proposal_id", "event_type", "session_id"])
    def test_missing_field(self, db, field):
        kwargs = {"proposal_id": "p", "event_type": "page_view", "session_id": "s"}
        kwargs[field] = "  "
        with pytest.raises(MissingFieldError) as exc:
            track_event(db, TrackedEvent(**kwargs))
        assert exc.value.details["fields"] == [field]

    def test_unknown_event_type(self, db):
        with pytest.raises(MissingFieldError):
            track_event(db, TrackedEvent(proposal_id="p", event_type="hover", session_id="s"))

    def test_unknown_proposal_writes_nothing(self, db):
        with pytest.raises(ProposalNotFoundError):
            track_event(db, page_view("prop_does_not_exist"))
        assert _events(db, "prop_does_not_exist") == []
        assert _views(db, "prop_does_not_exist") == []
