"""
Funnel / status classifier: lifecycle metrics over a set of proposals.

Definitions
-----------
  win_rate          accepted / (accepted + rejected); undecided proposals
                    (draft, sent, viewed, expired) are not in the denominator
  total_revenue     Σ total_value over accepted proposals
  avg_deal_size     total_revenue / accepted count
  avg_time_to_close mean days of (decided_at or updated_at) − created_at over
                    accepted + rejected proposals
  view_rate         share of non-draft proposals with at least one view

Funnel stages: Created → Sent → Viewed → Accepted. A proposal is in
Viewed when its status says so (viewed / accepted / rejected) or when at
least one view exists for it.

Time buckets are computed in UTC: day `YYYY-MM-DD`, week `YYYY-MM-DD` of the
Sunday starting it, month `YYYY-MM`.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Collection, Optional, Sequence

from insights.models.proposal import ProposalStatus, TERMINAL_STATUSES
from insights.services.aggregation import as_utc, avg_time_spent

INTERVALS = ("day", "week", "month")

_VIEWED_STATUSES = (ProposalStatus.viewed, ProposalStatus.accepted, ProposalStatus.rejected)
_EXPIRABLE = (ProposalStatus.sent, ProposalStatus.viewed)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class FunnelStage:
    stage: str
    count: int
    percentage: int      # of Created
    drop_off: int        # percent lost since the previous stage


@dataclass
class TimeBucket:
    date: str
    count: int
    revenue: Optional[Decimal] = None


@dataclass
class WorkspaceMetrics:
    total_proposals: int
    proposals_sent: int
    win_rate: Decimal
    avg_deal_size: Decimal
    total_revenue: Decimal
    avg_time_to_close: Decimal
    view_rate: Decimal
    avg_time_spent: int


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

def _status(proposal: Any) -> ProposalStatus:
    return ProposalStatus(proposal.status)


def effective_status(proposal: Any, now: Optional[datetime] = None) -> ProposalStatus:
    """Stored status, with lapsed sent/viewed proposals read as expired."""
    status = _status(proposal)
    if now is not None and status in _EXPIRABLE and proposal.expires_at is not None:
        if as_utc(proposal.expires_at) <= as_utc(now):
            return ProposalStatus.expired
    return status


def group_by_status(
    proposals: Sequence[Any], now: Optional[datetime] = None
) -> dict[str, int]:
    counts = {s.value: 0 for s in ProposalStatus}
    for p in proposals:
        counts[effective_status(p, now).value] += 1
    return counts


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

def _ratio(numerator: int, denominator: int) -> Decimal:
    if denominator == 0:
        return Decimal("0")
    return (Decimal(numerator) / Decimal(denominator)).quantize(
        Decimal("0.0001"), rounding=ROUND_HALF_UP
    )


def _money(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _value(proposal: Any) -> Decimal:
    raw = proposal.total_value
    return Decimal(str(raw)) if raw is not None else Decimal("0")


def _accepted(proposals: Sequence[Any]) -> list[Any]:
    return [p for p in proposals if _status(p) is ProposalStatus.accepted]


def win_rate(proposals: Sequence[Any]) -> Decimal:
    decided = [p for p in proposals if _status(p) in TERMINAL_STATUSES]
    return _ratio(len(_accepted(decided)), len(decided))


def total_revenue(proposals: Sequence[Any]) -> Decimal:
    return _money(sum((_value(p) for p in _accepted(proposals)), Decimal("0")))


def avg_deal_size(proposals: Sequence[Any]) -> Decimal:
    won = _accepted(proposals)
    if not won:
        return Decimal("0.00")
    return _money(total_revenue(won) / len(won))


def avg_time_to_close(proposals: Sequence[Any]) -> Decimal:
    """Mean days from creation to decision over decided proposals."""
    spans = []
    for p in proposals:
        if _status(p) not in TERMINAL_STATUSES or p.created_at is None:
            continue
        decided = p.decided_at or p.updated_at
        if decided is None:
            continue
        spans.append((as_utc(decided) - as_utc(p.created_at)).total_seconds() / 86400)
    if not spans:
        return Decimal("0.0")
    return Decimal(str(sum(spans) / len(spans))).quantize(
        Decimal("0.1"), rounding=ROUND_HALF_UP
    )


def view_rate(proposals: Sequence[Any], viewed_ids: Collection[str]) -> Decimal:
    sent = [p for p in proposals if _status(p) is not ProposalStatus.draft]
    viewed = sum(1 for p in sent if p.id in viewed_ids)
    return _ratio(viewed, len(sent))


def workspace_metrics(proposals: Sequence[Any], views: Sequence[Any]) -> WorkspaceMetrics:
    viewed_ids = {v.proposal_id for v in views}
    return WorkspaceMetrics(
        total_proposals=len(proposals),
        proposals_sent=sum(1 for p in proposals if _status(p) is not ProposalStatus.draft),
        win_rate=win_rate(proposals),
        avg_deal_size=avg_deal_size(proposals),
        total_revenue=total_revenue(proposals),
        avg_time_to_close=avg_time_to_close(proposals),
        view_rate=view_rate(proposals, viewed_ids),
        avg_time_spent=avg_time_spent(views),
    )


# ---------------------------------------------------------------------------
# Funnel
# ---------------------------------------------------------------------------

def _percent(part: int, whole: int) -> int:
    if whole == 0:
        return 0
    return int((Decimal(part) * 100 / Decimal(whole)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def conversion_funnel(
    proposals: Sequence[Any], viewed_ids: Collection[str] = ()
) -> list[FunnelStage]:
    created = len(proposals)
    sent = sum(1 for p in proposals if _status(p) is not ProposalStatus.draft)
    viewed = sum(
        1 for p in proposals
        if _status(p) in _VIEWED_STATUSES
        or (_status(p) is not ProposalStatus.draft and p.id in viewed_ids)
    )
    accepted = len(_accepted(proposals))

    stages: list[FunnelStage] = []
    previous = created
    for name, count in (("Created", created), ("Sent", sent), ("Viewed", viewed), ("Accepted", accepted)):
        stages.append(FunnelStage(
            stage=name,
            count=count,
            percentage=_percent(count, created),
            drop_off=(100 - _percent(count, previous)) if previous else 0,
        ))
        previous = count
    return stages


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------

def bucket_key(value: datetime, interval: str) -> str:
    ts = as_utc(value)
    if interval == "day":
        return ts.strftime("%Y-%m-%d")
    if interval == "week":
        # Python: Monday=0 … Sunday=6; shift back to the preceding Sunday.
        start = ts.date() - timedelta(days=(ts.weekday() + 1) % 7)
        return start.isoformat()
    if interval == "month":
        return ts.strftime("%Y-%m")
    raise ValueError(f"unsupported interval: {interval}")


def time_series(
    proposals: Sequence[Any],
    interval: str = "day",
    date_field: str = "created_at",
    revenue: bool = False,
) -> list[TimeBucket]:
    """
    Bucketed counts keyed by `interval`, oldest first.
    With revenue=True only accepted proposals are counted and their
    total_value is summed per bucket.
    """
    counts: dict[str, int] = defaultdict(int)
    sums: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))

    rows = _accepted(proposals) if revenue else proposals
    for p in rows:
        stamp = getattr(p, date_field)
        if stamp is None:
            continue
        key = bucket_key(stamp, interval)
        counts[key] += 1
        if revenue:
            sums[key] += _value(p)

    return [
        TimeBucket(date=key, count=counts[key], revenue=_money(sums[key]) if revenue else None)
        for key in sorted(counts)
    ]


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------

def top_performing(
    proposals: Sequence[Any], views: Sequence[Any], limit: int = 5
) -> list[dict]:
    """Proposals ranked by view_count * 10 + avg_time_spent / 60."""
    by_proposal: dict[str, list[Any]] = defaultdict(list)
    for v in views:
        by_proposal[v.proposal_id].append(v)

    ranked = []
    for p in proposals:
        pviews = by_proposal.get(p.id, [])
        avg = avg_time_spent(pviews)
        ranked.append({
            "id": p.id,
            "title": p.title,
            "status": _status(p).value,
            "view_count": len(pviews),
            "avg_time_spent": avg,
            "score": len(pviews) * 10 + avg / 60,
        })
    ranked.sort(key=lambda r: (-r["score"], r["id"]))
    return ranked[:limit]
