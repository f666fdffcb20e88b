"""
Typed views over the free-form `event_data` payload.

Each event_type has its own frozen dataclass so the aggregation code reads
named fields instead of poking at dicts. Parsing fails closed: a missing or
malformed value becomes None (or 0 for numeric measures), never an error.

Keys are read in both spellings the browser tracker has used over time
(`sectionId` / `section_id` / `section`, `timeSpent` / `time_spent`, ...).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from insights.models.proposal_event import EventType

# One day. time_spent is stored in a 32-bit column.
MAX_TIME_SPENT_SECONDS = 86_400


# ---------------------------------------------------------------------------
# Payload types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PageViewData:
    referrer: Optional[str] = None
    screen_width: Optional[int] = None
    screen_height: Optional[int] = None


@dataclass(frozen=True)
class TimeSpentData:
    time_spent: int = 0
    section_id: Optional[str] = None


@dataclass(frozen=True)
class ScrollData:
    scroll_depth: float = 0.0
    section_id: Optional[str] = None


@dataclass(frozen=True)
class ClickData:
    target: Optional[str] = None
    section_id: Optional[str] = None


@dataclass(frozen=True)
class DownloadData:
    file_format: Optional[str] = None
    section_id: Optional[str] = None


@dataclass(frozen=True)
class SectionViewData:
    section_id: Optional[str] = None
    section_title: Optional[str] = None
    time_spent: int = 0
    scroll_depth: float = 0.0


EventData = Union[
    PageViewData, TimeSpentData, ScrollData, ClickData, DownloadData, SectionViewData
]


# ---------------------------------------------------------------------------
# Field readers
# ---------------------------------------------------------------------------

def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def number(value: Any) -> Optional[float]:
    """Finite float from an int/float/numeric string, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return result if math.isfinite(result) else None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _seconds(raw: Mapping[str, Any]) -> int:
    # More than a day in one event is malformed.
    value = number(_pick(raw, "timeSpent", "time_spent"))
    if value is None or value <= 0 or value > MAX_TIME_SPENT_SECONDS:
        return 0
    return int(round(value))


def _reported_depth(raw: Mapping[str, Any]) -> Optional[float]:
    value = number(_pick(raw, "scrollDepth", "scroll_depth"))
    if value is None or value < 0:
        return None
    return value


def _depth(raw: Mapping[str, Any]) -> float:
    value = _reported_depth(raw)
    return 0.0 if value is None else value


def _section(raw: Mapping[str, Any]) -> Optional[str]:
    return _text(_pick(raw, "sectionId", "section_id", "section"))


def _int_or_none(value: Any) -> Optional[int]:
    n = number(value)
    return int(n) if n is not None else None


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def parse_event_data(event_type: Union[EventType, str], raw: Any) -> EventData:
    """Decode `raw` into the payload type for `event_type`."""
    data: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
    kind = EventType(event_type)

    if kind is EventType.page_view:
        return PageViewData(
            referrer=_text(data.get("referrer")),
            screen_width=_int_or_none(_pick(data, "screenWidth", "screen_width")),
            screen_height=_int_or_none(_pick(data, "screenHeight", "screen_height")),
        )
    if kind is EventType.time_spent:
        return TimeSpentData(time_spent=_seconds(data), section_id=_section(data))
    if kind is EventType.scroll:
        return ScrollData(scroll_depth=_depth(data), section_id=_section(data))
    if kind is EventType.click:
        return ClickData(
            target=_text(_pick(data, "clickTarget", "click_target", "target", "element")),
            section_id=_section(data),
        )
    if kind is EventType.download:
        return DownloadData(
            file_format=_text(_pick(data, "format", "fileFormat", "file_format")),
            section_id=_section(data),
        )
    return SectionViewData(
        section_id=_section(data),
        section_title=_text(_pick(data, "sectionTitle", "section_title")),
        time_spent=_seconds(data),
        scroll_depth=_depth(data),
    )


def scroll_depth_of(raw: Any) -> float:
    """scrollDepth carried by any event kind, 0 when absent or malformed."""
    return _depth(raw) if isinstance(raw, Mapping) else 0.0


def section_of(raw: Any) -> Optional[str]:
    """Section identifier carried by any event kind, None when absent."""
    return _section(raw) if isinstance(raw, Mapping) else None


def time_spent_of(raw: Any) -> int:
    """timeSpent seconds carried by any event kind, 0 when absent or malformed."""
    return _seconds(raw) if isinstance(raw, Mapping) else 0


def reported_scroll_depth_of(raw: Any) -> Optional[float]:
    """scrollDepth carried by any event kind, None when not reported."""
    return _reported_depth(raw) if isinstance(raw, Mapping) else None
