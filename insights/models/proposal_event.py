"""
ProposalEvent: raw interaction log.

Append-only: rows are never updated or deleted here; retention is handled
elsewhere. event_data is a JSON-encoded dict stored as Text whose shape
depends on event_type (see insights/services/event_data.py).
"""
from __future__ import annotations

import enum
import json
from datetime import datetime
from typing import Any

from sqlalchemy import Integer, String, Text, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column

from insights.db.base import Base


class EventType(str, enum.Enum):
    page_view = "page_view"
    time_spent = "time_spent"
    click = "click"
    download = "download"
    scroll = "scroll"
    section_view = "section_view"


class ProposalEvent(Base):
    __tablename__ = "proposal_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    proposal_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    session_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    event_type: Mapped[EventType] = mapped_column(
        Enum(EventType, name="proposal_event_type_enum"), nullable=False, index=True
    )
    event_data: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON-encoded dict; shape depends on event_type",
    )
    user_agent: Mapped[str] = mapped_column(Text, nullable=False, default="unknown")
    ip_address: Mapped[str] = mapped_column(String(64), nullable=False, default="unknown")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    @property
    def data(self) -> dict[str, Any]:
        """Decoded event_data; malformed or non-object payloads read as {}."""
        if not self.event_data:
            return {}
        try:
            decoded = json.loads(self.event_data)
        except (ValueError, TypeError):
            return {}
        return decoded if isinstance(decoded, dict) else {}
