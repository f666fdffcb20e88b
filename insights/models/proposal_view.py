"""
ProposalView: one deduplicated viewing session.

At most one row per (proposal_id, session_id); the unique constraint is the
final guard when two first page views of a session race each other.
time_spent only ever grows (atomic `time_spent = time_spent + n` updates).
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from insights.db.base import Base


class ProposalView(Base):
    __tablename__ = "proposal_views"
    __table_args__ = (
        UniqueConstraint("proposal_id", "session_id", name="uq_proposal_view_session"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    proposal_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    session_id: Mapped[str] = mapped_column(String(128), nullable=False)
    viewer_ip: Mapped[str] = mapped_column(String(64), nullable=False, default="unknown")
    user_agent: Mapped[str] = mapped_column(Text, nullable=False, default="unknown")
    time_spent: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Accumulated seconds"
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_viewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
