from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, Numeric, DateTime, Enum, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from insights.db.base import Base


class ProposalStatus(str, enum.Enum):
    draft = "draft"
    sent = "sent"
    viewed = "viewed"
    accepted = "accepted"   # a.k.a. signed / won
    rejected = "rejected"   # a.k.a. declined / lost
    expired = "expired"


TERMINAL_STATUSES = (ProposalStatus.accepted, ProposalStatus.rejected)


class Proposal(Base):
    __tablename__ = "proposals"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    workspace_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    status: Mapped[ProposalStatus] = mapped_column(
        Enum(ProposalStatus, name="proposal_status_enum"),
        nullable=False,
        default=ProposalStatus.draft,
        index=True,
    )
    total_value: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
