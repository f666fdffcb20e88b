"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-12 00:00:00.000000

workspaces / workspace_members are mirrored from the account service and only
read here. proposal_views carries the (proposal_id, session_id) unique
constraint that deduplicates concurrent first page views.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PROPOSAL_STATUSES = ("draft", "sent", "viewed", "accepted", "rejected", "expired")
EVENT_TYPES = ("page_view", "time_spent", "click", "download", "scroll", "section_view")


def upgrade() -> None:
    # --- workspaces ---
    op.create_table(
        "workspaces",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # --- workspace_members ---
    op.create_table(
        "workspace_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("workspace_id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("role", sa.String(32), nullable=False, server_default="member"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workspace_id", "user_id", name="uq_workspace_member"),
    )
    op.create_index("ix_workspace_members_id", "workspace_members", ["id"])
    op.create_index("ix_workspace_members_workspace_id", "workspace_members", ["workspace_id"])
    op.create_index("ix_workspace_members_user_id", "workspace_members", ["user_id"])

    # --- proposals ---
    op.create_table(
        "proposals",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("workspace_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(256), nullable=False, server_default=""),
        sa.Column(
            "status",
            sa.Enum(*PROPOSAL_STATUSES, name="proposal_status_enum"),
            nullable=False,
            server_default="draft",
        ),
        sa.Column("total_value", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_proposals_workspace_id", "proposals", ["workspace_id"])
    op.create_index("ix_proposals_status", "proposals", ["status"])
    op.create_index("ix_proposals_created_at", "proposals", ["created_at"])

    # --- proposal_views ---
    op.create_table(
        "proposal_views",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("proposal_id", sa.String(64), nullable=False),
        sa.Column("session_id", sa.String(128), nullable=False),
        sa.Column("viewer_ip", sa.String(64), nullable=False, server_default="unknown"),
        sa.Column("user_agent", sa.Text(), nullable=False, server_default="unknown"),
        sa.Column("time_spent", sa.Integer(), nullable=False, server_default="0", comment="Accumulated seconds"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_viewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("proposal_id", "session_id", name="uq_proposal_view_session"),
    )
    op.create_index("ix_proposal_views_id", "proposal_views", ["id"])
    op.create_index("ix_proposal_views_proposal_id", "proposal_views", ["proposal_id"])

    # --- proposal_events ---
    op.create_table(
        "proposal_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("proposal_id", sa.String(64), nullable=False),
        sa.Column("session_id", sa.String(128), nullable=False),
        sa.Column(
            "event_type",
            sa.Enum(*EVENT_TYPES, name="proposal_event_type_enum"),
            nullable=False,
        ),
        sa.Column(
            "event_data", sa.Text(), nullable=True,
            comment="JSON-encoded dict; shape depends on event_type",
        ),
        sa.Column("user_agent", sa.Text(), nullable=False, server_default="unknown"),
        sa.Column("ip_address", sa.String(64), nullable=False, server_default="unknown"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_proposal_events_id", "proposal_events", ["id"])
    op.create_index("ix_proposal_events_proposal_id", "proposal_events", ["proposal_id"])
    op.create_index("ix_proposal_events_session_id", "proposal_events", ["session_id"])
    op.create_index("ix_proposal_events_event_type", "proposal_events", ["event_type"])
    op.create_index("ix_proposal_events_created_at", "proposal_events", ["created_at"])


def downgrade() -> None:
    op.drop_table("proposal_events")
    op.drop_table("proposal_views")
    op.drop_table("proposals")
    op.drop_table("workspace_members")
    op.drop_table("workspaces")

    sa.Enum(name="proposal_event_type_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="proposal_status_enum").drop(op.get_bind(), checkfirst=True)
