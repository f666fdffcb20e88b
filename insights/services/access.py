"""
Authorization gate for analytics reads.

Identity itself comes from the upstream auth gateway; this only answers
"is this user a member of that workspace?".
"""
from __future__ import annotations

from sqlalchemy.orm import Session

from insights.core.errors import AccessDeniedError
from insights.models.workspace import WorkspaceMember


def is_member(db: Session, workspace_id: str, user_id: str) -> bool:
    return (
        db.query(WorkspaceMember.id)
        .filter(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
        )
        .first()
        is not None
    )


def require_member(db: Session, workspace_id: str, user_id: str) -> None:
    if not is_member(db, workspace_id, user_id):
        raise AccessDeniedError(workspace_id)
