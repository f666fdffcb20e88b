"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
Every test creates its own workspace/proposal ids, so the session-wide
database never needs truncating between tests.
"""
import os
import uuid
from datetime import datetime, timezone
from decimal import Decimal

SQLITE_URL = "sqlite:///./test_insights.db"
os.environ.setdefault("DATABASE_URL", SQLITE_URL)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from insights.db.base import Base, get_db
from insights.main import app
from insights.models import Proposal, ProposalStatus, Workspace, WorkspaceMember
from insights.routers.deps import track_limiter

MEMBER = "user-member"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    track_limiter.store.reset()
    yield
    track_limiter.store.reset()


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------

def _id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


@pytest.fixture()
def make_workspace(db):
    """Factory: a workspace whose only member is MEMBER."""
    def _make(members=(MEMBER,)):
        ws = Workspace(id=_id("ws"), name="Acme Studio")
        db.add(ws)
        for user_id in members:
            db.add(WorkspaceMember(workspace_id=ws.id, user_id=user_id))
        db.commit()
        return ws
    return _make


@pytest.fixture()
def make_proposal(db):
    """Factory: a proposal in `workspace_id` with explicit timestamps."""
    def _make(
        workspace_id,
        status=ProposalStatus.sent,
        total_value="0",
        created_at=None,
        updated_at=None,
        decided_at=None,
        expires_at=None,
        title="Website redesign",
    ):
        created = created_at or datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)
        proposal = Proposal(
            id=_id("prop"),
            workspace_id=workspace_id,
            title=title,
            status=status,
            total_value=Decimal(total_value),
            created_at=created,
            updated_at=updated_at or created,
            decided_at=decided_at,
            expires_at=expires_at,
        )
        db.add(proposal)
        db.commit()
        return proposal
    return _make
