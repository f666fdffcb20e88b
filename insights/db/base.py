"""
Engine, session factory and declarative base.

Every store round-trip is bounded by STORE_TIMEOUT_SECONDS: Postgres gets a
server-side statement_timeout plus a connect timeout, SQLite a busy timeout.
"""
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from insights.core.config import settings
from insights.core.errors import InsightsException, StoreTimeoutError


class Base(DeclarativeBase):
    pass


def _connect_args(url: str, timeout: float) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": timeout}
    if url.startswith("postgresql"):
        return {
            "connect_timeout": max(1, int(timeout)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    return {}


_engine_kwargs: dict = {
    "connect_args": _connect_args(settings.DATABASE_URL, settings.STORE_TIMEOUT_SECONDS),
    "pool_pre_ping": True,
}
if not settings.DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["pool_timeout"] = settings.STORE_TIMEOUT_SECONDS

engine = create_engine(settings.DATABASE_URL, **_engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


_TIMEOUT_MARKERS = (
    "statement timeout",
    "canceling statement",
    "timeout expired",
    "timed out",
    "database is locked",
)


def is_timeout_error(exc: BaseException) -> bool:
    """True when a store failure is a timeout rather than a hard error."""
    if isinstance(exc, PoolTimeoutError):
        return True
    if isinstance(exc, OperationalError):
        text = str(exc.orig if exc.orig is not None else exc).lower()
        return any(marker in text for marker in _TIMEOUT_MARKERS)
    return False


def store_error(exc: BaseException, operation: str, fallback: InsightsException) -> InsightsException:
    """Map a store failure to StoreTimeoutError (retryable) or `fallback`."""
    if is_timeout_error(exc):
        return StoreTimeoutError(operation)
    return fallback
