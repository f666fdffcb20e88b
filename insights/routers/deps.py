"""
Request-scoped dependencies shared by the routers.
"""
from __future__ import annotations

import ipaddress
from typing import Optional

from fastapi import Depends, Header, Request

from insights.core.config import settings
from insights.core.errors import AuthenticationRequiredError, RateLimitExceededError
from insights.services.rate_limit import InMemoryCounterStore, RateLimiter

UNKNOWN = "unknown"

track_limiter = RateLimiter(
    store=InMemoryCounterStore(),
    limit=settings.RATE_LIMIT_TRACK_REQUESTS,
    window=settings.RATE_LIMIT_WINDOW_SECONDS,
)


def _valid_ip(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        ip = str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None
    # IPv6 scope ids are unbounded; the columns hold 64 characters.
    return ip if len(ip) <= 64 else None


def client_ip(request: Request) -> str:
    """
    First X-Forwarded-For hop, then X-Real-IP, then the socket peer.
    Header values that are not IP addresses are ignored.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = _valid_ip(forwarded.split(",")[0])
        if first:
            return first
    real_ip = _valid_ip(request.headers.get("x-real-ip"))
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host[:64]
    return UNKNOWN


def user_agent(request: Request) -> str:
    return request.headers.get("user-agent") or UNKNOWN


def get_requester(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Identity asserted by the upstream auth gateway."""
    if x_user_id is None or not x_user_id.strip():
        raise AuthenticationRequiredError()
    return x_user_id.strip()


def get_track_limiter() -> RateLimiter:
    return track_limiter


def enforce_track_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_track_limiter),
) -> None:
    decision = limiter.check(f"track:{client_ip(request)}")
    if not decision.allowed:
        raise RateLimitExceededError(retry_after=decision.retry_after)
