"""
Custom exception hierarchy for Proposal Insights.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class InsightsException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class MissingFieldError(InsightsException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"

    def __init__(self, *fields: str):
        names = ", ".join(fields)
        super().__init__(
            message=f"Missing required field(s): {names}.",
            details={"fields": list(fields)},
        )


class InvalidIntervalError(InsightsException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_INTERVAL"

    def __init__(self, interval: str, allowed: tuple[str, ...]):
        super().__init__(
            message=f"Unsupported interval {interval!r}.",
            details={"interval": interval, "allowed": list(allowed)},
        )


class AuthenticationRequiredError(InsightsException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_REQUIRED"

    def __init__(self):
        super().__init__(message="A requester identity is required.")


class AccessDeniedError(InsightsException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "ACCESS_DENIED"

    def __init__(self, workspace_id: str):
        super().__init__(
            message="Requester is not a member of this workspace.",
            details={"workspace_id": workspace_id},
        )


class ProposalNotFoundError(InsightsException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "PROPOSAL_NOT_FOUND"

    def __init__(self, proposal_id: str):
        super().__init__(
            message=f"Proposal {proposal_id} not found.",
            details={"proposal_id": proposal_id},
        )


class WorkspaceNotFoundError(InsightsException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "WORKSPACE_NOT_FOUND"

    def __init__(self, workspace_id: str):
        super().__init__(
            message=f"Workspace {workspace_id} not found.",
            details={"workspace_id": workspace_id},
        )


class IngestionError(InsightsException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INGESTION_ERROR"

    def __init__(self, message: str, event_type: str | None = None):
        super().__init__(
            message=message,
            details={"event_type": event_type} if event_type else {},
        )


class AnalyticsUnavailableError(InsightsException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "ANALYTICS_UNAVAILABLE"

    def __init__(self, scope: str):
        super().__init__(
            message=f"Failed to load {scope} analytics.",
            details={"scope": scope},
        )


class StoreTimeoutError(InsightsException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORE_TIMEOUT"

    def __init__(self, operation: str):
        super().__init__(
            message=f"The data store did not answer in time during {operation}.",
            details={"operation": operation, "retryable": True},
        )


class RateLimitExceededError(InsightsException):
    http_status = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"

    def __init__(self, retry_after: int):
        super().__init__(
            message="Too many requests. Slow down.",
            details={"retry_after": retry_after},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def insights_exception_handler(request: Request, exc: InsightsException) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(exc.details["retry_after"])}
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
        headers=headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
