"""
Tracking request / response schemas.

POST /analytics/track → TrackEventRequest → TrackEventResponse

Body keys are accepted in camelCase (`proposalId`, as sent by the browser
tracker) or snake_case (`proposal_id`).
"""
from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator

from insights.models.proposal_event import EventType
from insights.schemas.common import CamelModel


class TrackEventRequest(CamelModel):
    """One interaction reported by the proposal viewer."""

    proposal_id: Annotated[str, Field(
        min_length=1,
        max_length=64,
        description="Proposal being viewed.",
        examples=["prop_8f2c"],
    )]
    event_type: EventType = Field(
        description="Kind of interaction.",
        examples=["page_view", "time_spent"],
    )
    session_id: Annotated[str, Field(
        min_length=1,
        max_length=128,
        description="Client-generated token grouping one viewing visit.",
        examples=["1739980000000-k3j9x2a"],
    )]
    event_data: dict[str, Any] = Field(
        default_factory=dict,
        description="Event-specific payload (timeSpent, scrollDepth, sectionId, ...).",
        examples=[{"timeSpent": 30}],
    )

    @field_validator("proposal_id", "session_id", mode="before")
    @classmethod
    def strip_and_check_empty(cls, v: str) -> str:
        stripped = v.strip() if isinstance(v, str) else v
        if not stripped:
            raise ValueError("must not be empty after stripping whitespace")
        return stripped

    @field_validator("event_data", mode="before")
    @classmethod
    def default_event_data(cls, v: Any) -> Any:
        return {} if v is None else v


class TrackEventResponse(BaseModel):
    success: bool = True
