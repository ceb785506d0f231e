"""Monitoring schemas.

Screen-time status, usage summaries and the content-check endpoint.
"""

import uuid
from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class TimeLimitStatusResponse(BaseModel):
    """Today's screen-time position against the daily limit."""

    model_config = ConfigDict(from_attributes=True)

    is_exceeded: bool
    current_minutes: int
    limit_minutes: int
    remaining_minutes: int
    should_warn: bool


class DailyUsageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: date
    total_minutes: int
    sessions: int


class UsageSummaryResponse(BaseModel):
    child_id: uuid.UUID
    days: int
    usage: list[DailyUsageResponse]


class ContentCheckRequest(BaseModel):
    """Content a child is about to view or post."""

    content: str = Field(..., max_length=10000)
    url: str | None = Field(default=None, max_length=2048)
    content_type: str = Field(default="content", max_length=50)


class ContentCheckResponse(BaseModel):
    blocked: bool
    reason: str | None = None
