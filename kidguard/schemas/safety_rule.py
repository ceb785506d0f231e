"""Safety rule schemas.

Request and response schemas for the per-child policy endpoints.
"""

import re
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _check_hhmm(value: str | None) -> str | None:
    if value is not None and not HHMM_PATTERN.match(value):
        msg = f"'{value}' is not a zero-padded 24-hour HH:MM time"
        raise ValueError(msg)
    return value


class TimeRestrictions(BaseModel):
    """Daily access windows and the daily usage cap."""

    enabled: bool = False
    weekday_start: str | None = Field(default=None, examples=["08:00"])
    weekday_end: str | None = Field(default=None, examples=["20:00"])
    weekend_start: str | None = Field(default=None, examples=["09:00"])
    weekend_end: str | None = Field(default=None, examples=["21:00"])
    max_daily_minutes: int | None = Field(
        default=None,
        ge=1,
        le=1440,
        description="Daily screen-time cap in minutes. Range: 1-1440.",
    )

    @field_validator(
        "weekday_start", "weekday_end", "weekend_start", "weekend_end"
    )
    @classmethod
    def validate_time_format(cls, value: str | None) -> str | None:
        return _check_hhmm(value)

    @model_validator(mode="after")
    def validate_window_ordering(self) -> "TimeRestrictions":
        """Start must not be after end within the same day."""
        for start, end in (
            (self.weekday_start, self.weekday_end),
            (self.weekend_start, self.weekend_end),
        ):
            if start is not None and end is not None and start > end:
                msg = f"window start {start} must not be after end {end}"
                raise ValueError(msg)
        return self


class ContentFilters(BaseModel):
    """Content filter flags."""

    block_violence: bool = True
    block_inappropriate: bool = True
    safe_search_only: bool = True


class AlertSettings(BaseModel):
    """Which events produce guardian alerts."""

    notify_on_threat: bool = True
    notify_on_blocked_content: bool = True
    notify_on_time_limit: bool = True
    email_alerts: bool = False


class SafetyRuleUpsert(BaseModel):
    """Request schema for creating or updating a child's safety rules.

    Only the sections present in the request replace the stored ones.
    """

    child_id: uuid.UUID
    time_restrictions: TimeRestrictions | None = None
    blocked_keywords: list[str] | None = Field(default=None, max_length=500)
    blocked_urls: list[str] | None = Field(default=None, max_length=500)
    content_filters: ContentFilters | None = None
    alert_settings: AlertSettings | None = None
    # False pauses the rules; the unrestricted default applies meanwhile
    is_active: bool | None = None

    @field_validator("blocked_keywords")
    @classmethod
    def normalize_keywords(cls, value: list[str] | None) -> list[str] | None:
        """Strip, drop blanks and de-duplicate case-insensitively."""
        if value is None:
            return None
        seen: set[str] = set()
        keywords = []
        for raw in value:
            keyword = raw.strip()
            if keyword and keyword.lower() not in seen:
                seen.add(keyword.lower())
                keywords.append(keyword)
        return keywords

    @field_validator("blocked_urls")
    @classmethod
    def normalize_urls(cls, value: list[str] | None) -> list[str] | None:
        """Strip, drop blanks and de-duplicate (URLs are case-sensitive)."""
        if value is None:
            return None
        return list(dict.fromkeys(url.strip() for url in value if url.strip()))


class SafetyRuleResponse(BaseModel):
    """A child's safety rules.

    is_default is true when the unrestricted default policy is in effect:
    either nothing is stored, or the stored rules are paused
    (is_active false). Paused rules are still returned so they can be
    re-enabled.
    """

    model_config = ConfigDict(from_attributes=True)

    child_id: uuid.UUID
    guardian_id: uuid.UUID | None
    time_restrictions: TimeRestrictions
    blocked_keywords: list[str]
    blocked_urls: list[str]
    content_filters: ContentFilters
    alert_settings: AlertSettings
    is_active: bool = True
    is_default: bool = False
    updated_at: datetime | None = None

    @classmethod
    def from_rule(cls, rule) -> "SafetyRuleResponse":
        """Build the response for a stored rule set."""
        response = cls.model_validate(rule)
        return response.model_copy(update={"is_default": not rule.is_active})


class TimeRestrictionResponse(BaseModel):
    """Result of a time-of-day access check."""

    allowed: bool
    reason: str | None = None
