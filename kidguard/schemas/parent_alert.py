"""Parent alert schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from kidguard.models.parent_alert import (
    ParentAlertSeverity,
    ParentAlertStatus,
    ParentAlertType,
)


class ParentAlertResponse(BaseModel):
    """Single alert in a guardian's feed."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    child_id: uuid.UUID
    alert_type: ParentAlertType
    severity: ParentAlertSeverity
    status: ParentAlertStatus
    title: str
    message: str
    alert_metadata: dict[str, Any]
    related_incident_id: uuid.UUID | None = None
    read_at: datetime | None = None
    dismissed_at: datetime | None = None
    created_at: datetime | None = None


class ParentAlertListResponse(BaseModel):
    """Response for listing alerts."""

    alerts: list[ParentAlertResponse]
    count: int


class UnreadCountResponse(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    modified: int
