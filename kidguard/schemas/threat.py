"""Threat incident schemas.

Response schemas for incident listings and admin reporting, plus the
resolve request.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from kidguard.models.threat_incident import IncidentStatus, ThreatSeverity


class ThreatIncidentResponse(BaseModel):
    """Single incident."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    child_id: uuid.UUID
    threat_type: str
    severity: ThreatSeverity
    status: IncidentStatus
    confidence: int
    detected_keywords: list[str]
    context: dict[str, Any]
    parent_notified: bool
    parent_notified_at: datetime | None = None
    resolved_by: uuid.UUID | None = None
    resolved_at: datetime | None = None
    resolution_notes: str | None = None
    created_at: datetime | None = None


class IncidentResolveRequest(BaseModel):
    """Admin decision closing an incident."""

    resolution: IncidentStatus = Field(
        ..., description="Either 'resolved' or 'false_positive'."
    )
    notes: str | None = Field(default=None, max_length=2000)


class ThreatTypeCount(BaseModel):
    type: str
    count: int


class ThreatTypeOverview(ThreatTypeCount):
    avg_confidence: float


class IncidentStatsResponse(BaseModel):
    """Aggregate incident counts."""

    total: int
    open: int
    critical: int
    high: int
    by_type: list[ThreatTypeCount]


class ThreatOverviewResponse(BaseModel):
    """Admin dashboard overview."""

    open: int
    resolved: int
    critical: int
    by_type: list[ThreatTypeOverview]
    recent: list[ThreatIncidentResponse]


class EducationalInterventionResponse(BaseModel):
    """Guidance shown to a child whose own content was flagged."""

    model_config = ConfigDict(from_attributes=True)

    message: str
    options: list[str]
