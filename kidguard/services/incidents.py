"""Threat incident store.

Listing, resolution and aggregate reporting over ThreatIncident rows.
Incidents are created by the threat detector; this module never creates
them.
"""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.logging_config import get_logger
from kidguard.models.threat_incident import (
    RESOLVABLE_STATUSES,
    IncidentStatus,
    ThreatIncident,
    ThreatSeverity,
)

logger = get_logger(__name__)

# Outcomes an admin may record when closing an incident
RESOLUTION_STATUSES = frozenset(
    {IncidentStatus.RESOLVED, IncidentStatus.FALSE_POSITIVE}
)

RECENT_INCIDENT_LIMIT = 10


class IncidentTransitionError(ValueError):
    """Raised when an incident cannot move to the requested status."""

    def __init__(self, incident_id: uuid.UUID, current: IncidentStatus):
        self.incident_id = incident_id
        self.current = current
        super().__init__(
            f"Incident {incident_id} is already {current.value} and cannot be resolved"
        )


async def get_incident(
    db: AsyncSession, incident_id: uuid.UUID
) -> ThreatIncident | None:
    """Get an incident by ID."""
    result = await db.execute(
        select(ThreatIncident).where(ThreatIncident.id == incident_id)
    )
    return result.scalar_one_or_none()


async def list_child_incidents(
    db: AsyncSession,
    child_id: uuid.UUID,
    status: IncidentStatus | None = None,
) -> list[ThreatIncident]:
    """List a child's incidents, newest first."""
    conditions = [ThreatIncident.child_id == child_id]
    if status is not None:
        conditions.append(ThreatIncident.status == status)

    result = await db.execute(
        select(ThreatIncident)
        .where(and_(*conditions))
        .order_by(ThreatIncident.created_at.desc())
    )
    return list(result.scalars().all())


async def list_incidents(
    db: AsyncSession,
    status: IncidentStatus | None = None,
    severity: ThreatSeverity | None = None,
    limit: int = 100,
) -> list[ThreatIncident]:
    """List incidents across all children for admin review, newest first."""
    stmt = select(ThreatIncident)
    if status is not None:
        stmt = stmt.where(ThreatIncident.status == status)
    if severity is not None:
        stmt = stmt.where(ThreatIncident.severity == severity)

    result = await db.execute(
        stmt.order_by(ThreatIncident.created_at.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def resolve_incident(
    db: AsyncSession,
    incident_id: uuid.UUID,
    resolved_by: uuid.UUID,
    resolution: IncidentStatus,
    notes: str | None = None,
) -> ThreatIncident | None:
    """Close an open or under-review incident.

    Args:
        db: Database session.
        incident_id: Incident to close.
        resolved_by: Admin user recording the outcome.
        resolution: RESOLVED or FALSE_POSITIVE.
        notes: Optional free-text notes.

    Returns:
        The updated incident, or None if it does not exist.

    Raises:
        ValueError: If resolution is not a closing status.
        IncidentTransitionError: If the incident is already closed.
    """
    if resolution not in RESOLUTION_STATUSES:
        raise ValueError(
            f"Resolution must be one of: "
            f"{', '.join(sorted(s.value for s in RESOLUTION_STATUSES))}"
        )

    incident = await get_incident(db, incident_id)
    if incident is None:
        return None

    if incident.status not in RESOLVABLE_STATUSES:
        raise IncidentTransitionError(incident.id, incident.status)

    previous = incident.status
    incident.status = resolution
    incident.resolved_by = resolved_by
    incident.resolved_at = datetime.now(UTC)
    incident.resolution_notes = notes

    await db.commit()
    await db.refresh(incident)

    logger.info(
        "Threat incident resolved",
        incident_id=str(incident_id),
        resolved_by=str(resolved_by),
        from_status=previous.value,
        to_status=resolution.value,
    )

    return incident


async def _count(db: AsyncSession, *conditions) -> int:
    stmt = select(func.count()).select_from(ThreatIncident)
    if conditions:
        stmt = stmt.where(and_(*conditions))
    result = await db.execute(stmt)
    return result.scalar_one()


async def get_incident_stats(db: AsyncSession) -> dict[str, Any]:
    """Aggregate incident counts.

    Returns:
        Dict with total, open, critical, high and by_type (list of
        {type, count}, most frequent first).
    """
    total = await _count(db)
    open_count = await _count(db, ThreatIncident.status == IncidentStatus.OPEN)
    critical = await _count(db, ThreatIncident.severity == ThreatSeverity.CRITICAL)
    high = await _count(db, ThreatIncident.severity == ThreatSeverity.HIGH)

    result = await db.execute(
        select(ThreatIncident.threat_type, func.count())
        .group_by(ThreatIncident.threat_type)
        .order_by(func.count().desc())
    )
    by_type = [
        {"type": threat_type, "count": count} for threat_type, count in result.all()
    ]

    return {
        "total": total,
        "open": open_count,
        "critical": critical,
        "high": high,
        "by_type": by_type,
    }


async def get_threat_overview(db: AsyncSession) -> dict[str, Any]:
    """Dashboard overview for admins.

    Returns:
        Dict with open, resolved and critical counts, by_type breakdown
        with average confidence, and the most recent incidents.
    """
    open_count = await _count(db, ThreatIncident.status == IncidentStatus.OPEN)
    resolved = await _count(db, ThreatIncident.status == IncidentStatus.RESOLVED)
    critical = await _count(db, ThreatIncident.severity == ThreatSeverity.CRITICAL)

    result = await db.execute(
        select(
            ThreatIncident.threat_type,
            func.count(),
            func.avg(ThreatIncident.confidence),
        )
        .group_by(ThreatIncident.threat_type)
        .order_by(func.count().desc())
    )
    by_type = [
        {
            "type": threat_type,
            "count": count,
            "avg_confidence": round(float(avg_confidence or 0), 1),
        }
        for threat_type, count, avg_confidence in result.all()
    ]

    recent = await list_incidents(db, limit=RECENT_INCIDENT_LIMIT)

    return {
        "open": open_count,
        "resolved": resolved,
        "critical": critical,
        "by_type": by_type,
        "recent": recent,
    }
