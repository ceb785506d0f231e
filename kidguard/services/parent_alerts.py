"""Guardian alert dispatcher.

Creates ParentAlert rows from incidents, time-limit breaches and blocked
content, and owns their unread -> read -> dismissed lifecycle. Every
mutation is scoped to the guardian the alert targets; an alert owned by
someone else is reported as not found.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.logging_config import get_logger
from kidguard.models.parent_alert import (
    ParentAlert,
    ParentAlertSeverity,
    ParentAlertStatus,
    ParentAlertType,
)
from kidguard.models.threat_incident import ThreatIncident, ThreatSeverity

logger = get_logger(__name__)

# Incident severity -> alert severity
INCIDENT_ALERT_SEVERITY: dict[ThreatSeverity, ParentAlertSeverity] = {
    ThreatSeverity.CRITICAL: ParentAlertSeverity.CRITICAL,
    ThreatSeverity.HIGH: ParentAlertSeverity.WARNING,
    ThreatSeverity.MEDIUM: ParentAlertSeverity.INFO,
    ThreatSeverity.LOW: ParentAlertSeverity.INFO,
}


def alert_severity_for_incident(severity: ThreatSeverity) -> ParentAlertSeverity:
    """Map an incident severity to the alert severity shown to guardians."""
    return INCIDENT_ALERT_SEVERITY.get(severity, ParentAlertSeverity.INFO)


async def _save(db: AsyncSession, alert: ParentAlert) -> ParentAlert:
    # Alerts are written from best-effort steps; the owning service commits
    db.add(alert)
    await db.flush()
    await db.refresh(alert)

    logger.info(
        "Created parent alert",
        alert_id=str(alert.id),
        parent_id=str(alert.parent_id),
        child_id=str(alert.child_id),
        alert_type=alert.alert_type.value,
        severity=alert.severity.value,
    )

    return alert


async def create_threat_alert(
    db: AsyncSession,
    parent_id: uuid.UUID,
    child_id: uuid.UUID,
    incident: ThreatIncident,
) -> ParentAlert:
    """Create a threat_detected alert for a new incident."""
    severity_label = incident.severity.value
    alert = ParentAlert(
        id=uuid.uuid4(),
        parent_id=parent_id,
        child_id=child_id,
        alert_type=ParentAlertType.THREAT_DETECTED,
        severity=alert_severity_for_incident(incident.severity),
        status=ParentAlertStatus.UNREAD,
        title=f"{severity_label.upper()}: Potential Threat Detected",
        message=(
            f"A {severity_label} severity {incident.threat_type.replace('_', ' ')} "
            "was detected in your child's activity."
        ),
        alert_metadata={
            "threat_type": incident.threat_type,
            "confidence": incident.confidence,
        },
        related_incident_id=incident.id,
    )
    return await _save(db, alert)


async def create_time_limit_alert(
    db: AsyncSession,
    parent_id: uuid.UUID,
    child_id: uuid.UUID,
    minutes_used: int,
    limit: int,
) -> ParentAlert:
    """Create a time_limit_exceeded alert (always WARNING)."""
    alert = ParentAlert(
        id=uuid.uuid4(),
        parent_id=parent_id,
        child_id=child_id,
        alert_type=ParentAlertType.TIME_LIMIT_EXCEEDED,
        severity=ParentAlertSeverity.WARNING,
        status=ParentAlertStatus.UNREAD,
        title="Daily Time Limit Reached",
        message=(
            f"Your child has reached their daily time limit of {limit} minutes "
            f"({minutes_used} minutes used today)."
        ),
        alert_metadata={"minutes_used": minutes_used, "limit": limit},
    )
    return await _save(db, alert)


async def create_blocked_content_alert(
    db: AsyncSession,
    parent_id: uuid.UUID,
    child_id: uuid.UUID,
    content_type: str,
    reason: str,
) -> ParentAlert:
    """Create a blocked_content alert (always INFO)."""
    alert = ParentAlert(
        id=uuid.uuid4(),
        parent_id=parent_id,
        child_id=child_id,
        alert_type=ParentAlertType.BLOCKED_CONTENT,
        severity=ParentAlertSeverity.INFO,
        status=ParentAlertStatus.UNREAD,
        title="Content Blocked",
        message=f"Blocked {content_type}: {reason}",
        alert_metadata={"content_type": content_type, "reason": reason},
    )
    return await _save(db, alert)


async def list_alerts(
    db: AsyncSession,
    parent_id: uuid.UUID,
    status: ParentAlertStatus | None = None,
    limit: int = 50,
) -> list[ParentAlert]:
    """List a guardian's alerts, newest first."""
    conditions = [ParentAlert.parent_id == parent_id]
    if status is not None:
        conditions.append(ParentAlert.status == status)

    result = await db.execute(
        select(ParentAlert)
        .where(and_(*conditions))
        .order_by(ParentAlert.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_alerts_by_child(
    db: AsyncSession,
    parent_id: uuid.UUID,
    child_id: uuid.UUID,
    limit: int = 20,
) -> list[ParentAlert]:
    """List a guardian's alerts about one child, newest first."""
    result = await db.execute(
        select(ParentAlert)
        .where(
            and_(
                ParentAlert.parent_id == parent_id,
                ParentAlert.child_id == child_id,
            )
        )
        .order_by(ParentAlert.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_unread_count(db: AsyncSession, parent_id: uuid.UUID) -> int:
    """Count a guardian's unread alerts."""
    result = await db.execute(
        select(func.count())
        .select_from(ParentAlert)
        .where(
            and_(
                ParentAlert.parent_id == parent_id,
                ParentAlert.status == ParentAlertStatus.UNREAD,
            )
        )
    )
    return result.scalar_one()


async def has_alert_since(
    db: AsyncSession,
    parent_id: uuid.UUID,
    child_id: uuid.UUID,
    alert_type: ParentAlertType,
    since: datetime,
) -> bool:
    """Whether an alert of this type was already raised for the child."""
    result = await db.execute(
        select(func.count())
        .select_from(ParentAlert)
        .where(
            and_(
                ParentAlert.parent_id == parent_id,
                ParentAlert.child_id == child_id,
                ParentAlert.alert_type == alert_type,
                ParentAlert.created_at >= since,
            )
        )
    )
    return result.scalar_one() > 0


async def _get_owned_alert(
    db: AsyncSession,
    alert_id: uuid.UUID,
    parent_id: uuid.UUID,
) -> ParentAlert | None:
    result = await db.execute(
        select(ParentAlert).where(
            and_(ParentAlert.id == alert_id, ParentAlert.parent_id == parent_id)
        )
    )
    return result.scalar_one_or_none()


async def mark_alert_read(
    db: AsyncSession,
    alert_id: uuid.UUID,
    parent_id: uuid.UUID,
) -> ParentAlert | None:
    """Mark an unread alert as read.

    Read and dismissed alerts are returned unchanged.

    Returns:
        The alert, or None if not found / not owned.
    """
    alert = await _get_owned_alert(db, alert_id, parent_id)
    if alert is None:
        return None

    if alert.status == ParentAlertStatus.UNREAD:
        alert.status = ParentAlertStatus.READ
        alert.read_at = datetime.now(UTC)
        await db.commit()
        await db.refresh(alert)
        logger.info(
            "Parent alert read",
            alert_id=str(alert_id),
            parent_id=str(parent_id),
        )

    return alert


async def mark_all_read(db: AsyncSession, parent_id: uuid.UUID) -> int:
    """Mark every unread alert of a guardian as read.

    Returns:
        Number of alerts modified.
    """
    result = await db.execute(
        update(ParentAlert)
        .where(
            and_(
                ParentAlert.parent_id == parent_id,
                ParentAlert.status == ParentAlertStatus.UNREAD,
            )
        )
        .values(status=ParentAlertStatus.READ, read_at=datetime.now(UTC))
    )
    await db.commit()

    modified = result.rowcount or 0
    logger.info(
        "Marked all parent alerts read",
        parent_id=str(parent_id),
        modified=modified,
    )
    return modified


async def dismiss_alert(
    db: AsyncSession,
    alert_id: uuid.UUID,
    parent_id: uuid.UUID,
) -> ParentAlert | None:
    """Dismiss an alert from unread or read. Idempotent.

    Returns:
        The alert, or None if not found / not owned.
    """
    alert = await _get_owned_alert(db, alert_id, parent_id)
    if alert is None:
        return None

    if alert.status != ParentAlertStatus.DISMISSED:
        alert.status = ParentAlertStatus.DISMISSED
        alert.dismissed_at = datetime.now(UTC)
        await db.commit()
        await db.refresh(alert)
        logger.info(
            "Parent alert dismissed",
            alert_id=str(alert_id),
            parent_id=str(parent_id),
        )

    return alert
