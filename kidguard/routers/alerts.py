"""Guardian alert feed router.

Every endpoint is scoped to the calling guardian; alerts that belong to
someone else are reported as not found.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.core.auth import GuardianUser, authorize_child_access
from kidguard.database import get_db
from kidguard.models.parent_alert import ParentAlertStatus
from kidguard.schemas.parent_alert import (
    MarkAllReadResponse,
    ParentAlertListResponse,
    ParentAlertResponse,
    UnreadCountResponse,
)
from kidguard.services import parent_alerts

router = APIRouter(prefix="/api/protection/alerts", tags=["alerts"])

ALERT_NOT_FOUND = "Alert not found"


def _to_list_response(alerts) -> ParentAlertListResponse:
    return ParentAlertListResponse(
        alerts=[ParentAlertResponse.model_validate(alert) for alert in alerts],
        count=len(alerts),
    )


@router.get("", response_model=ParentAlertListResponse)
async def list_alerts(
    user: GuardianUser,
    alert_status: ParentAlertStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> ParentAlertListResponse:
    """List the guardian's alerts, newest first."""
    alerts = await parent_alerts.list_alerts(db, user.id, alert_status, limit)
    return _to_list_response(alerts)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user: GuardianUser,
    db: AsyncSession = Depends(get_db),
) -> UnreadCountResponse:
    """Number of unread alerts."""
    return UnreadCountResponse(count=await parent_alerts.get_unread_count(db, user.id))


@router.get("/child/{child_id}", response_model=ParentAlertListResponse)
async def list_child_alerts(
    child_id: uuid.UUID,
    user: GuardianUser,
    limit: int = Query(default=20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> ParentAlertListResponse:
    """List the guardian's alerts about one of their children."""
    await authorize_child_access(db, user, child_id)
    alerts = await parent_alerts.list_alerts_by_child(db, user.id, child_id, limit)
    return _to_list_response(alerts)


@router.patch("/mark-all-read", response_model=MarkAllReadResponse)
async def mark_all_read(
    user: GuardianUser,
    db: AsyncSession = Depends(get_db),
) -> MarkAllReadResponse:
    """Mark every unread alert as read."""
    modified = await parent_alerts.mark_all_read(db, user.id)
    return MarkAllReadResponse(modified=modified)


@router.patch("/{alert_id}/read", response_model=ParentAlertResponse)
async def mark_read(
    alert_id: uuid.UUID,
    user: GuardianUser,
    db: AsyncSession = Depends(get_db),
) -> ParentAlertResponse:
    """Mark an alert as read. Dismissed alerts stay dismissed."""
    alert = await parent_alerts.mark_alert_read(db, alert_id, user.id)
    if alert is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=ALERT_NOT_FOUND,
        )
    return ParentAlertResponse.model_validate(alert)


@router.patch("/{alert_id}/dismiss", response_model=ParentAlertResponse)
async def dismiss(
    alert_id: uuid.UUID,
    user: GuardianUser,
    db: AsyncSession = Depends(get_db),
) -> ParentAlertResponse:
    """Dismiss an alert. Repeated calls are no-ops."""
    alert = await parent_alerts.dismiss_alert(db, alert_id, user.id)
    if alert is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=ALERT_NOT_FOUND,
        )
    return ParentAlertResponse.model_validate(alert)
