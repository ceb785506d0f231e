"""Admin review router: incidents and stored safety rules."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.core.auth import AdminUser
from kidguard.database import get_db
from kidguard.models.threat_incident import IncidentStatus, ThreatSeverity
from kidguard.schemas.safety_rule import SafetyRuleResponse
from kidguard.schemas.threat import (
    IncidentResolveRequest,
    IncidentStatsResponse,
    ThreatIncidentResponse,
    ThreatOverviewResponse,
)
from kidguard.services import incidents, safety_rules
from kidguard.services.incidents import IncidentTransitionError

router = APIRouter(prefix="/api/protection/admin", tags=["admin"])


@router.get("/threats", response_model=list[ThreatIncidentResponse])
async def list_threats(
    _admin: AdminUser,
    incident_status: IncidentStatus | None = Query(default=None, alias="status"),
    severity: ThreatSeverity | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> list[ThreatIncidentResponse]:
    """All incidents, newest first, optionally filtered."""
    found = await incidents.list_incidents(db, incident_status, severity, limit)
    return [ThreatIncidentResponse.model_validate(i) for i in found]


@router.patch("/threats/{incident_id}/resolve", response_model=ThreatIncidentResponse)
async def resolve_threat(
    incident_id: uuid.UUID,
    payload: IncidentResolveRequest,
    admin: AdminUser,
    db: AsyncSession = Depends(get_db),
) -> ThreatIncidentResponse:
    """Close an open or under-review incident.

    Returns 409 if the incident was already resolved or marked a false
    positive.
    """
    try:
        incident = await incidents.resolve_incident(
            db,
            incident_id,
            resolved_by=admin.id,
            resolution=payload.resolution,
            notes=payload.notes,
        )
    except IncidentTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    if incident is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Incident not found",
        )

    return ThreatIncidentResponse.model_validate(incident)


@router.get("/threat-stats", response_model=IncidentStatsResponse)
async def threat_stats(
    _admin: AdminUser,
    db: AsyncSession = Depends(get_db),
) -> IncidentStatsResponse:
    """Incident totals and per-type counts."""
    return IncidentStatsResponse(**await incidents.get_incident_stats(db))


@router.get("/threat-overview", response_model=ThreatOverviewResponse)
async def threat_overview(
    _admin: AdminUser,
    db: AsyncSession = Depends(get_db),
) -> ThreatOverviewResponse:
    """Dashboard overview: status counts, per-type breakdown, recent incidents."""
    overview = await incidents.get_threat_overview(db)
    return ThreatOverviewResponse(
        open=overview["open"],
        resolved=overview["resolved"],
        critical=overview["critical"],
        by_type=overview["by_type"],
        recent=[ThreatIncidentResponse.model_validate(i) for i in overview["recent"]],
    )


@router.get("/safety-rules", response_model=list[SafetyRuleResponse])
async def list_safety_rules(
    _admin: AdminUser,
    db: AsyncSession = Depends(get_db),
) -> list[SafetyRuleResponse]:
    """Every stored rule set, oldest first."""
    rules = await safety_rules.list_all_rules(db)
    return [SafetyRuleResponse.from_rule(r) for r in rules]
