"""Child protection router.

Safety rules, access-window and screen-time monitoring, content checks
and per-child threat history. Guardian access is limited to their own
children; a child that isn't theirs is reported as not found.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.core.auth import (
    CurrentChild,
    CurrentUser,
    GuardianUser,
    authorize_child_access,
    require_guardian_or_admin,
    require_roles,
    require_supervisor,
)
from kidguard.database import get_db
from kidguard.models.threat_incident import IncidentStatus
from kidguard.models.user import UserRole
from kidguard.schemas.monitoring import (
    ContentCheckRequest,
    ContentCheckResponse,
    DailyUsageResponse,
    TimeLimitStatusResponse,
    UsageSummaryResponse,
)
from kidguard.schemas.safety_rule import (
    SafetyRuleResponse,
    SafetyRuleUpsert,
    TimeRestrictionResponse,
)
from kidguard.schemas.threat import ThreatIncidentResponse
from kidguard.services import incidents, monitoring, safety_rules
from kidguard.services.content_moderation import screen_child_content
from kidguard.services.directory import verify_child_ownership

router = APIRouter(prefix="/api/protection", tags=["protection"])

require_any_viewer = require_roles(
    UserRole.GUARDIAN, UserRole.TEACHER, UserRole.ADMIN, UserRole.CHILD
)


def _default_rules_response(child_id: uuid.UUID) -> SafetyRuleResponse:
    policy = safety_rules.DEFAULT_POLICY
    return SafetyRuleResponse(
        child_id=child_id,
        guardian_id=None,
        time_restrictions=policy.time_restrictions,
        blocked_keywords=list(policy.blocked_keywords),
        blocked_urls=list(policy.blocked_urls),
        content_filters=policy.content_filters,
        alert_settings=policy.alert_settings,
        is_default=True,
    )


# ============================================================================
# Safety rules
# ============================================================================


@router.put("/safety-rules", response_model=SafetyRuleResponse)
async def upsert_safety_rules(
    payload: SafetyRuleUpsert,
    user: GuardianUser,
    db: AsyncSession = Depends(get_db),
) -> SafetyRuleResponse:
    """Create or update one of the guardian's children's safety rules.

    Only the sections included in the request are replaced.
    """
    if await verify_child_ownership(db, user.id, payload.child_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Child not found",
        )

    rule = await safety_rules.upsert_rules(db, user.id, payload)
    return SafetyRuleResponse.from_rule(rule)


@router.get(
    "/safety-rules/{child_id}",
    response_model=SafetyRuleResponse,
    dependencies=[Depends(require_guardian_or_admin)],
)
async def get_safety_rules(
    child_id: uuid.UUID,
    user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> SafetyRuleResponse:
    """Get a child's stored rules, or the unrestricted default if none."""
    await authorize_child_access(db, user, child_id)

    rule = await safety_rules.get_rules(db, child_id)
    if rule is None:
        return _default_rules_response(child_id)
    return SafetyRuleResponse.from_rule(rule)


@router.delete(
    "/safety-rules/{child_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_guardian_or_admin)],
)
async def delete_safety_rules(
    child_id: uuid.UUID,
    user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Remove a child's rules; the child falls back to the default policy."""
    await authorize_child_access(db, user, child_id)
    await safety_rules.delete_rules(db, child_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Monitoring
# ============================================================================


@router.get(
    "/time-restriction/{child_id}",
    response_model=TimeRestrictionResponse,
    dependencies=[Depends(require_any_viewer)],
)
async def get_time_restriction(
    child_id: uuid.UUID,
    user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> TimeRestrictionResponse:
    """Whether the child may use the product right now."""
    await authorize_child_access(db, user, child_id)
    result = await safety_rules.check_time_restriction(db, child_id)
    return TimeRestrictionResponse(allowed=result.allowed, reason=result.reason)


@router.post("/content-check", response_model=ContentCheckResponse)
async def check_content(
    payload: ContentCheckRequest,
    child: CurrentChild,
    db: AsyncSession = Depends(get_db),
) -> ContentCheckResponse:
    """Screen content for the calling child against their rules.

    Blocked content is reported to the guardian when they opted in.
    """
    result = await screen_child_content(
        db,
        child.id,
        payload.content,
        url=payload.url,
        content_type=payload.content_type,
    )
    return ContentCheckResponse(blocked=result.blocked, reason=result.reason)


@router.get(
    "/screen-time-status/{child_id}",
    response_model=TimeLimitStatusResponse,
    dependencies=[Depends(require_supervisor)],
)
async def get_screen_time_status(
    child_id: uuid.UUID,
    user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> TimeLimitStatusResponse:
    """Today's screen time against the child's daily limit."""
    await authorize_child_access(db, user, child_id)

    time_status = await monitoring.check_time_limit(db, child_id)
    if time_status.is_exceeded:
        await monitoring.notify_time_limit_exceeded(db, child_id, time_status)

    return TimeLimitStatusResponse.model_validate(time_status)


@router.get(
    "/usage-summary/{child_id}",
    response_model=UsageSummaryResponse,
    dependencies=[Depends(require_guardian_or_admin)],
)
async def get_usage_summary(
    child_id: uuid.UUID,
    user: CurrentUser,
    days: int = Query(default=7, ge=1, le=90),
    db: AsyncSession = Depends(get_db),
) -> UsageSummaryResponse:
    """Per-day usage over the last `days` days, most recent first."""
    await authorize_child_access(db, user, child_id)

    usage = await monitoring.usage_summary(db, child_id, days)
    return UsageSummaryResponse(
        child_id=child_id,
        days=days,
        usage=[DailyUsageResponse.model_validate(day) for day in usage],
    )


# ============================================================================
# Threat history
# ============================================================================


@router.get(
    "/threats/child/{child_id}",
    response_model=list[ThreatIncidentResponse],
    dependencies=[Depends(require_guardian_or_admin)],
)
async def get_child_threats(
    child_id: uuid.UUID,
    user: CurrentUser,
    incident_status: IncidentStatus | None = Query(default=None, alias="status"),
    db: AsyncSession = Depends(get_db),
) -> list[ThreatIncidentResponse]:
    """A child's threat incidents, newest first."""
    await authorize_child_access(db, user, child_id)

    child_incidents = await incidents.list_child_incidents(
        db, child_id, incident_status
    )
    return [ThreatIncidentResponse.model_validate(i) for i in child_incidents]
