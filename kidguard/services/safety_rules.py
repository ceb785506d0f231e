"""Safety rule store and time-window evaluation.

Holds each child's SafetyRule and turns it into an immutable
PolicySnapshot for the evaluators. A child without stored (or active)
rules gets DEFAULT_POLICY, which restricts nothing.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.config import settings
from kidguard.logging_config import get_logger
from kidguard.models.safety_rule import SafetyRule
from kidguard.schemas.safety_rule import (
    AlertSettings,
    ContentFilters,
    SafetyRuleUpsert,
    TimeRestrictions,
)

logger = get_logger(__name__)

# Saturday and Sunday in datetime.weekday() numbering
WEEKEND_DAYS = frozenset({5, 6})


@dataclass(frozen=True)
class PolicySnapshot:
    """Read-only view of the policy that applies to one child."""

    child_id: uuid.UUID | None = None
    guardian_id: uuid.UUID | None = None
    time_restrictions: TimeRestrictions = field(default_factory=TimeRestrictions)
    blocked_keywords: tuple[str, ...] = ()
    blocked_urls: tuple[str, ...] = ()
    content_filters: ContentFilters = field(default_factory=ContentFilters)
    alert_settings: AlertSettings = field(default_factory=AlertSettings)
    is_default: bool = False

    @classmethod
    def from_rule(cls, rule: SafetyRule) -> "PolicySnapshot":
        return cls(
            child_id=rule.child_id,
            guardian_id=rule.guardian_id,
            time_restrictions=TimeRestrictions(**(rule.time_restrictions or {})),
            blocked_keywords=tuple(rule.blocked_keywords or ()),
            blocked_urls=tuple(rule.blocked_urls or ()),
            content_filters=ContentFilters(**(rule.content_filters or {})),
            alert_settings=AlertSettings(**(rule.alert_settings or {})),
        )

    @property
    def daily_limit_minutes(self) -> int:
        return (
            self.time_restrictions.max_daily_minutes
            or settings.default_daily_limit_minutes
        )


DEFAULT_POLICY = PolicySnapshot(is_default=True)


@dataclass
class TimeRestrictionResult:
    """Outcome of a time-of-day access check."""

    allowed: bool
    reason: str | None = None


def local_now() -> datetime:
    """Current time in the zone safety windows are defined in."""
    return datetime.now(ZoneInfo(settings.safety_timezone))


async def get_rules(db: AsyncSession, child_id: uuid.UUID) -> SafetyRule | None:
    """Get the stored safety rules for a child, if any."""
    result = await db.execute(select(SafetyRule).where(SafetyRule.child_id == child_id))
    return result.scalar_one_or_none()


async def get_policy(db: AsyncSession, child_id: uuid.UUID) -> PolicySnapshot:
    """Get the policy that applies to a child.

    Returns DEFAULT_POLICY when the child has no rules or the rules
    are inactive.
    """
    rule = await get_rules(db, child_id)
    if rule is None or not rule.is_active:
        return DEFAULT_POLICY
    return PolicySnapshot.from_rule(rule)


async def list_all_rules(db: AsyncSession) -> list[SafetyRule]:
    """List every stored rule set."""
    result = await db.execute(select(SafetyRule).order_by(SafetyRule.created_at))
    return list(result.scalars().all())


def _apply_updates(rule: SafetyRule, payload: SafetyRuleUpsert) -> list[str]:
    """Replace the sections present in the payload. Returns changed fields."""
    changed = []
    for section in ("time_restrictions", "content_filters", "alert_settings"):
        value = getattr(payload, section)
        if value is not None:
            setattr(rule, section, value.model_dump())
            changed.append(section)
    for listing in ("blocked_keywords", "blocked_urls"):
        value = getattr(payload, listing)
        if value is not None:
            setattr(rule, listing, list(value))
            changed.append(listing)
    if payload.is_active is not None:
        rule.is_active = payload.is_active
        changed.append("is_active")
    return changed


async def upsert_rules(
    db: AsyncSession,
    guardian_id: uuid.UUID,
    payload: SafetyRuleUpsert,
) -> SafetyRule:
    """Create a child's rules if absent, otherwise merge the given sections.

    No optimistic concurrency: concurrent edits are last-write-wins.

    Args:
        db: Database session.
        guardian_id: The guardian who owns the child (already verified).
        payload: Sections to store.

    Returns:
        The stored SafetyRule.
    """
    rule = await get_rules(db, payload.child_id)

    if rule is None:
        rule = SafetyRule(
            child_id=payload.child_id,
            guardian_id=guardian_id,
            time_restrictions=TimeRestrictions().model_dump(),
            blocked_keywords=[],
            blocked_urls=[],
            content_filters=ContentFilters().model_dump(),
            alert_settings=AlertSettings().model_dump(),
            is_active=True,
        )
        changed = _apply_updates(rule, payload)
        db.add(rule)
        try:
            await db.commit()
        except IntegrityError:
            # Concurrent request already created the row; merge into it
            await db.rollback()
            rule = await get_rules(db, payload.child_id)
            if rule is None:
                raise
            changed = _apply_updates(rule, payload)
            await db.commit()
        else:
            logger.info(
                "Created safety rules",
                child_id=str(payload.child_id),
                guardian_id=str(guardian_id),
            )
    else:
        changed = _apply_updates(rule, payload)
        await db.commit()

    await db.refresh(rule)

    logger.info(
        "Stored safety rules",
        child_id=str(payload.child_id),
        fields=changed,
    )

    return rule


async def delete_rules(db: AsyncSession, child_id: uuid.UUID) -> None:
    """Delete a child's rules (used when the child is removed)."""
    await db.execute(delete(SafetyRule).where(SafetyRule.child_id == child_id))
    await db.commit()
    logger.info("Deleted safety rules", child_id=str(child_id))


def evaluate_time_window(
    policy: PolicySnapshot,
    now: datetime,
) -> TimeRestrictionResult:
    """Check whether `now` falls inside the policy's access window.

    Times are compared as "HH:MM" strings, which orders correctly because
    they are zero-padded 24-hour values. Both bounds are inclusive. A day
    type with a missing bound is not restricted. Daily minute limits are
    the usage monitor's job.
    """
    restrictions = policy.time_restrictions
    if not restrictions.enabled:
        return TimeRestrictionResult(allowed=True)

    if now.weekday() in WEEKEND_DAYS:
        start, end = restrictions.weekend_start, restrictions.weekend_end
    else:
        start, end = restrictions.weekday_start, restrictions.weekday_end

    if start and end:
        current = now.strftime("%H:%M")
        if current < start or current > end:
            return TimeRestrictionResult(
                allowed=False,
                reason=f"Access allowed only between {start} and {end}",
            )

    return TimeRestrictionResult(allowed=True)


async def check_time_restriction(
    db: AsyncSession,
    child_id: uuid.UUID,
    now: datetime | None = None,
) -> TimeRestrictionResult:
    """Check whether a child may use the product right now."""
    policy = await get_policy(db, child_id)
    result = evaluate_time_window(policy, now or local_now())
    if not result.allowed:
        logger.info(
            "Access outside allowed window",
            child_id=str(child_id),
            reason=result.reason,
        )
    return result
