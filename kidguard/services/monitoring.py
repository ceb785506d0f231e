"""Usage monitor.

Derives screen time from the append-only activity log. Nothing is
cached: every call re-sums the events, so a check always reflects the
events present at query time.
"""

import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.config import settings
from kidguard.logging_config import get_logger
from kidguard.models.activity_event import ActivityEvent
from kidguard.models.parent_alert import ParentAlertType
from kidguard.services import parent_alerts
from kidguard.services.directory import GuardianDirectory, ProfileGuardianDirectory
from kidguard.services.safety_rules import get_policy, local_now
from kidguard.services.side_effects import run_best_effort

logger = get_logger(__name__)


@dataclass
class TimeLimitStatus:
    """Screen-time position against the daily limit."""

    is_exceeded: bool
    current_minutes: int
    limit_minutes: int
    remaining_minutes: int
    should_warn: bool


@dataclass
class DailyUsage:
    """Usage totals for one calendar day."""

    date: date
    total_minutes: int
    sessions: int


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Inclusive start/end instants of a calendar day in the safety timezone."""
    tz = ZoneInfo(settings.safety_timezone)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, time.max, tzinfo=tz)
    return start, end


async def daily_minutes(
    db: AsyncSession,
    child_id: uuid.UUID,
    day: date | None = None,
) -> int:
    """Whole minutes of use recorded for a child on one day."""
    start, end = day_bounds(day or local_now().date())
    result = await db.execute(
        select(func.coalesce(func.sum(ActivityEvent.duration_seconds), 0)).where(
            and_(
                ActivityEvent.child_id == child_id,
                ActivityEvent.created_at >= start,
                ActivityEvent.created_at <= end,
            )
        )
    )
    total_seconds = result.scalar_one() or 0
    return int(total_seconds) // 60


def evaluate_time_limit(current_minutes: int, limit_minutes: int) -> TimeLimitStatus:
    """Compare minutes used against a limit.

    Exceeded once usage reaches the limit; a warning is raised while not
    exceeded and no more than the warning threshold remains.
    """
    remaining = max(0, limit_minutes - current_minutes)
    is_exceeded = current_minutes >= limit_minutes
    return TimeLimitStatus(
        is_exceeded=is_exceeded,
        current_minutes=current_minutes,
        limit_minutes=limit_minutes,
        remaining_minutes=remaining,
        should_warn=(
            not is_exceeded and remaining <= settings.time_limit_warning_minutes
        ),
    )


async def check_time_limit(db: AsyncSession, child_id: uuid.UUID) -> TimeLimitStatus:
    """Today's screen-time status for a child."""
    current = await daily_minutes(db, child_id)
    policy = await get_policy(db, child_id)
    status = evaluate_time_limit(current, policy.daily_limit_minutes)
    if status.is_exceeded:
        logger.info(
            "Daily time limit reached",
            child_id=str(child_id),
            current_minutes=status.current_minutes,
            limit_minutes=status.limit_minutes,
        )
    return status


async def usage_summary(
    db: AsyncSession,
    child_id: uuid.UUID,
    days: int = 7,
) -> list[DailyUsage]:
    """Per-day usage over the trailing window, most recent day first.

    Days without any activity are omitted.

    Raises:
        ValueError: If days is not positive.
    """
    if days < 1:
        raise ValueError("days must be at least 1")

    since = local_now() - timedelta(days=days)
    result = await db.execute(
        select(ActivityEvent.created_at, ActivityEvent.duration_seconds).where(
            and_(
                ActivityEvent.child_id == child_id,
                ActivityEvent.created_at >= since,
            )
        )
    )

    tz = ZoneInfo(settings.safety_timezone)
    seconds: dict[date, int] = defaultdict(int)
    sessions: dict[date, int] = defaultdict(int)
    for created_at, duration in result.all():
        day = created_at.astimezone(tz).date()
        seconds[day] += duration or 0
        sessions[day] += 1

    return [
        DailyUsage(date=day, total_minutes=seconds[day] // 60, sessions=sessions[day])
        for day in sorted(seconds, reverse=True)
    ]


async def notify_time_limit_exceeded(
    db: AsyncSession,
    child_id: uuid.UUID,
    status: TimeLimitStatus,
    directory: GuardianDirectory | None = None,
) -> uuid.UUID | None:
    """Raise a time-limit alert for the child's guardian, once per day.

    Best-effort: failures are logged and swallowed.

    Returns:
        The new alert ID, or None when nothing was sent.
    """
    if not status.is_exceeded:
        return None

    policy = await get_policy(db, child_id)
    if not policy.alert_settings.notify_on_time_limit:
        return None

    directory = directory or ProfileGuardianDirectory()

    async def _send() -> uuid.UUID | None:
        guardian_id = await directory.get_guardian_id(db, child_id)
        if guardian_id is None:
            return None

        since, _ = day_bounds(local_now().date())
        if await parent_alerts.has_alert_since(
            db, guardian_id, child_id, ParentAlertType.TIME_LIMIT_EXCEEDED, since
        ):
            return None

        alert = await parent_alerts.create_time_limit_alert(
            db,
            guardian_id,
            child_id,
            minutes_used=status.current_minutes,
            limit=status.limit_minutes,
        )
        return alert.id

    alert_id = await run_best_effort(
        db,
        "time_limit_alert",
        _send,
        child_id=str(child_id),
    )
    await db.commit()
    return alert_id
