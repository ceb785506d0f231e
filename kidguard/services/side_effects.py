"""Best-effort secondary effects.

Guardian notifications and threat analysis run after the primary record
(a chat message) is stored. Each secondary step runs inside a SAVEPOINT:
a failure rolls back only that step's writes, is logged, and never
reaches the caller. Objects the step did not touch stay loaded, so the
primary record can still be serialized afterwards.

Steps flush but never commit; the service that owns the request commits
once the secondary steps are done.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def run_best_effort(
    db: AsyncSession,
    operation: str,
    action: Callable[[], Awaitable[T]],
    **log_fields: Any,
) -> T | None:
    """Run `action` in a savepoint, suppressing and logging any failure.

    Args:
        db: Session the action writes through.
        operation: Short name for logs, e.g. "threat_alert".
        action: Zero-argument coroutine factory performing the effect.
            It must flush, not commit.
        **log_fields: Extra structured fields for the failure log.

    Returns:
        The action's result, or None if it failed.
    """
    try:
        async with db.begin_nested():
            return await action()
    except Exception as e:
        logger.error(
            "Best-effort step failed",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
            **log_fields,
        )
        return None
