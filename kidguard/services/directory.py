"""Child/guardian directory and ownership checks.

Thin read-only access to child profiles. Ownership mismatches look
exactly like missing children so callers cannot fish for other
families' child IDs.
"""

import uuid
from typing import Protocol

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.config import settings
from kidguard.models.child_profile import ChildProfile


class GuardianDirectory(Protocol):
    """Resolves which guardian a child belongs to."""

    async def get_guardian_id(
        self, db: AsyncSession, child_id: uuid.UUID
    ) -> uuid.UUID | None: ...


class ProfileGuardianDirectory:
    """GuardianDirectory backed by the child_profiles table."""

    async def get_guardian_id(
        self, db: AsyncSession, child_id: uuid.UUID
    ) -> uuid.UUID | None:
        result = await db.execute(
            select(ChildProfile.guardian_id).where(ChildProfile.id == child_id)
        )
        return result.scalar_one_or_none()


async def get_child_profile(
    db: AsyncSession, child_id: uuid.UUID
) -> ChildProfile | None:
    """Get an active child profile by ID."""
    result = await db.execute(
        select(ChildProfile).where(
            and_(ChildProfile.id == child_id, ChildProfile.is_active.is_(True))
        )
    )
    return result.scalar_one_or_none()


async def get_child_for_user(
    db: AsyncSession, user_id: uuid.UUID
) -> ChildProfile | None:
    """Get the active child profile a login account belongs to."""
    result = await db.execute(
        select(ChildProfile).where(
            and_(ChildProfile.user_id == user_id, ChildProfile.is_active.is_(True))
        )
    )
    return result.scalar_one_or_none()


async def verify_child_ownership(
    db: AsyncSession,
    guardian_id: uuid.UUID,
    child_id: uuid.UUID,
) -> ChildProfile | None:
    """Return the child if it belongs to the guardian, else None."""
    result = await db.execute(
        select(ChildProfile).where(
            and_(
                ChildProfile.id == child_id,
                ChildProfile.guardian_id == guardian_id,
            )
        )
    )
    return result.scalar_one_or_none()


def is_age_supported(age: int) -> bool:
    """Whether a child's age is inside the range the product serves."""
    return settings.min_child_age <= age <= settings.max_child_age
