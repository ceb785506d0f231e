"""Per-child safety rule model.

One row per child, owned by the child's guardian. Option bundles are
stored as JSONB so new flags can be added without a migration.
"""

import uuid

from sqlalchemy import ForeignKey
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from kidguard.models.base import Base, TimestampMixin


class SafetyRule(Base, TimestampMixin):
    """A child's time windows, blocklists, content filters and alert settings.

    time_restrictions keys: enabled, weekday_start, weekday_end,
    weekend_start, weekend_end, max_daily_minutes ("HH:MM" strings).
    content_filters keys: block_violence, block_inappropriate, safe_search_only.
    alert_settings keys: notify_on_threat, notify_on_blocked_content,
    notify_on_time_limit, email_alerts.
    """

    __tablename__ = "safety_rules"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    child_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("child_profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    guardian_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    time_restrictions: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
    )

    blocked_keywords: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
    )

    blocked_urls: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
    )

    content_filters: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
    )

    alert_settings: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
    )

    is_active: Mapped[bool] = mapped_column(default=True)

    def __repr__(self) -> str:
        return (
            f"<SafetyRule(child={self.child_id}, "
            f"keywords={len(self.blocked_keywords or [])}, "
            f"urls={len(self.blocked_urls or [])})>"
        )
