"""Activity log event model.

Append-only usage events written by the game and learning surfaces. The
usage monitor only reads this table.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from kidguard.models.base import Base


class ActivityEvent(Base):
    """A single usage event ('game_start', 'game_complete', 'login', ...)."""

    __tablename__ = "activity_events"
    __table_args__ = (
        Index("ix_activity_events_child_created", "child_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    child_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("child_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )

    event_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Seconds of use attributed to this event
    duration_seconds: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    event_metadata: Mapped[dict | None] = mapped_column(
        "metadata",
        JSONB,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<ActivityEvent(child={self.child_id}, type={self.event_type}, "
            f"duration={self.duration_seconds}s)>"
        )
