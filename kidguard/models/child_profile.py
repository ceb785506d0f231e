"""Child profile model.

A child belongs to at most one guardian. The guardian link is what the
threat detector follows to decide whose alert feed a new incident lands in.
"""

import uuid

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kidguard.models.base import Base, TimestampMixin


class ChildProfile(Base, TimestampMixin):
    """Supervised child profile."""

    __tablename__ = "child_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Login account for the child, when they have one
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )

    guardian_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    full_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    age: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(default=True)

    guardian = relationship("User", foreign_keys=[guardian_id])

    def __repr__(self) -> str:
        return f"<ChildProfile(id={self.id}, guardian={self.guardian_id})>"
