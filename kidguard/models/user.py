"""User account model.

Accounts are registered by the identity service; this API only reads them
to authenticate requests and resolve roles.
"""

import enum
import uuid

from sqlalchemy import Enum, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from kidguard.models.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    """User roles for role-based access control.

    - GUARDIAN: Owns child profiles, configures safety rules, receives alerts
    - CHILD: Supervised profile that chats and plays
    - TEACHER: Can view screen-time status for any child
    - ADMIN: Reviews and resolves threat incidents
    """

    GUARDIAN = "guardian"
    CHILD = "child"
    TEACHER = "teacher"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    role: Mapped[UserRole] = mapped_column(
        Enum(
            UserRole,
            name="userrole",
            create_type=False,  # Already created in migration
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
        default=UserRole.GUARDIAN,
    )
    is_active: Mapped[bool] = mapped_column(
        default=True,
    )

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role.value})>"
