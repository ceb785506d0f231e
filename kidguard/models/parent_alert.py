"""Guardian-facing alert model.

Alerts are derived from threat incidents, time-limit breaches and blocked
content. Rows are never deleted; dismissal is a terminal status.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from kidguard.models.base import Base


class ParentAlertType(str, enum.Enum):
    """What triggered the alert."""

    THREAT_DETECTED = "threat_detected"
    TIME_LIMIT_EXCEEDED = "time_limit_exceeded"
    BLOCKED_CONTENT = "blocked_content"
    CONSENT_REQUEST = "consent_request"


class ParentAlertSeverity(str, enum.Enum):
    """Alert severity shown to the guardian."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ParentAlertStatus(str, enum.Enum):
    """Alert read lifecycle: unread -> read -> dismissed."""

    UNREAD = "unread"
    READ = "read"
    DISMISSED = "dismissed"


class ParentAlert(Base):
    """A notification in a guardian's alert feed."""

    __tablename__ = "parent_alerts"
    __table_args__ = (
        Index("ix_parent_alerts_parent_status", "parent_id", "status"),
        Index("ix_parent_alerts_parent_child", "parent_id", "child_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    parent_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    child_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("child_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )

    alert_type: Mapped[ParentAlertType] = mapped_column(
        "type",
        Enum(
            ParentAlertType,
            name="parentalerttype",
            create_type=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )

    severity: Mapped[ParentAlertSeverity] = mapped_column(
        Enum(
            ParentAlertSeverity,
            name="parentalertseverity",
            create_type=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )

    status: Mapped[ParentAlertStatus] = mapped_column(
        Enum(
            ParentAlertStatus,
            name="parentalertstatus",
            create_type=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
        default=ParentAlertStatus.UNREAD,
    )

    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    message: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    alert_metadata: Mapped[dict] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
    )

    related_incident_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("threat_incidents.id", ondelete="SET NULL"),
        nullable=True,
    )

    read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    dismissed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<ParentAlert(type={self.alert_type.value}, "
            f"severity={self.severity.value}, status={self.status.value})>"
        )
