"""Threat incident model.

One row per child per detected policy violation. A flagged chat exchange
produces one incident for each participant.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from kidguard.models.base import Base, TimestampMixin


class ThreatSeverity(str, enum.Enum):
    """Severity assigned by the threat detector."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IncidentStatus(str, enum.Enum):
    """Incident resolution lifecycle.

    UNDER_REVIEW is set by an external triage step; nothing in this
    service moves an incident into it.
    """

    OPEN = "open"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"


# Statuses an incident can still be resolved from
RESOLVABLE_STATUSES = frozenset({IncidentStatus.OPEN, IncidentStatus.UNDER_REVIEW})


class ThreatIncident(Base, TimestampMixin):
    """A detected policy violation tied to one child."""

    __tablename__ = "threat_incidents"
    __table_args__ = (
        Index("ix_threat_incidents_child_status", "child_id", "status"),
        Index("ix_threat_incidents_created_at", "created_at"),
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
        index=True,
    )

    # Lexicon category tag, e.g. "violence" or "custom_blocked_content"
    threat_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    severity: Mapped[ThreatSeverity] = mapped_column(
        Enum(
            ThreatSeverity,
            name="threatseverity",
            create_type=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )

    status: Mapped[IncidentStatus] = mapped_column(
        Enum(
            IncidentStatus,
            name="incidentstatus",
            create_type=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
        default=IncidentStatus.OPEN,
    )

    # 0-100
    confidence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    detected_keywords: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
    )

    context: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
    )

    parent_notified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    parent_notified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    resolved_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    resolution_notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<ThreatIncident(child={self.child_id}, type={self.threat_type}, "
            f"severity={self.severity.value}, status={self.status.value})>"
        )
