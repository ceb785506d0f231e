"""Create users, child profiles, activity log, safety, incident, alert and chat tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None

ENUM_TYPES = {
    "userrole": ("guardian", "child", "teacher", "admin"),
    "threatseverity": ("low", "medium", "high", "critical"),
    "incidentstatus": ("open", "under_review", "resolved", "false_positive"),
    "parentalerttype": (
        "threat_detected",
        "time_limit_exceeded",
        "blocked_content",
        "consent_request",
    ),
    "parentalertseverity": ("info", "warning", "critical"),
    "parentalertstatus": ("unread", "read", "dismissed"),
}


def _uuid_pk() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True)


def _child_fk(name: str = "child_id") -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("child_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # Create enum types using raw SQL to avoid checkfirst issues with asyncpg
    for name, values in ENUM_TYPES.items():
        labels = ", ".join(f"'{value}'" for value in values)
        op.execute(sa.text(
            "DO $$ BEGIN "
            f"CREATE TYPE {name} AS ENUM ({labels}); "
            "EXCEPTION WHEN duplicate_object THEN NULL; "
            "END $$"
        ))

    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column(
            "role",
            postgresql.ENUM(name="userrole", create_type=False),
            nullable=False,
            server_default="guardian",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "child_profiles",
        _uuid_pk(),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        sa.Column(
            "guardian_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("age", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
    )
    op.create_index("ix_child_profiles_guardian_id", "child_profiles", ["guardian_id"])

    op.create_table(
        "activity_events",
        _uuid_pk(),
        _child_fk(),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column(
            "duration_seconds", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_activity_events_child_created",
        "activity_events",
        ["child_id", "created_at"],
    )

    op.create_table(
        "safety_rules",
        _uuid_pk(),
        _child_fk(),
        sa.Column(
            "guardian_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("time_restrictions", postgresql.JSONB(), nullable=False),
        sa.Column(
            "blocked_keywords", postgresql.JSONB(), nullable=False, server_default="[]"
        ),
        sa.Column(
            "blocked_urls", postgresql.JSONB(), nullable=False, server_default="[]"
        ),
        sa.Column("content_filters", postgresql.JSONB(), nullable=False),
        sa.Column("alert_settings", postgresql.JSONB(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        # One rule set per child
        sa.UniqueConstraint("child_id", name="uq_safety_rules_child_id"),
    )
    op.create_index("ix_safety_rules_guardian_id", "safety_rules", ["guardian_id"])

    op.create_table(
        "threat_incidents",
        _uuid_pk(),
        _child_fk(),
        sa.Column("threat_type", sa.String(50), nullable=False),
        sa.Column(
            "severity",
            postgresql.ENUM(name="threatseverity", create_type=False),
            nullable=False,
        ),
        sa.Column(
            "status",
            postgresql.ENUM(name="incidentstatus", create_type=False),
            nullable=False,
            server_default="open",
        ),
        sa.Column("confidence", sa.Integer(), nullable=False),
        sa.Column(
            "detected_keywords",
            postgresql.JSONB(),
            nullable=False,
            server_default="[]",
        ),
        sa.Column("context", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column(
            "parent_notified", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("parent_notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "resolved_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "confidence >= 0 AND confidence <= 100",
            name="ck_threat_incidents_confidence_range",
        ),
    )
    op.create_index("ix_threat_incidents_child_id", "threat_incidents", ["child_id"])
    op.create_index(
        "ix_threat_incidents_child_status",
        "threat_incidents",
        ["child_id", "status"],
    )
    op.create_index(
        "ix_threat_incidents_created_at", "threat_incidents", ["created_at"]
    )

    op.create_table(
        "parent_alerts",
        _uuid_pk(),
        sa.Column(
            "parent_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _child_fk(),
        sa.Column(
            "type",
            postgresql.ENUM(name="parentalerttype", create_type=False),
            nullable=False,
        ),
        sa.Column(
            "severity",
            postgresql.ENUM(name="parentalertseverity", create_type=False),
            nullable=False,
        ),
        sa.Column(
            "status",
            postgresql.ENUM(name="parentalertstatus", create_type=False),
            nullable=False,
            server_default="unread",
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column(
            "related_incident_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("threat_incidents.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dismissed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_parent_alerts_parent_id", "parent_alerts", ["parent_id"])
    op.create_index(
        "ix_parent_alerts_parent_status", "parent_alerts", ["parent_id", "status"]
    )
    op.create_index(
        "ix_parent_alerts_parent_child", "parent_alerts", ["parent_id", "child_id"]
    )

    op.create_table(
        "chat_messages",
        _uuid_pk(),
        _child_fk("sender_id"),
        _child_fk("receiver_id"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column(
            "is_moderated", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("is_flagged", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("flagged_reason", sa.String(500), nullable=True),
        _created_at(),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_chat_messages_pair_created",
        "chat_messages",
        ["sender_id", "receiver_id", "created_at"],
    )
    op.create_index(
        "ix_chat_messages_receiver_read", "chat_messages", ["receiver_id", "is_read"]
    )

    op.create_table(
        "group_chat_messages",
        _uuid_pk(),
        _child_fk("sender_id"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "is_moderated", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("is_flagged", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("flagged_reason", sa.String(500), nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_group_chat_messages_created_at", "group_chat_messages", ["created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_group_chat_messages_created_at")
    op.drop_table("group_chat_messages")

    op.drop_index("ix_chat_messages_receiver_read")
    op.drop_index("ix_chat_messages_pair_created")
    op.drop_table("chat_messages")

    op.drop_index("ix_parent_alerts_parent_child")
    op.drop_index("ix_parent_alerts_parent_status")
    op.drop_index("ix_parent_alerts_parent_id")
    op.drop_table("parent_alerts")

    op.drop_index("ix_threat_incidents_created_at")
    op.drop_index("ix_threat_incidents_child_status")
    op.drop_index("ix_threat_incidents_child_id")
    op.drop_table("threat_incidents")

    op.drop_index("ix_safety_rules_guardian_id")
    op.drop_table("safety_rules")

    op.drop_index("ix_activity_events_child_created")
    op.drop_table("activity_events")

    op.drop_index("ix_child_profiles_guardian_id")
    op.drop_table("child_profiles")

    op.drop_index("ix_users_email")
    op.drop_table("users")

    for name in reversed(list(ENUM_TYPES)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
