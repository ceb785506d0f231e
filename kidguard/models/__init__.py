# Database Models
from kidguard.models.activity_event import ActivityEvent
from kidguard.models.base import Base, TimestampMixin
from kidguard.models.chat_message import ChatMessage, GroupChatMessage
from kidguard.models.child_profile import ChildProfile
from kidguard.models.parent_alert import (
    ParentAlert,
    ParentAlertSeverity,
    ParentAlertStatus,
    ParentAlertType,
)
from kidguard.models.safety_rule import SafetyRule
from kidguard.models.threat_incident import (
    IncidentStatus,
    ThreatIncident,
    ThreatSeverity,
)
from kidguard.models.user import User, UserRole

__all__ = [
    "ActivityEvent",
    "Base",
    "ChatMessage",
    "ChildProfile",
    "GroupChatMessage",
    "IncidentStatus",
    "ParentAlert",
    "ParentAlertSeverity",
    "ParentAlertStatus",
    "ParentAlertType",
    "SafetyRule",
    "ThreatIncident",
    "ThreatSeverity",
    "TimestampMixin",
    "User",
    "UserRole",
]
