"""Chat schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from kidguard.schemas.threat import EducationalInterventionResponse


class ChatSendRequest(BaseModel):
    receiver_id: uuid.UUID
    content: str = Field(..., max_length=2000)


class GroupChatSendRequest(BaseModel):
    content: str = Field(..., max_length=2000)


class ChatMessageResponse(BaseModel):
    """A stored direct message with its moderation flags."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sender_id: uuid.UUID
    receiver_id: uuid.UUID
    content: str
    is_read: bool
    is_moderated: bool
    is_flagged: bool
    flagged_reason: str | None = None
    created_at: datetime | None = None
    read_at: datetime | None = None


class GroupChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sender_id: uuid.UUID
    content: str
    is_moderated: bool
    is_flagged: bool
    flagged_reason: str | None = None
    created_at: datetime | None = None


class ChatSendResponse(BaseModel):
    """Stored message plus guidance for the sender when it was flagged."""

    message: ChatMessageResponse
    intervention: EducationalInterventionResponse | None = None


class GroupChatSendResponse(BaseModel):
    message: GroupChatMessageResponse
    intervention: EducationalInterventionResponse | None = None
