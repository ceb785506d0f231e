"""Child chat router.

Direct and group messaging for children. Messages are always delivered;
moderation only flags them.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.config import settings
from kidguard.core.auth import CurrentChild
from kidguard.database import get_db
from kidguard.middleware.rate_limit import limiter
from kidguard.schemas.chat import (
    ChatMessageResponse,
    ChatSendRequest,
    ChatSendResponse,
    GroupChatMessageResponse,
    GroupChatSendRequest,
    GroupChatSendResponse,
)
from kidguard.schemas.threat import EducationalInterventionResponse
from kidguard.services import chat
from kidguard.services.threat_detection import (
    EducationalIntervention,
    ThreatDetector,
    get_threat_detector,
)

router = APIRouter(prefix="/api/chat", tags=["chat"])


def _intervention_response(
    intervention: EducationalIntervention | None,
) -> EducationalInterventionResponse | None:
    if intervention is None:
        return None
    return EducationalInterventionResponse(
        message=intervention.message,
        options=list(intervention.options),
    )


@router.post(
    "/send",
    response_model=ChatSendResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.chat_send_rate_limit)
async def send_message(
    request: Request,
    payload: ChatSendRequest,
    child: CurrentChild,
    db: AsyncSession = Depends(get_db),
    detector: ThreatDetector = Depends(get_threat_detector),
) -> ChatSendResponse:
    """Send a direct message to another child.

    The message is stored even when flagged; a flagged sender also gets
    an educational intervention back.
    """
    try:
        result = await chat.send_message(
            db, child.id, payload.receiver_id, payload.content, detector
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Sender or receiver not found",
        )

    return ChatSendResponse(
        message=ChatMessageResponse.model_validate(result.message),
        intervention=_intervention_response(result.intervention),
    )


@router.get("/conversation/{child_id}", response_model=list[ChatMessageResponse])
async def get_conversation(
    child_id: uuid.UUID,
    child: CurrentChild,
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> list[ChatMessageResponse]:
    """Messages between the calling child and another child, newest first."""
    messages = await chat.get_conversation(db, child.id, child_id, limit)
    return [ChatMessageResponse.model_validate(m) for m in messages]


@router.post(
    "/group/send",
    response_model=GroupChatSendResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.chat_send_rate_limit)
async def send_group_message(
    request: Request,
    payload: GroupChatSendRequest,
    child: CurrentChild,
    db: AsyncSession = Depends(get_db),
    detector: ThreatDetector = Depends(get_threat_detector),
) -> GroupChatSendResponse:
    """Post a message to the group chat."""
    try:
        result = await chat.send_group_message(db, child.id, payload.content, detector)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Sender not found",
        )

    return GroupChatSendResponse(
        message=GroupChatMessageResponse.model_validate(result.message),
        intervention=_intervention_response(result.intervention),
    )


@router.get("/group/messages", response_model=list[GroupChatMessageResponse])
async def get_group_messages(
    _child: CurrentChild,
    limit: int = Query(default=100, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> list[GroupChatMessageResponse]:
    """Most recent group chat messages, newest first."""
    messages = await chat.list_group_messages(db, limit)
    return [GroupChatMessageResponse.model_validate(m) for m in messages]
