"""Chat send path.

Every message is persisted. Moderation only annotates it (is_flagged,
flagged_reason); a flagged exchange is then handed to the threat
detector once per participant. Analysis runs after the message is
committed, each participant in its own savepoint; failures are logged and
never reach the sender.
"""

import uuid
from dataclasses import dataclass

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.config import settings
from kidguard.logging_config import get_logger
from kidguard.models.chat_message import ChatMessage, GroupChatMessage
from kidguard.services.content_moderation import (
    ModerationResult,
    exchange_keywords,
    moderate_exchange,
)
from kidguard.services.directory import get_child_profile, is_age_supported
from kidguard.services.safety_rules import PolicySnapshot, get_policy
from kidguard.services.side_effects import run_best_effort
from kidguard.services.threat_detection import (
    EducationalIntervention,
    ThreatAnalysis,
    ThreatDetector,
)

logger = get_logger(__name__)


@dataclass
class ChatSendResult:
    """A stored message plus the intervention to show its sender, if any."""

    message: ChatMessage | GroupChatMessage
    intervention: EducationalIntervention | None = None


def _validate_content(content: str) -> str:
    if not content or not content.strip():
        raise ValueError("Message content cannot be empty")
    return content


async def _load_policies(
    db: AsyncSession, child_ids: list[uuid.UUID]
) -> list[PolicySnapshot]:
    policies = await run_best_effort(
        db,
        "chat_policy_lookup",
        lambda: _fetch_policies(db, child_ids),
        child_ids=[str(child_id) for child_id in child_ids],
    )
    # Moderation degrades to the baseline word list if policies can't be read
    return policies or []


async def _fetch_policies(
    db: AsyncSession, child_ids: list[uuid.UUID]
) -> list[PolicySnapshot]:
    return [await get_policy(db, child_id) for child_id in child_ids]


async def _analyze_participant(
    db: AsyncSession,
    detector: ThreatDetector,
    child_id: uuid.UUID,
    content: str,
    context: dict,
    keywords: tuple[str, ...],
) -> ThreatAnalysis | None:
    return await run_best_effort(
        db,
        "chat_threat_analysis",
        lambda: detector.analyze(
            db, child_id, content, context=context, extra_keywords=keywords
        ),
        child_id=str(child_id),
    )


async def send_message(
    db: AsyncSession,
    sender_id: uuid.UUID,
    receiver_id: uuid.UUID,
    content: str,
    detector: ThreatDetector,
) -> ChatSendResult | None:
    """Send a direct message from one child to another.

    Args:
        db: Database session.
        sender_id: Sending child's profile ID.
        receiver_id: Receiving child's profile ID.
        content: Message text.
        detector: Threat detector used for flagged exchanges.

    Returns:
        ChatSendResult, or None if the sender or receiver does not exist.

    Raises:
        ValueError: If content is empty, the child messages themselves, or
            the receiver is outside the supported age range.
    """
    _validate_content(content)
    if sender_id == receiver_id:
        raise ValueError("Cannot send a message to yourself")

    sender = await get_child_profile(db, sender_id)
    receiver = await get_child_profile(db, receiver_id)
    if sender is None or receiver is None:
        return None

    if not is_age_supported(receiver.age):
        raise ValueError("Receiver is outside the supported age range")

    policies = await _load_policies(db, [sender_id, receiver_id])
    moderation: ModerationResult = moderate_exchange(
        policies, content, settings.chat_baseline_keywords
    )

    message = ChatMessage(
        id=uuid.uuid4(),
        sender_id=sender_id,
        receiver_id=receiver_id,
        content=content,
        is_read=False,
        is_moderated=True,
        is_flagged=moderation.blocked,
        flagged_reason=moderation.reason,
    )
    db.add(message)
    await db.commit()
    await db.refresh(message)

    logger.info(
        "Chat message stored",
        message_id=str(message.id),
        sender_id=str(sender_id),
        receiver_id=str(receiver_id),
        is_flagged=moderation.blocked,
    )

    if not moderation.blocked:
        return ChatSendResult(message=message)

    keywords = exchange_keywords(policies, settings.chat_baseline_keywords)
    shared = {
        "message_id": str(message.id),
        "flagged_reason": moderation.reason,
        "chat_type": "direct",
    }

    sender_analysis = await _analyze_participant(
        db,
        detector,
        sender_id,
        content,
        {**shared, "direction": "sent", "counterpart_id": str(receiver_id)},
        keywords,
    )
    await _analyze_participant(
        db,
        detector,
        receiver_id,
        content,
        {**shared, "direction": "received", "counterpart_id": str(sender_id)},
        keywords,
    )
    await db.commit()

    return ChatSendResult(
        message=message,
        intervention=sender_analysis.intervention if sender_analysis else None,
    )


async def get_conversation(
    db: AsyncSession,
    child_id: uuid.UUID,
    other_child_id: uuid.UUID,
    limit: int = 50,
) -> list[ChatMessage]:
    """Messages between two children in either direction, newest first."""
    result = await db.execute(
        select(ChatMessage)
        .where(
            or_(
                and_(
                    ChatMessage.sender_id == child_id,
                    ChatMessage.receiver_id == other_child_id,
                ),
                and_(
                    ChatMessage.sender_id == other_child_id,
                    ChatMessage.receiver_id == child_id,
                ),
            )
        )
        .order_by(ChatMessage.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def send_group_message(
    db: AsyncSession,
    sender_id: uuid.UUID,
    content: str,
    detector: ThreatDetector,
) -> ChatSendResult | None:
    """Post to the group chat. Only the sender is analyzed when flagged.

    Returns:
        ChatSendResult, or None if the sender does not exist.

    Raises:
        ValueError: If content is empty.
    """
    _validate_content(content)

    sender = await get_child_profile(db, sender_id)
    if sender is None:
        return None

    policies = await _load_policies(db, [sender_id])
    moderation = moderate_exchange(policies, content, settings.chat_baseline_keywords)

    message = GroupChatMessage(
        id=uuid.uuid4(),
        sender_id=sender_id,
        content=content,
        is_moderated=True,
        is_flagged=moderation.blocked,
        flagged_reason=moderation.reason,
    )
    db.add(message)
    await db.commit()
    await db.refresh(message)

    logger.info(
        "Group chat message stored",
        message_id=str(message.id),
        sender_id=str(sender_id),
        is_flagged=moderation.blocked,
    )

    if not moderation.blocked:
        return ChatSendResult(message=message)

    analysis = await _analyze_participant(
        db,
        detector,
        sender_id,
        content,
        {
            "message_id": str(message.id),
            "flagged_reason": moderation.reason,
            "chat_type": "group",
            "direction": "sent",
        },
        exchange_keywords(policies, settings.chat_baseline_keywords),
    )
    await db.commit()

    return ChatSendResult(
        message=message,
        intervention=analysis.intervention if analysis else None,
    )


async def list_group_messages(
    db: AsyncSession, limit: int = 100
) -> list[GroupChatMessage]:
    """Most recent group chat messages, newest first."""
    result = await db.execute(
        select(GroupChatMessage)
        .order_by(GroupChatMessage.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
