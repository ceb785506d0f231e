"""Content moderation gate.

Fast, side-effect free keyword and URL screening used before content is
persisted. The gate only advises; callers decide whether to reject the
content or just flag it. screen_child_content is the one entry point
that also notifies the guardian.
"""

import uuid
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.logging_config import get_logger
from kidguard.services import parent_alerts
from kidguard.services.directory import GuardianDirectory, ProfileGuardianDirectory
from kidguard.services.safety_rules import PolicySnapshot, get_policy
from kidguard.services.side_effects import run_best_effort

logger = get_logger(__name__)


@dataclass(frozen=True)
class ModerationResult:
    """Gate decision."""

    blocked: bool
    reason: str | None = None
    matched: str | None = None


ALLOWED = ModerationResult(blocked=False)


def find_keyword(content: str, keywords: Iterable[str]) -> str | None:
    """Return the first keyword contained in content, ignoring case."""
    content_lower = content.lower()
    for keyword in keywords:
        if keyword and keyword.lower() in content_lower:
            return keyword
    return None


def evaluate_content(
    policy: PolicySnapshot,
    content: str,
    url: str | None = None,
) -> ModerationResult:
    """Screen content (and optionally a URL) against a child's policy.

    Keywords match case-insensitively, URLs case-sensitively; the URL is
    only checked when no keyword matched. First match wins.
    """
    keyword = find_keyword(content, policy.blocked_keywords)
    if keyword is not None:
        return ModerationResult(
            blocked=True,
            reason=f"Blocked keyword detected: {keyword}",
            matched=keyword,
        )

    if url:
        for blocked_url in policy.blocked_urls:
            if blocked_url and blocked_url in url:
                return ModerationResult(
                    blocked=True,
                    reason=f"Blocked URL: {blocked_url}",
                    matched=blocked_url,
                )

    return ALLOWED


async def is_content_blocked(
    db: AsyncSession,
    child_id: uuid.UUID,
    content: str,
    url: str | None = None,
) -> ModerationResult:
    """Screen content against the child's stored policy (fail-open)."""
    policy = await get_policy(db, child_id)
    return evaluate_content(policy, content, url)


def moderate_exchange(
    policies: Iterable[PolicySnapshot],
    content: str,
    baseline_keywords: Iterable[str] = (),
) -> ModerationResult:
    """Screen a chat message against every participant's policy.

    Each participant's policy is checked in order, then the baseline chat
    word list. First block wins.
    """
    for policy in policies:
        result = evaluate_content(policy, content)
        if result.blocked:
            return result

    keyword = find_keyword(content, baseline_keywords)
    if keyword is not None:
        return ModerationResult(
            blocked=True,
            reason=f"Blocked keyword detected: {keyword}",
            matched=keyword,
        )

    return ALLOWED


def exchange_keywords(
    policies: Iterable[PolicySnapshot],
    baseline_keywords: Iterable[str] = (),
) -> tuple[str, ...]:
    """Union of the participants' blocked keywords and the baseline list."""
    seen: set[str] = set()
    keywords = []
    for source in [*(p.blocked_keywords for p in policies), baseline_keywords]:
        for keyword in source:
            if keyword and keyword.lower() not in seen:
                seen.add(keyword.lower())
                keywords.append(keyword)
    return tuple(keywords)


async def screen_child_content(
    db: AsyncSession,
    child_id: uuid.UUID,
    content: str,
    url: str | None = None,
    content_type: str = "content",
    directory: GuardianDirectory | None = None,
) -> ModerationResult:
    """Screen content for a child and tell the guardian when it is blocked.

    The blocked-content alert is best-effort and only sent when the
    child's alert settings ask for it.
    """
    policy = await get_policy(db, child_id)
    result = evaluate_content(policy, content, url)
    if not result.blocked:
        return result

    logger.info(
        "Content blocked",
        child_id=str(child_id),
        content_type=content_type,
        reason=result.reason,
    )

    if policy.alert_settings.notify_on_blocked_content:
        directory = directory or ProfileGuardianDirectory()

        async def _notify() -> uuid.UUID | None:
            guardian_id = await directory.get_guardian_id(db, child_id)
            if guardian_id is None:
                return None
            alert = await parent_alerts.create_blocked_content_alert(
                db, guardian_id, child_id, content_type, result.reason
            )
            return alert.id

        await run_best_effort(
            db, "blocked_content_alert", _notify, child_id=str(child_id)
        )
        await db.commit()

    return result
