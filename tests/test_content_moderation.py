"""Tests for the content moderation gate."""

import uuid
from unittest.mock import AsyncMock, patch

import pytest

from kidguard.models.parent_alert import ParentAlert, ParentAlertType
from kidguard.schemas.safety_rule import AlertSettings
from kidguard.services.content_moderation import (
    evaluate_content,
    exchange_keywords,
    is_content_blocked,
    moderate_exchange,
    screen_child_content,
)
from kidguard.services.safety_rules import DEFAULT_POLICY, PolicySnapshot


def _policy(keywords=(), urls=(), **alert_settings) -> PolicySnapshot:
    return PolicySnapshot(
        blocked_keywords=tuple(keywords),
        blocked_urls=tuple(urls),
        alert_settings=AlertSettings(**alert_settings),
    )


class _Directory:
    def __init__(self, guardian_id, error: Exception | None = None):
        self.guardian_id = guardian_id
        self.error = error
        self.calls = 0

    async def get_guardian_id(self, db, child_id):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.guardian_id


class TestEvaluateContent:
    """Tests for the pure gate decision."""

    @pytest.mark.parametrize("content", ["BULLY", "you bully", "Bullying is bad"])
    def test_keyword_match_is_case_insensitive(self, content):
        result = evaluate_content(_policy(["bully"]), content)
        assert result.blocked is True
        assert "bully" in result.reason
        assert result.reason == "Blocked keyword detected: bully"

    def test_first_keyword_wins(self):
        result = evaluate_content(_policy(["mean", "bully"]), "a mean bully")
        assert result.matched == "mean"

    def test_default_policy_fails_open(self):
        result = evaluate_content(DEFAULT_POLICY, "anything at all", url="x.example")
        assert result.blocked is False
        assert result.reason is None

    def test_url_match_is_case_sensitive(self):
        policy = _policy(urls=["games.example/chat"])
        assert evaluate_content(policy, "hi", url="https://games.example/chat/1").blocked
        assert not evaluate_content(policy, "hi", url="https://GAMES.example/chat").blocked

    def test_url_reason(self):
        result = evaluate_content(
            _policy(urls=["bad.example"]), "hello", url="http://bad.example/page"
        )
        assert result.reason == "Blocked URL: bad.example"

    def test_keyword_checked_before_url(self):
        result = evaluate_content(
            _policy(["bully"], ["bad.example"]), "bully", url="bad.example"
        )
        assert result.reason == "Blocked keyword detected: bully"

    def test_url_ignored_when_not_supplied(self):
        assert not evaluate_content(_policy(urls=["bad.example"]), "bad.example").blocked


class TestModerateExchange:
    """Tests for the chat fast check across participants."""

    def test_either_participants_keywords_block(self):
        result = moderate_exchange([_policy(), _policy(["bully"])], "you bully")
        assert result.blocked is True

    def test_baseline_words_block(self):
        result = moderate_exchange([DEFAULT_POLICY], "that is dumb", ["dumb"])
        assert result.reason == "Blocked keyword detected: dumb"

    def test_clean_message_allowed(self):
        result = moderate_exchange(
            [_policy(["bully"]), DEFAULT_POLICY], "want to play?", ["dumb"]
        )
        assert result.blocked is False

    def test_exchange_keywords_union_without_duplicates(self):
        keywords = exchange_keywords(
            [_policy(["bully", "Mean"]), _policy(["mean", "rude"])], ["bully", "dumb"]
        )
        assert keywords == ("bully", "Mean", "rude", "dumb")


class TestScreenChildContent:
    """Tests for content checks that notify the guardian."""

    @pytest.mark.asyncio
    async def test_blocked_content_creates_info_alert(self, recording_session):
        guardian_id = uuid.uuid4()
        child_id = uuid.uuid4()
        with patch(
            "kidguard.services.content_moderation.get_policy",
            new=AsyncMock(return_value=_policy(["bully"])),
        ):
            result = await screen_child_content(
                recording_session,
                child_id,
                "bully video",
                content_type="video",
                directory=_Directory(guardian_id),
            )

        assert result.blocked is True
        alerts = recording_session.of_type(ParentAlert)
        assert len(alerts) == 1
        assert alerts[0].alert_type == ParentAlertType.BLOCKED_CONTENT
        assert alerts[0].severity.value == "info"
        assert alerts[0].parent_id == guardian_id
        assert alerts[0].alert_metadata["content_type"] == "video"
        recording_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_alert_when_guardian_opted_out(self, recording_session):
        directory = _Directory(uuid.uuid4())
        with patch(
            "kidguard.services.content_moderation.get_policy",
            new=AsyncMock(
                return_value=_policy(["bully"], notify_on_blocked_content=False)
            ),
        ):
            result = await screen_child_content(
                recording_session, uuid.uuid4(), "bully", directory=directory
            )

        assert result.blocked is True
        assert directory.calls == 0
        assert recording_session.added == []

    @pytest.mark.asyncio
    async def test_allowed_content_has_no_side_effects(self, recording_session):
        directory = _Directory(uuid.uuid4())
        with patch(
            "kidguard.services.content_moderation.get_policy",
            new=AsyncMock(return_value=_policy(["bully"])),
        ):
            result = await screen_child_content(
                recording_session, uuid.uuid4(), "hello", directory=directory
            )

        assert result.blocked is False
        assert directory.calls == 0
        recording_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_alert_failure_does_not_fail_check(self, recording_session):
        recording_session.flush = AsyncMock(side_effect=RuntimeError("db down"))
        with patch(
            "kidguard.services.content_moderation.get_policy",
            new=AsyncMock(return_value=_policy(["bully"])),
        ):
            result = await screen_child_content(
                recording_session,
                uuid.uuid4(),
                "bully",
                directory=_Directory(uuid.uuid4()),
            )

        assert result.blocked is True
        assert recording_session.of_type(ParentAlert) == []
        assert recording_session.savepoint_rollbacks == 1
        recording_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_directory_failure_does_not_fail_check(self, recording_session):
        with patch(
            "kidguard.services.content_moderation.get_policy",
            new=AsyncMock(return_value=_policy(["bully"])),
        ):
            result = await screen_child_content(
                recording_session,
                uuid.uuid4(),
                "bully",
                directory=_Directory(None, error=RuntimeError("lookup failed")),
            )

        assert result.blocked is True
        assert recording_session.savepoint_rollbacks == 1


class TestIsContentBlocked:
    """Tests for screening against the child's stored policy."""

    @pytest.mark.asyncio
    async def test_uses_stored_policy(self, mock_db):
        child_id = uuid.uuid4()
        with patch(
            "kidguard.services.content_moderation.get_policy",
            new=AsyncMock(return_value=_policy(keywords=["bully"])),
        ) as get_policy_mock:
            result = await is_content_blocked(mock_db, child_id, "you BULLY")

        assert result.blocked is True
        assert result.reason == "Blocked keyword detected: bully"
        get_policy_mock.assert_awaited_once_with(mock_db, child_id)

    @pytest.mark.asyncio
    async def test_no_stored_policy_allows(self, mock_db):
        with patch(
            "kidguard.services.content_moderation.get_policy",
            new=AsyncMock(return_value=DEFAULT_POLICY),
        ):
            result = await is_content_blocked(
                mock_db, uuid.uuid4(), "anything", "http://site.example"
            )

        assert result.blocked is False
