"""End-to-end tests for the chat send path.

Moderation, per-participant incidents and guardian alerts are exercised
together against a recording session; only profile and rule lookups are
patched.
"""

import uuid
from unittest.mock import AsyncMock, patch

import pytest

from kidguard.models.chat_message import ChatMessage, GroupChatMessage
from kidguard.models.child_profile import ChildProfile
from kidguard.models.parent_alert import ParentAlert, ParentAlertType
from kidguard.models.safety_rule import SafetyRule
from kidguard.models.threat_incident import ThreatIncident
from kidguard.services.chat import send_group_message, send_message
from kidguard.services.threat_detection import ThreatDetector
from kidguard.services.threat_lexicon import CUSTOM_CATEGORY, DEFAULT_LEXICON


class _FailingDirectory:
    def __init__(self, error: Exception):
        self.error = error

    async def get_guardian_id(self, db, child_id):
        raise self.error


class MappedDirectory:
    """GuardianDirectory backed by a dict."""

    def __init__(self, guardians: dict):
        self.guardians = guardians

    async def get_guardian_id(self, db, child_id):
        return self.guardians.get(child_id)


def _child(age: int, guardian_id=None) -> ChildProfile:
    return ChildProfile(
        id=uuid.uuid4(),
        guardian_id=guardian_id,
        full_name="Test Child",
        age=age,
        is_active=True,
    )


def _rule(child: ChildProfile, keywords: list[str]) -> SafetyRule:
    return SafetyRule(
        id=uuid.uuid4(),
        child_id=child.id,
        guardian_id=child.guardian_id or uuid.uuid4(),
        time_restrictions={},
        blocked_keywords=keywords,
        blocked_urls=[],
        content_filters={},
        alert_settings={},
        is_active=True,
    )


class ChatWorld:
    """Two children; only the receiver has a linked guardian."""

    def __init__(self, receiver_age: int = 9):
        self.guardian_id = uuid.uuid4()
        self.sender = _child(8)
        self.receiver = _child(receiver_age, self.guardian_id)
        self.profiles = {self.sender.id: self.sender, self.receiver.id: self.receiver}
        self.rules = {self.sender.id: _rule(self.sender, ["bully"])}
        self.detector = ThreatDetector(
            directory=MappedDirectory({self.receiver.id: self.guardian_id})
        )

    async def get_profile(self, db, child_id):
        return self.profiles.get(child_id)

    async def get_rules(self, db, child_id):
        return self.rules.get(child_id)

    def patches(self):
        return (
            patch(
                "kidguard.services.chat.get_child_profile",
                new=AsyncMock(side_effect=self.get_profile),
            ),
            patch(
                "kidguard.services.safety_rules.get_rules",
                new=AsyncMock(side_effect=self.get_rules),
            ),
        )


async def _send(world: ChatWorld, db, content: str, receiver_id=None):
    profile_patch, rules_patch = world.patches()
    with profile_patch, rules_patch:
        return await send_message(
            db,
            world.sender.id,
            receiver_id or world.receiver.id,
            content,
            world.detector,
        )


class TestFlaggedExchange:
    """A message blocked by the sender's own keywords."""

    @pytest.mark.asyncio
    async def test_message_is_stored_and_flagged(self, recording_session):
        world = ChatWorld()
        result = await _send(world, recording_session, "you bully")

        messages = recording_session.of_type(ChatMessage)
        assert messages == [result.message]
        assert result.message.is_flagged is True
        assert result.message.is_moderated is True
        assert result.message.flagged_reason == "Blocked keyword detected: bully"
        assert result.message.content == "you bully"

    @pytest.mark.asyncio
    async def test_incident_recorded_for_both_children(self, recording_session):
        world = ChatWorld()
        await _send(world, recording_session, "you bully")

        incidents = {i.child_id: i for i in recording_session.of_type(ThreatIncident)}
        assert set(incidents) == {world.sender.id, world.receiver.id}
        for incident in incidents.values():
            assert incident.threat_type == CUSTOM_CATEGORY
            assert 50 <= incident.confidence <= 100
            assert incident.context["chat_type"] == "direct"

        assert incidents[world.sender.id].context["direction"] == "sent"
        assert incidents[world.receiver.id].context["direction"] == "received"
        assert incidents[world.receiver.id].context["counterpart_id"] == str(
            world.sender.id
        )

    @pytest.mark.asyncio
    async def test_only_linked_guardian_is_alerted(self, recording_session):
        world = ChatWorld()
        await _send(world, recording_session, "you bully")

        alerts = recording_session.of_type(ParentAlert)
        assert len(alerts) == 1
        assert alerts[0].parent_id == world.guardian_id
        assert alerts[0].child_id == world.receiver.id
        assert alerts[0].alert_type == ParentAlertType.THREAT_DETECTED

        incidents = {i.child_id: i for i in recording_session.of_type(ThreatIncident)}
        assert incidents[world.receiver.id].parent_notified is True
        assert incidents[world.sender.id].parent_notified is False

    @pytest.mark.asyncio
    async def test_sender_gets_educational_intervention(self, recording_session):
        world = ChatWorld()
        result = await _send(world, recording_session, "you bully")

        assert result.intervention is not None
        assert result.intervention.message == DEFAULT_LEXICON.custom_message
        assert "Tell a Parent" in result.intervention.options


class TestCleanAndDegradedExchanges:
    """Messages that pass, and moderation without stored policies."""

    @pytest.mark.asyncio
    async def test_clean_message_has_no_side_effects(self, recording_session):
        world = ChatWorld()
        result = await _send(world, recording_session, "want to play tag?")

        assert result.message.is_flagged is False
        assert result.message.flagged_reason is None
        assert result.intervention is None
        assert recording_session.of_type(ThreatIncident) == []
        assert recording_session.of_type(ParentAlert) == []

    @pytest.mark.asyncio
    async def test_baseline_words_flag_without_rules(self, recording_session):
        world = ChatWorld()
        world.rules = {}
        result = await _send(world, recording_session, "that game is dumb")

        assert result.message.is_flagged is True
        assert result.message.flagged_reason == "Blocked keyword detected: dumb"
        assert len(recording_session.of_type(ThreatIncident)) == 2

    @pytest.mark.asyncio
    async def test_policy_lookup_failure_still_stores_message(
        self, recording_session
    ):
        world = ChatWorld()
        profile_patch, _ = world.patches()
        with profile_patch, patch(
            "kidguard.services.safety_rules.get_rules",
            new=AsyncMock(side_effect=RuntimeError("db hiccup")),
        ):
            result = await send_message(
                recording_session,
                world.sender.id,
                world.receiver.id,
                "you are stupid",
                world.detector,
            )

        assert recording_session.of_type(ChatMessage) == [result.message]
        assert result.message.is_flagged is True
        assert result.intervention is None
        assert recording_session.of_type(ThreatIncident) == []

    @pytest.mark.asyncio
    async def test_guardian_alert_failure_keeps_message_and_incidents(
        self, recording_session
    ):
        world = ChatWorld()
        world.detector = ThreatDetector(
            directory=_FailingDirectory(RuntimeError("directory down"))
        )

        result = await _send(world, recording_session, "you bully")

        assert result.message.is_flagged is True
        assert result.intervention.message == DEFAULT_LEXICON.custom_message
        assert len(recording_session.of_type(ThreatIncident)) == 2
        assert recording_session.of_type(ParentAlert) == []
        # Only the two alert savepoints rolled back
        assert recording_session.savepoint_rollbacks == 2
        recording_session.rollback.assert_not_awaited()


class TestSendValidation:
    """Rejected sends never persist anything."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   "])
    async def test_empty_content(self, recording_session, content):
        with pytest.raises(ValueError, match="empty"):
            await _send(ChatWorld(), recording_session, content)
        assert recording_session.added == []

    @pytest.mark.asyncio
    async def test_cannot_message_self(self, recording_session):
        world = ChatWorld()
        with pytest.raises(ValueError):
            await _send(world, recording_session, "hi", receiver_id=world.sender.id)
        assert recording_session.added == []

    @pytest.mark.asyncio
    async def test_unknown_receiver(self, recording_session):
        result = await _send(
            ChatWorld(), recording_session, "hi", receiver_id=uuid.uuid4()
        )
        assert result is None
        assert recording_session.added == []

    @pytest.mark.asyncio
    async def test_receiver_outside_age_range(self, recording_session):
        world = ChatWorld(receiver_age=14)
        with pytest.raises(ValueError, match="age range"):
            await _send(world, recording_session, "hi")
        assert recording_session.added == []


class TestGroupChat:
    """Group messages analyze only the sender."""

    @pytest.mark.asyncio
    async def test_flagged_group_message(self, recording_session):
        world = ChatWorld()
        profile_patch, rules_patch = world.patches()
        with profile_patch, rules_patch:
            result = await send_group_message(
                recording_session, world.sender.id, "you bully", world.detector
            )

        assert recording_session.of_type(GroupChatMessage) == [result.message]
        assert result.message.is_flagged is True
        incidents = recording_session.of_type(ThreatIncident)
        assert [i.child_id for i in incidents] == [world.sender.id]
        assert incidents[0].context["chat_type"] == "group"
        assert result.intervention is not None

    @pytest.mark.asyncio
    async def test_unknown_sender(self, recording_session):
        world = ChatWorld()
        profile_patch, rules_patch = world.patches()
        with profile_patch, rules_patch:
            result = await send_group_message(
                recording_session, uuid.uuid4(), "hello", world.detector
            )

        assert result is None
        assert recording_session.added == []
