"""Tests for the threat incident store."""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kidguard.models.threat_incident import (
    IncidentStatus,
    ThreatIncident,
    ThreatSeverity,
)
from kidguard.services.incidents import (
    IncidentTransitionError,
    get_incident_stats,
    get_threat_overview,
    resolve_incident,
)


def _incident(status=IncidentStatus.OPEN, **overrides) -> ThreatIncident:
    fields = {
        "id": uuid.uuid4(),
        "child_id": uuid.uuid4(),
        "threat_type": "violence",
        "severity": ThreatSeverity.HIGH,
        "status": status,
        "confidence": 55,
        "detected_keywords": ["hurt"],
        "context": {},
        "parent_notified": False,
    }
    fields.update(overrides)
    return ThreatIncident(**fields)


def _scalar(value):
    result = MagicMock()
    result.scalar_one.return_value = value
    return result


def _rows(rows):
    result = MagicMock()
    result.all.return_value = rows
    return result


class TestResolveIncident:
    """Tests for resolve_incident."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "start", [IncidentStatus.OPEN, IncidentStatus.UNDER_REVIEW]
    )
    @pytest.mark.parametrize(
        "resolution", [IncidentStatus.RESOLVED, IncidentStatus.FALSE_POSITIVE]
    )
    async def test_resolves_from_open_states(self, mock_db, start, resolution):
        incident = _incident(status=start)
        admin_id = uuid.uuid4()

        with patch(
            "kidguard.services.incidents.get_incident",
            new=AsyncMock(return_value=incident),
        ):
            updated = await resolve_incident(
                mock_db, incident.id, admin_id, resolution, notes="checked"
            )

        assert updated.status == resolution
        assert updated.resolved_by == admin_id
        assert updated.resolved_at is not None
        assert updated.resolution_notes == "checked"
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "closed", [IncidentStatus.RESOLVED, IncidentStatus.FALSE_POSITIVE]
    )
    async def test_closed_incident_cannot_be_resolved_again(self, mock_db, closed):
        incident = _incident(status=closed)

        with patch(
            "kidguard.services.incidents.get_incident",
            new=AsyncMock(return_value=incident),
        ):
            with pytest.raises(IncidentTransitionError) as exc_info:
                await resolve_incident(
                    mock_db, incident.id, uuid.uuid4(), IncidentStatus.RESOLVED
                )

        assert exc_info.value.current == closed
        assert incident.status == closed
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "resolution", [IncidentStatus.OPEN, IncidentStatus.UNDER_REVIEW]
    )
    async def test_rejects_non_closing_resolution(self, mock_db, resolution):
        with pytest.raises(ValueError):
            await resolve_incident(mock_db, uuid.uuid4(), uuid.uuid4(), resolution)

    @pytest.mark.asyncio
    async def test_missing_incident_returns_none(self, mock_db):
        with patch(
            "kidguard.services.incidents.get_incident",
            new=AsyncMock(return_value=None),
        ):
            result = await resolve_incident(
                mock_db, uuid.uuid4(), uuid.uuid4(), IncidentStatus.RESOLVED
            )

        assert result is None
        mock_db.commit.assert_not_awaited()

    def test_transition_error_is_value_error(self):
        error = IncidentTransitionError(uuid.uuid4(), IncidentStatus.RESOLVED)
        assert isinstance(error, ValueError)
        assert "resolved" in str(error)


class TestStats:
    """Tests for aggregate reporting."""

    @pytest.mark.asyncio
    async def test_incident_stats(self, mock_db):
        mock_db.execute = AsyncMock(
            side_effect=[
                _scalar(7),
                _scalar(4),
                _scalar(1),
                _scalar(3),
                _rows([("violence", 4), ("custom_blocked_content", 3)]),
            ]
        )

        stats = await get_incident_stats(mock_db)

        assert stats == {
            "total": 7,
            "open": 4,
            "critical": 1,
            "high": 3,
            "by_type": [
                {"type": "violence", "count": 4},
                {"type": "custom_blocked_content", "count": 3},
            ],
        }

    @pytest.mark.asyncio
    async def test_threat_overview(self, mock_db):
        recent = [_incident(), _incident()]
        mock_db.execute = AsyncMock(
            side_effect=[
                _scalar(2),
                _scalar(5),
                _scalar(0),
                _rows([("violence", 3, 56.666), ("personal_info", 1, None)]),
            ]
        )

        with patch(
            "kidguard.services.incidents.list_incidents",
            new=AsyncMock(return_value=recent),
        ) as list_mock:
            overview = await get_threat_overview(mock_db)

        list_mock.assert_awaited_once_with(mock_db, limit=10)
        assert overview["open"] == 2
        assert overview["resolved"] == 5
        assert overview["critical"] == 0
        assert overview["by_type"] == [
            {"type": "violence", "count": 3, "avg_confidence": 56.7},
            {"type": "personal_info", "count": 1, "avg_confidence": 0.0},
        ]
        assert overview["recent"] == recent
