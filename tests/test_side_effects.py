"""Tests for best-effort secondary effects."""

from unittest.mock import AsyncMock

import pytest

from kidguard.services.side_effects import run_best_effort


@pytest.mark.asyncio
async def test_returns_action_result(mock_db):
    result = await run_best_effort(mock_db, "noop", AsyncMock(return_value=42))

    assert result == 42
    mock_db.begin_nested.assert_called_once()
    assert mock_db.savepoint_rollbacks == 0


@pytest.mark.asyncio
async def test_failure_is_swallowed_and_only_the_savepoint_rolls_back(mock_db):
    action = AsyncMock(side_effect=RuntimeError("smtp down"))

    result = await run_best_effort(mock_db, "threat_alert", action, child_id="c1")

    assert result is None
    action.assert_awaited_once()
    assert mock_db.savepoint_rollbacks == 1
    mock_db.rollback.assert_not_awaited()


@pytest.mark.asyncio
async def test_never_commits(mock_db):
    await run_best_effort(mock_db, "noop", AsyncMock(return_value=None))
    await run_best_effort(
        mock_db, "threat_alert", AsyncMock(side_effect=ValueError("bad"))
    )

    mock_db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_failure_is_logged(mock_db, caplog):
    with caplog.at_level("ERROR"):
        await run_best_effort(
            mock_db, "time_limit_alert", AsyncMock(side_effect=KeyError("x"))
        )

    assert "Best-effort step failed" in caplog.text
