"""Pytest configuration and shared fixtures.

Nothing here touches a real database: services are exercised against
AsyncMock sessions and routers through app.dependency_overrides.
"""

import os
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set testing mode BEFORE importing app to use NullPool and disable rate limits
os.environ["TESTING"] = "true"

from kidguard.config import settings

# Override settings for testing
settings.testing = True

from kidguard.main import app


class Savepoint:
    """Stand-in for the context manager returned by begin_nested().

    On an exception, objects added inside the savepoint are dropped (like a
    real SAVEPOINT rollback expunging pending objects) and the rollback is
    counted on the session.
    """

    def __init__(self, session):
        self.session = session
        self._mark = 0

    async def __aenter__(self):
        self._mark = len(self.session.added)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None:
            del self.session.added[self._mark :]
            self.session.savepoint_rollbacks += 1
        return False


class RecordingSession:
    """Stand-in AsyncSession that keeps every object passed to add()."""

    def __init__(self):
        self.added = []
        self.savepoint_rollbacks = 0
        self.add = MagicMock(side_effect=self.added.append)
        self.begin_nested = MagicMock(side_effect=lambda: Savepoint(self))
        self.flush = AsyncMock()
        self.commit = AsyncMock()
        self.refresh = AsyncMock()
        self.rollback = AsyncMock()
        self.execute = AsyncMock()

    def of_type(self, model):
        return [obj for obj in self.added if isinstance(obj, model)]


@pytest.fixture
def recording_session() -> RecordingSession:
    return RecordingSession()


@pytest.fixture
def mock_db():
    """AsyncMock session whose add() is synchronous, like the real one."""
    db = AsyncMock()
    db.add = MagicMock()
    db.added = []
    db.savepoint_rollbacks = 0
    db.begin_nested = MagicMock(side_effect=lambda: Savepoint(db))
    return db


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
