"""Tests for token verification and access control."""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException
from jose import jwt

from kidguard.config import settings
from kidguard.core.auth import authorize_child_access
from kidguard.core.security import TokenData, decode_access_token
from kidguard.database import get_db
from kidguard.main import app
from kidguard.models.child_profile import ChildProfile
from kidguard.models.user import User, UserRole


def create_access_token(
    user_id: uuid.UUID,
    email: str,
    role: str,
    expires_delta: timedelta = timedelta(hours=1),
) -> str:
    """Mint an access token the way the identity service does."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "exp": now + expires_delta,
        "iat": now,
        "type": "access",
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def _user(role=UserRole.GUARDIAN, is_active=True) -> User:
    return User(
        id=uuid.uuid4(),
        email=f"{role.value}@example.com",
        role=role,
        is_active=is_active,
    )


def _db_returning(user):
    db = AsyncMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = user
    db.execute = AsyncMock(return_value=result)
    return db


class TestAccessToken:
    """Tests for JWT decoding."""

    def test_round_trip(self):
        user_id = uuid.uuid4()
        token = create_access_token(user_id, "g@example.com", "guardian")

        payload = decode_access_token(token)
        data = TokenData(payload)

        assert data.user_id == user_id
        assert data.email == "g@example.com"
        assert data.role == "guardian"

    def test_expired_token_rejected(self):
        token = create_access_token(
            uuid.uuid4(), "g@example.com", "guardian", timedelta(seconds=-5)
        )
        assert decode_access_token(token) is None

    def test_wrong_token_type_rejected(self):
        token = jwt.encode(
            {"sub": str(uuid.uuid4()), "type": "refresh"},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        assert decode_access_token(token) is None

    def test_garbage_rejected(self):
        assert decode_access_token("not-a-token") is None


class TestRequestAuthentication:
    """Bearer and cookie authentication through a real endpoint."""

    @pytest.mark.asyncio
    async def test_bearer_token(self, client):
        user = _user()
        app.dependency_overrides[get_db] = lambda: _db_returning(user)
        token = create_access_token(user.id, user.email, user.role.value)
        try:
            with patch(
                "kidguard.services.parent_alerts.get_unread_count",
                new=AsyncMock(return_value=2),
            ):
                response = await client.get(
                    "/api/protection/alerts/unread-count",
                    headers={"Authorization": f"Bearer {token}"},
                )
            assert response.status_code == 200
            assert response.json() == {"count": 2}
        finally:
            app.dependency_overrides.clear()

    @pytest.mark.asyncio
    async def test_session_cookie(self, client):
        user = _user()
        app.dependency_overrides[get_db] = lambda: _db_returning(user)
        token = create_access_token(user.id, user.email, user.role.value)
        try:
            with patch(
                "kidguard.services.parent_alerts.get_unread_count",
                new=AsyncMock(return_value=0),
            ):
                response = await client.get(
                    "/api/protection/alerts/unread-count",
                    headers={"Cookie": f"{settings.jwt_cookie_name}={token}"},
                )
            assert response.status_code == 200
        finally:
            app.dependency_overrides.clear()

    @pytest.mark.asyncio
    async def test_disabled_account_rejected(self, client):
        user = _user(is_active=False)
        app.dependency_overrides[get_db] = lambda: _db_returning(user)
        token = create_access_token(user.id, user.email, user.role.value)
        try:
            response = await client.get(
                "/api/protection/alerts/unread-count",
                headers={"Authorization": f"Bearer {token}"},
            )
            assert response.status_code == 401
        finally:
            app.dependency_overrides.clear()

    @pytest.mark.asyncio
    async def test_unknown_user_rejected(self, client):
        app.dependency_overrides[get_db] = lambda: _db_returning(None)
        token = create_access_token(uuid.uuid4(), "x@example.com", "guardian")
        try:
            response = await client.get(
                "/api/protection/alerts/unread-count",
                headers={"Authorization": f"Bearer {token}"},
            )
            assert response.status_code == 401
        finally:
            app.dependency_overrides.clear()


class TestAuthorizeChildAccess:
    """Who may see data about a child."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [UserRole.TEACHER, UserRole.ADMIN])
    async def test_staff_see_any_child(self, mock_db, role):
        await authorize_child_access(mock_db, _user(role), uuid.uuid4())
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_guardian_owning_child(self, mock_db):
        user = _user()
        child_id = uuid.uuid4()
        with patch(
            "kidguard.core.auth.verify_child_ownership",
            new=AsyncMock(
                return_value=ChildProfile(
                    id=child_id, guardian_id=user.id, full_name="Sam", age=7
                )
            ),
        ):
            await authorize_child_access(mock_db, user, child_id)

    @pytest.mark.asyncio
    async def test_guardian_of_other_family_gets_404(self, mock_db):
        with patch(
            "kidguard.core.auth.verify_child_ownership",
            new=AsyncMock(return_value=None),
        ):
            with pytest.raises(HTTPException) as exc_info:
                await authorize_child_access(mock_db, _user(), uuid.uuid4())

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_child_sees_only_self(self, mock_db):
        user = _user(UserRole.CHILD)
        own = ChildProfile(id=uuid.uuid4(), user_id=user.id, full_name="Sam", age=7)
        with patch(
            "kidguard.core.auth.get_child_for_user",
            new=AsyncMock(return_value=own),
        ):
            await authorize_child_access(mock_db, user, own.id)
            with pytest.raises(HTTPException) as exc_info:
                await authorize_child_access(mock_db, user, uuid.uuid4())

        assert exc_info.value.status_code == 404
