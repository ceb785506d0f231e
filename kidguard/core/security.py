"""JWT token handling.

Accounts and logins live in the identity service, which issues the
access tokens; this API only verifies them with the shared secret.
"""

import uuid
from datetime import datetime, timezone

from jose import JWTError, jwt

from kidguard.config import settings


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT access token.

    Returns:
        Token payload dict if valid, None if invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        if payload.get("type") != "access":
            return None

        return payload

    except JWTError:
        return None


class TokenData:
    """Parsed token data for type safety."""

    def __init__(self, payload: dict):
        self.user_id: uuid.UUID = uuid.UUID(payload["sub"])
        self.email: str = payload["email"]
        self.role: str = payload["role"]
        self.exp: datetime = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
