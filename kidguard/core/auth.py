"""Authentication and authorization dependencies.

Supports two auth paths:
1. httpOnly session cookie (web)
2. Authorization Bearer JWT (mobile)
"""

import uuid
from typing import Annotated

from fastapi import Cookie, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.config import settings
from kidguard.core.security import TokenData, decode_access_token
from kidguard.database import get_db
from kidguard.logging_config import get_logger
from kidguard.models.child_profile import ChildProfile
from kidguard.models.user import User, UserRole
from kidguard.services.directory import get_child_for_user, verify_child_ownership

logger = get_logger(__name__)

CHILD_NOT_FOUND = "Child not found"


async def get_current_user(
    request: Request,
    session_token: Annotated[str | None, Cookie(alias=settings.jwt_cookie_name)] = None,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Extract and validate the current user.

    Returns:
        The authenticated User object

    Raises:
        HTTPException 401: If no valid credentials are found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not session_token:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            session_token = auth_header[7:]

    if not session_token:
        raise credentials_exception

    payload = decode_access_token(session_token)
    if payload is None:
        raise credentials_exception

    try:
        token_data = TokenData(payload)
    except (KeyError, ValueError):
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == token_data.user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )
    return user


# Type aliases for cleaner route signatures
CurrentUser = Annotated[User, Depends(get_current_user)]


# ============================================================================
# Role-Based Access Control
# ============================================================================


class RoleChecker:
    """Dependency class for checking user roles.

    Usage:
        @router.get("/admin-only")
        async def admin_endpoint(user: CurrentUser, _: bool = Depends(RoleChecker([UserRole.ADMIN]))):
            ...
    """

    def __init__(self, allowed_roles: list[UserRole]):
        self.allowed_roles = allowed_roles

    async def __call__(
        self,
        request: Request,
        current_user: CurrentUser,
    ) -> bool:
        """Check if the current user has one of the allowed roles.

        Raises:
            HTTPException 403: If the user doesn't have an allowed role
        """
        if current_user.role not in self.allowed_roles:
            client_ip = request.client.host if request.client else "unknown"
            logger.warning(
                "Unauthorized access attempt",
                user_id=str(current_user.id),
                user_role=current_user.role.value,
                required_roles=[r.value for r in self.allowed_roles],
                path=request.url.path,
                method=request.method,
                client_ip=client_ip,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You don't have permission to access this resource",
            )
        return True


def require_roles(*roles: UserRole) -> RoleChecker:
    """Create a role checker dependency for the specified roles.

    Usage:
        @router.get("/rules")
        async def get_rules(
            user: CurrentUser,
            _: bool = Depends(require_roles(UserRole.GUARDIAN, UserRole.ADMIN))
        ):
            ...
    """
    return RoleChecker(list(roles))


# Pre-configured role checkers for common use cases
require_admin = require_roles(UserRole.ADMIN)
require_guardian = require_roles(UserRole.GUARDIAN)
require_child = require_roles(UserRole.CHILD)
require_guardian_or_admin = require_roles(UserRole.GUARDIAN, UserRole.ADMIN)
require_supervisor = require_roles(UserRole.GUARDIAN, UserRole.TEACHER, UserRole.ADMIN)


async def get_admin_user(
    current_user: CurrentUser,
    request: Request,
) -> User:
    """Get the current user and verify they are an admin."""
    await require_admin(request, current_user)
    return current_user


async def get_guardian_user(
    current_user: CurrentUser,
    request: Request,
) -> User:
    """Get the current user and verify they are a guardian."""
    await require_guardian(request, current_user)
    return current_user


async def get_current_child(
    current_user: CurrentUser,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> ChildProfile:
    """Resolve the child profile behind a child login.

    Raises:
        HTTPException 403: If the user is not a child
        HTTPException 404: If no active profile is linked to the account
    """
    await require_child(request, current_user)
    child = await get_child_for_user(db, current_user.id)
    if child is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Child profile not found",
        )
    return child


# Type aliases for role-restricted users
AdminUser = Annotated[User, Depends(get_admin_user)]
GuardianUser = Annotated[User, Depends(get_guardian_user)]
CurrentChild = Annotated[ChildProfile, Depends(get_current_child)]


async def authorize_child_access(
    db: AsyncSession,
    user: User,
    child_id: uuid.UUID,
) -> None:
    """Check the user may see data about a child.

    Guardians must own the child and children may only see themselves.
    Teachers and admins see any child; role restrictions per endpoint are
    enforced separately. A failed check is reported as 404 so callers
    cannot tell other families' children from missing ones.

    Raises:
        HTTPException 404: If the child is not visible to the user
    """
    not_found = HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=CHILD_NOT_FOUND,
    )

    if user.role == UserRole.GUARDIAN:
        if await verify_child_ownership(db, user.id, child_id) is None:
            raise not_found
    elif user.role == UserRole.CHILD:
        child = await get_child_for_user(db, user.id)
        if child is None or child.id != child_id:
            raise not_found
