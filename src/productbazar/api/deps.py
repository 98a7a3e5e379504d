"""API dependencies."""

from typing import Annotated, Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from productbazar.auth.jwt import TokenError, verify_token
from productbazar.config import get_settings
from productbazar.database import get_db
from productbazar.exceptions import ForbiddenError, UnauthorizedError
from productbazar.middleware.rate_limit import client_ip
from productbazar.models.base import as_utc
from productbazar.models.user import User
from productbazar.services.user_service import UserService

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def _user_from_token(token: str, db: AsyncSession) -> User:
    try:
        payload = verify_token(token)
    except TokenError as e:
        raise UnauthorizedError(str(e), code="INVALID_TOKEN") from e

    user = await UserService(db).get_by_id(int(payload["sub"]))
    if user is None:
        raise UnauthorizedError(
            "The user belonging to this token no longer exists.", code="USER_NOT_FOUND"
        )

    # Tokens minted before the last password change are no longer valid
    changed_at = as_utc(user.password_changed_at)
    if changed_at is not None and int(payload.get("iat", 0)) < int(changed_at.timestamp()):
        raise UnauthorizedError(
            "Password was changed recently. Please log in again.", code="PASSWORD_CHANGED"
        )
    return user


async def get_current_user(
    db: DbSession,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> User:
    """Require a valid bearer token."""
    if credentials is None:
        raise UnauthorizedError(
            "You are not logged in. Please log in to get access.", code="NOT_AUTHENTICATED"
        )
    return await _user_from_token(credentials.credentials, db)


async def get_optional_user(
    db: DbSession,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> Optional[User]:
    """Resolve the user when a valid token is sent; anonymous otherwise."""
    if credentials is None:
        return None
    try:
        return await _user_from_token(credentials.credentials, db)
    except UnauthorizedError as e:
        logger.debug("optional_auth_ignored", reason=e.code)
        return None


async def get_admin_user(user: Annotated[User, Depends(get_current_user)]) -> User:
    if not user.is_admin:
        raise ForbiddenError("You do not have permission to perform this action.")
    return user


def get_client_ip(request: Request) -> str:
    return client_ip(request, get_settings().trusted_proxies)


# Type aliases for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]
AdminUser = Annotated[User, Depends(get_admin_user)]
ClientIP = Annotated[str, Depends(get_client_ip)]
