"""
Request authentication.

Tokens are issued by the account service; every route here resolves the
bearer token to an active ``User`` through ``get_current_user``.
"""

import logging
from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ForbiddenError, UnauthenticatedError
from core.security.tokens import TokenService
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models.user import User

logger = logging.getLogger(__name__)

token_service = TokenService(
    secret_key=settings.jwt_secret_key,
    algorithm=settings.jwt_algorithm,
    access_token_expire_minutes=settings.jwt_access_token_expire_minutes,
)


def _extract_token(request: Request, authorization: str | None) -> str | None:
    if authorization and authorization.startswith("Bearer "):
        parts = authorization.split(" ", 1)
        if len(parts) > 1 and parts[1]:
            return parts[1]
    # Browser sessions carry the token in an HttpOnly cookie
    return request.cookies.get("access_token")


async def get_current_user(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency resolving the authenticated user.

    Raises:
        UnauthenticatedError: Missing, invalid or expired token, or unknown user.
        ForbiddenError: The account is suspended or deleted.
    """
    token = _extract_token(request, authorization)
    if not token:
        raise UnauthenticatedError("Not authenticated")

    user_id = token_service.verify_access_token(token)
    if not user_id:
        raise UnauthenticatedError("Invalid or expired token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise UnauthenticatedError("User not found")

    if not user.is_active:
        raise ForbiddenError("User account is not active")

    # Request logging middleware picks this up
    request.state.user_id = user.id
    return user
