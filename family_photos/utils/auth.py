from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.config import get_settings
from family_photos.database import get_db
from family_photos.models.user import User
from family_photos.schemas.auth import TokenPayload
from family_photos.services.access_gate import AccessGate
from family_photos.services.user_service import UserService

settings = get_settings()

# HTTP Bearer token scheme
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> TokenPayload:
    """Decode and validate a session JWT issued by the auth callback."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=["HS256"],
            options={"verify_exp": True},
        )
        return TokenPayload(**payload)
    except (JWTError, ValidationError) as e:
        raise _unauthorized(f"Invalid token: {str(e)}")


async def _user_from_token(token: str, db: AsyncSession) -> Optional[User]:
    token_data = decode_token(token)
    try:
        user_id = UUID(token_data.sub)
    except ValueError:
        raise _unauthorized("Invalid token subject")
    return await UserService(db).get_by_id(user_id)


async def get_current_user_optional(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Optional[User]:
    """
    Get current user from JWT token if provided.
    Returns None if no token or invalid token.
    """
    if not credentials:
        return None

    try:
        return await _user_from_token(credentials.credentials, db)
    except HTTPException:
        return None


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Get current authenticated user.

    Any signed-in identity passes, member or not. Use ``CurrentMember`` for
    anything that touches family data.
    """
    if not credentials:
        raise _unauthorized("Not authenticated")

    user = await _user_from_token(credentials.credentials, db)
    if not user:
        raise _unauthorized("Not authenticated")

    return user


async def get_current_member(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Request-boundary access gate: 401 without a session, 403 for non-members."""
    return await AccessGate(db).require(user)


# Type aliases for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentUserOptional = Annotated[Optional[User], Depends(get_current_user_optional)]
CurrentMember = Annotated[User, Depends(get_current_member)]
