import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.config import get_settings
from family_photos.database import get_db
from family_photos.models.family import MemberStatus
from family_photos.models.user import User
from family_photos.schemas.auth import (
    AuthCallbackRequest,
    AuthSessionResponse,
    CurrentSessionResponse,
    MagicLinkRequest,
    MagicLinkResponse,
    SessionUser,
    SignupResponse,
)
from family_photos.schemas.family import InvitationLookupResponse
from family_photos.services.access_gate import AccessGate
from family_photos.services.email_service import EmailProvider, get_email_provider
from family_photos.services.family_service import FamilyService
from family_photos.services.magic_link_service import MagicLinkService
from family_photos.services.user_service import UserService
from family_photos.utils.auth import get_current_user

router = APIRouter(prefix="/auth", tags=["Authentication"])
settings = get_settings()
logger = logging.getLogger(__name__)


def create_access_token(user_id: UUID, email: str, expires_delta: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(days=settings.access_token_expire_days)
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "exp": expire,
        "iat": now,
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm="HS256")


@router.post("/magic-link", response_model=MagicLinkResponse)
async def request_magic_link(
    request: MagicLinkRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    email_provider: Annotated[EmailProvider, Depends(get_email_provider)],
) -> MagicLinkResponse:
    """Email a one-time sign-in link. Only invited or active emails get one."""
    service = MagicLinkService(db)
    link = await service.issue(request.email, request.next)
    await db.commit()

    dev_mode = settings.is_dev_mode()
    sent = await service.send(email_provider, link)
    if not sent and not dev_mode:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not send the sign-in email. Please try again later.",
        )

    return MagicLinkResponse(
        message="Check your email for the sign-in link",
        login_url=link.login_url if dev_mode else None,
    )


@router.post("/callback", response_model=AuthSessionResponse)
async def auth_callback(
    request: AuthCallbackRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AuthSessionResponse:
    """Exchange a sign-in code for a session and accept any pending invitation."""
    redeemed = await MagicLinkService(db).redeem(request.code)

    user, is_new = await UserService(db).sign_in(redeemed.email)
    member = await FamilyService(db).accept_on_login(redeemed.email, user)
    await db.commit()

    if is_new:
        logger.info("New user signed in: %s", user.email)

    return AuthSessionResponse(
        access_token=create_access_token(user.id, user.email),
        user=SessionUser(id=user.id, email=user.email),
        member_status=member.status if member else None,
        next=redeemed.next_path,
    )


@router.get("/session", response_model=CurrentSessionResponse)
async def get_session(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> CurrentSessionResponse:
    member = await FamilyService(db).get_by_user_id(current_user.id)
    return CurrentSessionResponse(
        user=SessionUser(id=current_user.id, email=current_user.email),
        member_status=member.status if member else None,
        is_active_member=await AccessGate(db).is_active_member(current_user.id),
    )


@router.post("/signup", response_model=SignupResponse)
async def signup(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> SignupResponse:
    member = await FamilyService(db).activate_for_signup(current_user)
    await db.commit()
    return SignupResponse(message="Welcome to the family!", status=MemberStatus(member.status))


@router.get("/invitations/{token}", response_model=InvitationLookupResponse)
async def validate_invitation(
    token: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> InvitationLookupResponse:
    invitation = await FamilyService(db).get_invitation_by_token(token)
    return InvitationLookupResponse(email=invitation.email, invited_at=invitation.invited_at)
