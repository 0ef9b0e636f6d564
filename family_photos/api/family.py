from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.database import get_db
from family_photos.models.user import User
from family_photos.schemas.family import (
    FamilyListResponse,
    InvitationResponse,
    InviteMemberRequest,
    MessageResponse,
)
from family_photos.services.email_service import EmailProvider, get_email_provider
from family_photos.services.family_service import FamilyService
from family_photos.utils.auth import get_current_member

router = APIRouter(prefix="/family", tags=["Family"])


@router.get("", response_model=FamilyListResponse)
async def list_family_members(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> FamilyListResponse:
    members, stats = await FamilyService(db).list_members(current_user)
    return FamilyListResponse(family_members=members, stats=stats)


@router.post("/invite", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def invite_member(
    request: InviteMemberRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
    email_provider: Annotated[EmailProvider, Depends(get_email_provider)],
) -> InvitationResponse:
    family_service = FamilyService(db)
    invitation = await family_service.invite(current_user, request.email, request.full_name)
    await db.commit()

    # The invitation stands even if the email never arrives
    await family_service.send_invitation_email(email_provider, invitation)

    return InvitationResponse.model_validate(invitation)


@router.delete("/{member_id}", response_model=MessageResponse)
async def remove_family_member(
    member_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> MessageResponse:
    removal = await FamilyService(db).cancel_or_remove(current_user, member_id)
    await db.commit()
    return MessageResponse(message=removal.message)
