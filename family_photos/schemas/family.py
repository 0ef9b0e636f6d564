from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from family_photos.models.family import MemberStatus


class InviteMemberRequest(BaseModel):
    # Format is checked by the invitation service so the rule lives in one place
    email: str = Field(..., min_length=1, max_length=255)
    full_name: Optional[str] = Field(None, max_length=100)


class InvitationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    invitation_token: str
    invited_at: datetime
    status: MemberStatus


class InvitationLookupResponse(BaseModel):
    email: str
    invited_at: datetime


class FamilyMemberResponse(BaseModel):
    id: UUID
    user_id: Optional[UUID] = None
    email: str
    status: MemberStatus
    invited_at: datetime
    accepted_at: Optional[datetime] = None
    invitation_token: str
    invited_by: Optional[UUID] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    invited_by_name: Optional[str] = None


class FamilyStats(BaseModel):
    total_members: int
    active_members: int
    pending_invitations: int


class FamilyListResponse(BaseModel):
    family_members: list[FamilyMemberResponse] = []
    stats: FamilyStats


class MessageResponse(BaseModel):
    message: str
