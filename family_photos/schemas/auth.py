from typing import Optional
from urllib.parse import urlsplit
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from family_photos.models.family import MemberStatus


class TokenPayload(BaseModel):
    sub: str  # User id
    exp: int  # Expiration timestamp
    iat: int | None = None
    email: str | None = None


class MagicLinkRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    next: str = Field(default="/", max_length=500)

    @field_validator("next")
    @classmethod
    def next_must_be_relative(cls, value: str) -> str:
        # Only same-origin paths; browsers treat a backslash like a slash
        candidate = value.replace("\\", "/")
        parts = urlsplit(candidate)
        if parts.scheme or parts.netloc or not candidate.startswith("/"):
            return "/"
        if candidate.startswith("//"):
            return "/"
        return value


class MagicLinkResponse(BaseModel):
    message: str
    # Only populated in dev mode so the flow works without an email provider
    login_url: Optional[str] = None


class AuthCallbackRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=200)


class SessionUser(BaseModel):
    id: UUID
    email: str


class AuthSessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: SessionUser
    member_status: Optional[MemberStatus] = None
    next: str = "/"


class CurrentSessionResponse(BaseModel):
    user: SessionUser
    member_status: Optional[MemberStatus] = None
    is_active_member: bool


class SignupResponse(BaseModel):
    message: str
    status: MemberStatus
