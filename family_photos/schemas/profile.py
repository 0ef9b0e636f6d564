from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from family_photos.utils.signed_urls import sign_url


def get_display_name(full_name: Optional[str], email: Optional[str]) -> str:
    return full_name or email or "Unknown User"


def avatar_link(avatar_url: Optional[str]) -> Optional[str]:
    """Stored avatars are object keys in the avatars bucket; external URLs pass through."""
    if not avatar_url:
        return None
    if avatar_url.startswith(("http://", "https://", "/")):
        return avatar_url
    return sign_url("avatars", avatar_url)


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("avatar_url")
    @classmethod
    def sign_avatar(cls, value: Optional[str]) -> Optional[str]:
        return avatar_link(value)

    @computed_field
    @property
    def display_name(self) -> str:
        return get_display_name(self.full_name, self.email)


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=100)
