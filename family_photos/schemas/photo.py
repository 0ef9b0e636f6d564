from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from family_photos.schemas.profile import ProfileResponse
from family_photos.utils.signed_urls import sign_image_url


class PhotoUpdate(BaseModel):
    caption: Optional[str] = Field(None, max_length=2000)


class PhotoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    filename: str
    original_filename: str
    caption: Optional[str] = None
    storage_path: str
    content_type: str
    size_bytes: int
    width: Optional[int] = None
    height: Optional[int] = None
    uploaded_by: UUID
    uploaded_at: datetime

    @computed_field
    @property
    def url(self) -> str:
        return sign_image_url(self.storage_path)


class PhotoListResponse(BaseModel):
    photos: list[PhotoResponse]
    total: int
    page: int
    page_size: int
    has_more: bool


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)


class CommentUpdate(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    id: UUID
    photo_id: UUID
    user_id: UUID
    text: str
    created_at: datetime
    updated_at: datetime
    user_email: str
    user_profile: Optional[ProfileResponse] = None
