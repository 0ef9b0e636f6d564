from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from family_photos.schemas.photo import PhotoResponse
from family_photos.schemas.profile import ProfileResponse


class AlbumCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    photo_ids: list[UUID] = Field(default_factory=list)


class AlbumUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    is_public: Optional[bool] = None
    expires_at: Optional[datetime] = None


class AlbumResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    created_by: UUID
    share_token: str
    is_public: bool
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    photo_count: int = 0
    creator: Optional[ProfileResponse] = None


class AlbumPhotoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    album_id: UUID
    photo_id: UUID
    added_by: UUID
    position: int
    added_at: datetime
    photo: PhotoResponse


class AddPhotosRequest(BaseModel):
    photo_ids: list[UUID] = Field(..., min_length=1, max_length=500)


class PhotoPosition(BaseModel):
    id: UUID  # AlbumPhoto id
    position: int = Field(..., ge=0)


class ReorderPhotosRequest(BaseModel):
    photos: list[PhotoPosition] = Field(..., min_length=1)


class ShareTokenResponse(BaseModel):
    share_token: str


class AlbumStatsResponse(BaseModel):
    photo_count: int
    view_count: int
    last_viewed: Optional[datetime] = None


class SharedPhoto(BaseModel):
    id: UUID
    caption: Optional[str] = None
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    position: int


class SharedAlbumResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    creator_name: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    photos: list[SharedPhoto] = []
