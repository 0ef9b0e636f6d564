import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.database import get_db
from family_photos.models.user import User
from family_photos.schemas.family import MessageResponse
from family_photos.schemas.photo import PhotoListResponse, PhotoResponse, PhotoUpdate
from family_photos.services.photo_service import PhotoService
from family_photos.services.storage_service import StorageService, get_storage
from family_photos.utils.auth import get_current_member

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/photos", tags=["Photos"])


@router.get("", response_model=PhotoListResponse)
async def list_photos(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
    page: int = Query(1, ge=1),
    page_size: int = Query(24, ge=1, le=100),
) -> PhotoListResponse:
    photos, total = await PhotoService(db).get_list(current_user, page=page, page_size=page_size)
    return PhotoListResponse(
        photos=[PhotoResponse.model_validate(p) for p in photos],
        total=total,
        page=page,
        page_size=page_size,
        has_more=page * page_size < total,
    )


@router.post("", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
async def upload_photo(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
    storage: Annotated[StorageService, Depends(get_storage)],
    file: UploadFile = File(...),
    caption: str | None = Form(None, max_length=2000),
) -> PhotoResponse:
    data = await file.read()
    photo_service = PhotoService(db)
    photo = await photo_service.upload(
        current_user,
        storage,
        data,
        file.content_type or "",
        file.filename,
        caption,
    )
    try:
        await db.commit()
    except Exception:
        storage.delete("photos", photo.storage_path)
        raise
    return PhotoResponse.model_validate(photo)


@router.get("/{photo_id}", response_model=PhotoResponse)
async def get_photo(
    photo_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> PhotoResponse:
    photo = await PhotoService(db).get_or_404(current_user, photo_id)
    return PhotoResponse.model_validate(photo)


@router.patch("/{photo_id}", response_model=PhotoResponse)
async def update_photo(
    photo_id: UUID,
    data: PhotoUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> PhotoResponse:
    photo = await PhotoService(db).update(current_user, photo_id, data)
    await db.commit()
    return PhotoResponse.model_validate(photo)


@router.delete("/{photo_id}", response_model=MessageResponse)
async def delete_photo(
    photo_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
    storage: Annotated[StorageService, Depends(get_storage)],
) -> MessageResponse:
    await PhotoService(db).delete(current_user, photo_id, storage)
    await db.commit()
    return MessageResponse(message="Photo deleted successfully")
