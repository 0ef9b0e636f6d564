from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.database import get_db
from family_photos.models.user import User
from family_photos.schemas.profile import ProfileResponse, ProfileUpdate
from family_photos.services.profile_service import ProfileService
from family_photos.services.storage_service import StorageService, get_storage
from family_photos.utils.auth import get_current_member, get_current_user

router = APIRouter(prefix="/profiles", tags=["Profiles"])


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> ProfileResponse:
    profile = await ProfileService(db).get_own(current_user)
    await db.commit()
    return ProfileResponse.model_validate(profile)


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    data: ProfileUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> ProfileResponse:
    profile = await ProfileService(db).update(current_user, data)
    await db.commit()
    return ProfileResponse.model_validate(profile)


@router.post("/me/avatar", response_model=ProfileResponse)
async def upload_avatar(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
    storage: Annotated[StorageService, Depends(get_storage)],
    file: UploadFile = File(...),
) -> ProfileResponse:
    data = await file.read()
    profile = await ProfileService(db).set_avatar(
        current_user, storage, data, file.content_type or ""
    )
    await db.commit()
    return ProfileResponse.model_validate(profile)


@router.delete("/me/avatar", response_model=ProfileResponse)
async def delete_avatar(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    storage: Annotated[StorageService, Depends(get_storage)],
) -> ProfileResponse:
    profile = await ProfileService(db).delete_avatar(current_user, storage)
    await db.commit()
    return ProfileResponse.model_validate(profile)


@router.get("", response_model=list[ProfileResponse])
async def get_profiles(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
    ids: list[UUID] = Query(default=[]),
) -> list[ProfileResponse]:
    profiles = await ProfileService(db).get_many(current_user, ids)
    return [ProfileResponse.model_validate(p) for p in profiles]


@router.get("/{profile_id}", response_model=ProfileResponse)
async def get_profile(
    profile_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> ProfileResponse:
    profile = await ProfileService(db).get(current_user, profile_id)
    return ProfileResponse.model_validate(profile)
