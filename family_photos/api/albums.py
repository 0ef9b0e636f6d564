from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.database import get_db
from family_photos.models.album import Album
from family_photos.models.user import User
from family_photos.schemas.album import (
    AddPhotosRequest,
    AlbumCreate,
    AlbumPhotoResponse,
    AlbumResponse,
    AlbumStatsResponse,
    AlbumUpdate,
    ReorderPhotosRequest,
    ShareTokenResponse,
    SharedAlbumResponse,
    SharedPhoto,
)
from family_photos.schemas.family import MessageResponse
from family_photos.schemas.profile import ProfileResponse
from family_photos.services.album_service import AlbumService, AlbumSummary
from family_photos.utils.auth import get_current_member
from family_photos.utils.signed_urls import sign_image_url

router = APIRouter(prefix="/albums", tags=["Albums"])
shared_router = APIRouter(prefix="/shared", tags=["Shared albums"])


def _album_response(summary: AlbumSummary) -> AlbumResponse:
    album: Album = summary.album
    return AlbumResponse(
        id=album.id,
        name=album.name,
        description=album.description,
        created_by=album.created_by,
        share_token=album.share_token,
        is_public=album.is_public,
        expires_at=album.expires_at,
        created_at=album.created_at,
        updated_at=album.updated_at,
        photo_count=summary.photo_count,
        creator=ProfileResponse.model_validate(summary.creator) if summary.creator else None,
    )


@router.get("", response_model=list[AlbumResponse])
async def list_albums(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> list[AlbumResponse]:
    summaries = await AlbumService(db).get_list(current_user)
    return [_album_response(s) for s in summaries]


@router.post("", response_model=AlbumResponse, status_code=status.HTTP_201_CREATED)
async def create_album(
    data: AlbumCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> AlbumResponse:
    album_service = AlbumService(db)
    album = await album_service.create(current_user, data)
    await db.commit()
    return _album_response(await album_service.summarize(album))


@router.get("/{album_id}", response_model=AlbumResponse)
async def get_album(
    album_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> AlbumResponse:
    album_service = AlbumService(db)
    album = await album_service.get_or_404(current_user, album_id)
    return _album_response(await album_service.summarize(album))


@router.patch("/{album_id}", response_model=AlbumResponse)
async def update_album(
    album_id: UUID,
    data: AlbumUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> AlbumResponse:
    album_service = AlbumService(db)
    album = await album_service.update(current_user, album_id, data)
    await db.commit()
    return _album_response(await album_service.summarize(album))


@router.delete("/{album_id}", response_model=MessageResponse)
async def delete_album(
    album_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> MessageResponse:
    await AlbumService(db).delete(current_user, album_id)
    await db.commit()
    return MessageResponse(message="Album deleted successfully")


@router.get("/{album_id}/photos", response_model=list[AlbumPhotoResponse])
async def list_album_photos(
    album_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> list[AlbumPhotoResponse]:
    entries = await AlbumService(db).get_photos(current_user, album_id)
    return [AlbumPhotoResponse.model_validate(e) for e in entries]


@router.post(
    "/{album_id}/photos",
    response_model=list[AlbumPhotoResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_album_photos(
    album_id: UUID,
    request: AddPhotosRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> list[AlbumPhotoResponse]:
    album_service = AlbumService(db)
    entries = await album_service.add_photos(current_user, album_id, request.photo_ids)
    await db.commit()
    added = {e.id for e in entries}
    return [
        AlbumPhotoResponse.model_validate(e)
        for e in await album_service.get_photos(current_user, album_id)
        if e.id in added
    ]


@router.delete("/{album_id}/photos/{photo_id}", response_model=MessageResponse)
async def remove_album_photo(
    album_id: UUID,
    photo_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> MessageResponse:
    await AlbumService(db).remove_photo(current_user, album_id, photo_id)
    await db.commit()
    return MessageResponse(message="Photo removed from album")


@router.put("/{album_id}/photos/order", response_model=MessageResponse)
async def reorder_album_photos(
    album_id: UUID,
    request: ReorderPhotosRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> MessageResponse:
    await AlbumService(db).reorder(current_user, album_id, request.photos)
    await db.commit()
    return MessageResponse(message="Album order updated")


@router.post("/{album_id}/share-token", response_model=ShareTokenResponse)
async def regenerate_share_token(
    album_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> ShareTokenResponse:
    album = await AlbumService(db).regenerate_share_token(current_user, album_id)
    await db.commit()
    return ShareTokenResponse(share_token=album.share_token)


@router.get("/{album_id}/stats", response_model=AlbumStatsResponse)
async def get_album_stats(
    album_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> AlbumStatsResponse:
    stats = await AlbumService(db).get_stats(current_user, album_id)
    return AlbumStatsResponse(
        photo_count=stats.photo_count,
        view_count=stats.view_count,
        last_viewed=stats.last_viewed,
    )


@shared_router.get("/{share_token}", response_model=SharedAlbumResponse)
async def get_shared_album(
    share_token: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SharedAlbumResponse:
    """Public album view. No session required; the token is the credential."""
    shared = await AlbumService(db).get_shared(
        share_token,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    await db.commit()

    album = shared.album
    return SharedAlbumResponse(
        id=album.id,
        name=album.name,
        description=album.description,
        creator_name=shared.creator_name,
        created_at=album.created_at,
        expires_at=album.expires_at,
        photos=[
            SharedPhoto(
                id=entry.photo.id,
                caption=entry.photo.caption,
                url=sign_image_url(entry.photo.storage_path),
                width=entry.photo.width,
                height=entry.photo.height,
                position=entry.position,
            )
            for entry in shared.entries
        ],
    )
