from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.database import get_db
from family_photos.models.user import User
from family_photos.schemas.family import MessageResponse
from family_photos.schemas.photo import CommentCreate, CommentResponse, CommentUpdate
from family_photos.services.comment_service import CommentService
from family_photos.utils.auth import get_current_member

router = APIRouter(tags=["Comments"])


@router.get("/photos/{photo_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    photo_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> list[CommentResponse]:
    return await CommentService(db).list_for_photo(current_user, photo_id)


@router.post(
    "/photos/{photo_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    photo_id: UUID,
    data: CommentCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> CommentResponse:
    comment = await CommentService(db).add(current_user, photo_id, data.text)
    await db.commit()
    return comment


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: UUID,
    data: CommentUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> CommentResponse:
    comment = await CommentService(db).update(current_user, comment_id, data.text)
    await db.commit()
    return comment


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> MessageResponse:
    await CommentService(db).delete(current_user, comment_id)
    await db.commit()
    return MessageResponse(message="Comment deleted successfully")
