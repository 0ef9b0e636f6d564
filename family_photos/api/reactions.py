from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.database import get_db
from family_photos.models.user import User
from family_photos.schemas.family import MessageResponse
from family_photos.schemas.reaction import (
    EmojiListResponse,
    PhotoReactionsRequest,
    ReactionRequest,
    ReactionResponse,
    ReactionSummary,
    ReactionUser,
    ReactResponse,
)
from family_photos.services.reaction_service import (
    COMMON_EMOJIS,
    EmojiSummary,
    ReactionResult,
    ReactionService,
)
from family_photos.utils.auth import get_current_member

router = APIRouter(tags=["Reactions"])


def _to_summary(summary: EmojiSummary) -> ReactionSummary:
    return ReactionSummary(
        emoji=summary.emoji,
        count=summary.count,
        users=[ReactionUser(user_id=u.user_id, user_email=u.user_email) for u in summary.users or []],
    )


def _to_react_response(result: ReactionResult) -> ReactResponse:
    return ReactResponse(
        outcome=result.outcome,
        reaction=ReactionResponse.model_validate(result.reaction) if result.reaction else None,
    )


@router.get("/reactions/emojis", response_model=EmojiListResponse)
async def list_common_emojis() -> EmojiListResponse:
    return EmojiListResponse(emojis=COMMON_EMOJIS)


@router.post("/reactions/summary", response_model=dict[UUID, list[ReactionSummary]])
async def summarize_reactions(
    request: PhotoReactionsRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> dict[UUID, list[ReactionSummary]]:
    summaries = await ReactionService(db).summarize(current_user, request.photo_ids)
    return {
        photo_id: [_to_summary(s) for s in summaries.get(photo_id, [])]
        for photo_id in request.photo_ids
    }


@router.get("/photos/{photo_id}/reactions", response_model=list[ReactionSummary])
async def get_photo_reactions(
    photo_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> list[ReactionSummary]:
    summaries = await ReactionService(db).summary_for_photo(current_user, photo_id)
    return [_to_summary(s) for s in summaries]


@router.get("/photos/{photo_id}/reactions/me", response_model=Optional[ReactionResponse])
async def get_my_reaction(
    photo_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> Optional[ReactionResponse]:
    reaction = await ReactionService(db).get_user_reaction(current_user, photo_id)
    return ReactionResponse.model_validate(reaction) if reaction else None


@router.post("/photos/{photo_id}/reactions", response_model=ReactResponse)
async def react_to_photo(
    photo_id: UUID,
    request: ReactionRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> ReactResponse:
    """Toggle: same emoji removes, another emoji replaces, none adds."""
    result = await ReactionService(db).react(current_user, photo_id, request.emoji)
    await db.commit()
    return _to_react_response(result)


@router.post("/photos/{photo_id}/heart", response_model=ReactResponse)
async def heart_photo(
    photo_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> ReactResponse:
    result = await ReactionService(db).heart(current_user, photo_id)
    await db.commit()
    return _to_react_response(result)


@router.delete("/photos/{photo_id}/reactions", response_model=MessageResponse)
async def remove_reaction(
    photo_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_member)],
) -> MessageResponse:
    removed = await ReactionService(db).remove(current_user, photo_id)
    await db.commit()
    return MessageResponse(message="Reaction removed" if removed else "No reaction to remove")
