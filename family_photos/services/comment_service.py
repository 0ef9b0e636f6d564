from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.exceptions import InvalidInputError, NotFoundError
from family_photos.models.photo import Comment
from family_photos.models.user import User
from family_photos.schemas.photo import CommentResponse
from family_photos.schemas.profile import ProfileResponse
from family_photos.services.access_gate import AccessGate, active_member_clause
from family_photos.services.photo_service import PhotoService
from family_photos.services.profile_service import ProfileService


def _clean_text(text: str) -> str:
    text = text.strip()
    if not text:
        raise InvalidInputError("Comment cannot be empty")
    return text


class CommentService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.gate = AccessGate(db)

    async def list_for_photo(self, actor: User, photo_id: UUID) -> list[CommentResponse]:
        """Oldest first, each with its author's profile (or an email fallback)."""
        await PhotoService(self.db).get_or_404(actor, photo_id)

        result = await self.db.execute(
            select(Comment)
            .where(Comment.photo_id == photo_id, active_member_clause(actor.id))
            .order_by(Comment.created_at.asc(), Comment.id)
        )
        comments = list(result.scalars().all())
        profiles = await ProfileService(self.db).get_map({c.user_id for c in comments})

        responses = []
        for comment in comments:
            profile = profiles.get(comment.user_id)
            if profile is not None:
                user_email = profile.email or "Family member"
            elif comment.user_id == actor.id:
                user_email = actor.email
            else:
                user_email = "Unknown user"
            responses.append(
                self._to_response(
                    comment,
                    user_email,
                    ProfileResponse.model_validate(profile) if profile else None,
                )
            )
        return responses

    def _to_response(
        self, comment: Comment, user_email: str, profile: ProfileResponse | None = None
    ) -> CommentResponse:
        return CommentResponse(
            id=comment.id,
            photo_id=comment.photo_id,
            user_id=comment.user_id,
            text=comment.text,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
            user_email=user_email,
            user_profile=profile,
        )

    async def add(self, actor: User, photo_id: UUID, text: str) -> CommentResponse:
        await self.gate.require(actor)
        await PhotoService(self.db).get_or_404(actor, photo_id)

        comment = Comment(photo_id=photo_id, user_id=actor.id, text=_clean_text(text))
        self.db.add(comment)
        await self.db.flush()
        await self.db.refresh(comment)
        return self._to_response(comment, actor.email)

    async def _get_own(self, actor: User, comment_id: UUID) -> Comment:
        await self.gate.require(actor)
        # Other members' comments are indistinguishable from missing ones
        result = await self.db.execute(
            select(Comment).where(Comment.id == comment_id, Comment.user_id == actor.id)
        )
        comment = result.scalar_one_or_none()
        if comment is None:
            raise NotFoundError("Comment not found")
        return comment

    async def update(self, actor: User, comment_id: UUID, text: str) -> CommentResponse:
        comment = await self._get_own(actor, comment_id)
        comment.text = _clean_text(text)
        comment.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        await self.db.refresh(comment)
        return self._to_response(comment, actor.email)

    async def delete(self, actor: User, comment_id: UUID) -> None:
        comment = await self._get_own(actor, comment_id)
        await self.db.delete(comment)
        await self.db.flush()
