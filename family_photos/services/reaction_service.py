"""Photo reactions.

Each member holds at most one reaction per photo. ``react`` is a toggle:

    none        --react(e)-->  has(e)     (added)
    has(e)      --react(e)-->  none       (removed)
    has(e1)     --react(e2)--> has(e2)    (replaced)

The read-then-write is not wrapped in a cross-request transaction; two
concurrent toggles from the same member resolve last-writer-wins.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.exceptions import ConflictError, InvalidInputError
from family_photos.models.photo import Reaction
from family_photos.models.user import User
from family_photos.services.access_gate import AccessGate, active_member_clause
from family_photos.services.photo_service import PhotoService
from family_photos.services.profile_service import ProfileService

logger = logging.getLogger(__name__)

HEART = "❤️"
COMMON_EMOJIS = [
    HEART,
    "\U0001f602",  # 😂
    "\U0001f62e",  # 😮
    "\U0001f622",  # 😢
    "\U0001f621",  # 😡
    "\U0001f44d",  # 👍
    "\U0001f44e",  # 👎
]
MAX_EMOJI_LENGTH = 16


class ReactionOutcome(enum.StrEnum):
    added = "added"
    replaced = "replaced"
    removed = "removed"


@dataclass
class ReactionResult:
    outcome: ReactionOutcome
    reaction: Optional[Reaction] = None


@dataclass
class SummaryUser:
    user_id: UUID
    user_email: str


@dataclass
class EmojiSummary:
    emoji: str
    count: int = 0
    users: list[SummaryUser] | None = None


class ReactionService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.gate = AccessGate(db)

    async def get_user_reaction(self, actor: User, photo_id: UUID) -> Optional[Reaction]:
        result = await self.db.execute(
            select(Reaction).where(
                Reaction.photo_id == photo_id,
                Reaction.user_id == actor.id,
                active_member_clause(actor.id),
            )
        )
        return result.scalar_one_or_none()

    async def react(self, actor: User, photo_id: UUID, emoji: str) -> ReactionResult:
        emoji = emoji.strip()
        if not emoji or len(emoji) > MAX_EMOJI_LENGTH:
            raise InvalidInputError("Invalid emoji")

        await self.gate.require(actor)
        await PhotoService(self.db).get_or_404(actor, photo_id)

        existing = await self.get_user_reaction(actor, photo_id)
        if existing is not None and existing.emoji == emoji:
            await self.db.delete(existing)
            await self.db.flush()
            return ReactionResult(outcome=ReactionOutcome.removed)

        if existing is not None:
            existing.emoji = emoji
            existing.updated_at = datetime.now(timezone.utc)
            await self.db.flush()
            await self.db.refresh(existing)
            return ReactionResult(outcome=ReactionOutcome.replaced, reaction=existing)

        reaction = Reaction(photo_id=photo_id, user_id=actor.id, emoji=emoji)
        self.db.add(reaction)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Reaction changed concurrently, please retry") from None
        await self.db.refresh(reaction)
        return ReactionResult(outcome=ReactionOutcome.added, reaction=reaction)

    async def heart(self, actor: User, photo_id: UUID) -> ReactionResult:
        """The double-tap action."""
        return await self.react(actor, photo_id, HEART)

    async def remove(self, actor: User, photo_id: UUID) -> bool:
        await self.gate.require(actor)
        result = await self.db.execute(
            delete(Reaction).where(Reaction.photo_id == photo_id, Reaction.user_id == actor.id)
        )
        await self.db.flush()
        return result.rowcount > 0

    async def summarize(
        self, actor: User, photo_ids: list[UUID]
    ) -> dict[UUID, list[EmojiSummary]]:
        """Reactions grouped per photo, then per emoji, most used emoji first."""
        if not photo_ids:
            return {}

        result = await self.db.execute(
            select(Reaction)
            .where(Reaction.photo_id.in_(photo_ids), active_member_clause(actor.id))
            .order_by(Reaction.created_at.asc(), Reaction.id)
        )
        reactions = list(result.scalars().all())
        profiles = await ProfileService(self.db).get_map({r.user_id for r in reactions})

        grouped: dict[UUID, dict[str, EmojiSummary]] = {}
        for reaction in reactions:
            by_emoji = grouped.setdefault(reaction.photo_id, {})
            summary = by_emoji.setdefault(
                reaction.emoji, EmojiSummary(emoji=reaction.emoji, users=[])
            )
            profile = profiles.get(reaction.user_id)
            summary.count += 1
            summary.users.append(
                SummaryUser(
                    user_id=reaction.user_id,
                    user_email=(profile.email if profile and profile.email else "Family member"),
                )
            )

        return {
            photo_id: sorted(by_emoji.values(), key=lambda s: s.count, reverse=True)
            for photo_id, by_emoji in grouped.items()
        }

    async def summary_for_photo(self, actor: User, photo_id: UUID) -> list[EmojiSummary]:
        await PhotoService(self.db).get_or_404(actor, photo_id)
        summaries = await self.summarize(actor, [photo_id])
        return summaries.get(photo_id, [])
