import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.exceptions import NotFoundError
from family_photos.models.profile import Profile
from family_photos.models.user import User
from family_photos.schemas.profile import ProfileUpdate, get_display_name
from family_photos.services.access_gate import AccessGate, active_member_clause
from family_photos.services.storage_service import StorageService

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.gate = AccessGate(db)

    async def get_own(self, user: User) -> Profile:
        """A user's own profile, created on first access. Members or not."""
        profile = await self.db.get(Profile, user.id)
        if profile is None:
            profile = Profile(id=user.id, email=user.email)
            self.db.add(profile)
            await self.db.flush()
            await self.db.refresh(profile)
        return profile

    async def get(self, actor: User, profile_id: UUID) -> Profile:
        result = await self.db.execute(
            select(Profile).where(Profile.id == profile_id, active_member_clause(actor.id))
        )
        profile = result.scalar_one_or_none()
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile

    async def get_many(self, actor: User, profile_ids: list[UUID]) -> list[Profile]:
        if not profile_ids:
            return []
        result = await self.db.execute(
            select(Profile).where(Profile.id.in_(profile_ids), active_member_clause(actor.id))
        )
        return list(result.scalars().all())

    async def get_map(self, user_ids: set[UUID]) -> dict[UUID, Profile]:
        """Profiles keyed by id. Callers must already have passed the access gate."""
        if not user_ids:
            return {}
        result = await self.db.execute(select(Profile).where(Profile.id.in_(user_ids)))
        return {p.id: p for p in result.scalars().all()}

    async def update(self, user: User, data: ProfileUpdate) -> Profile:
        profile = await self.get_own(user)
        for field, value in data.model_dump(exclude_unset=True).items():
            if isinstance(value, str):
                value = value.strip() or None
            setattr(profile, field, value)
        await self.db.flush()
        await self.db.refresh(profile)
        return profile

    async def set_avatar(
        self, user: User, storage: StorageService, data: bytes, content_type: str
    ) -> Profile:
        await self.gate.require(user)
        stored = storage.store_avatar(user.id, data, content_type)

        profile = await self.get_own(user)
        profile.avatar_url = stored.path
        await self.db.flush()
        await self.db.refresh(profile)
        return profile

    async def delete_avatar(self, user: User, storage: StorageService) -> Profile:
        profile = await self.get_own(user)
        if profile.avatar_url and not profile.avatar_url.startswith(("http://", "https://")):
            if not storage.delete("avatars", profile.avatar_url):
                logger.warning("Avatar object %s was already missing", profile.avatar_url)
        profile.avatar_url = None
        await self.db.flush()
        await self.db.refresh(profile)
        return profile

    @staticmethod
    def display_name(profile: Optional[Profile]) -> str:
        if profile is None:
            return get_display_name(None, None)
        return get_display_name(profile.full_name, profile.email)
