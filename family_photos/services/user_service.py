from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.models.user import User
from family_photos.services.family_service import normalize_email


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def sign_in(self, email: str) -> tuple[User, bool]:
        """
        Get or create the identity for a verified email and stamp the login time.
        Returns (user, is_new_user).
        """
        user = await self.get_by_email(email)
        is_new = user is None
        if user is None:
            user = User(email=normalize_email(email))
            self.db.add(user)

        user.last_login_at = datetime.now(timezone.utc)
        await self.db.flush()
        await self.db.refresh(user)
        return user, is_new
