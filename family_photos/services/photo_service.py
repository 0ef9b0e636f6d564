import logging
from pathlib import Path
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.exceptions import ForbiddenError, InvalidInputError, NotFoundError
from family_photos.models.photo import Photo
from family_photos.models.user import User
from family_photos.schemas.photo import PhotoUpdate
from family_photos.services.access_gate import AccessGate, active_member_clause
from family_photos.services.storage_service import StorageService

logger = logging.getLogger(__name__)


class PhotoService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.gate = AccessGate(db)

    async def get_by_id(self, actor: User, photo_id: UUID) -> Optional[Photo]:
        result = await self.db.execute(
            select(Photo).where(Photo.id == photo_id, active_member_clause(actor.id))
        )
        return result.scalar_one_or_none()

    async def get_or_404(self, actor: User, photo_id: UUID) -> Photo:
        photo = await self.get_by_id(actor, photo_id)
        if photo is None:
            raise NotFoundError("Photo not found")
        return photo

    async def get_list(
        self, actor: User, page: int = 1, page_size: int = 24
    ) -> tuple[list[Photo], int]:
        """Newest first. A non-member gets an empty page."""
        visible = active_member_clause(actor.id)

        count_result = await self.db.execute(
            select(func.count()).select_from(Photo).where(visible)
        )
        total = count_result.scalar() or 0

        result = await self.db.execute(
            select(Photo)
            .where(visible)
            .order_by(Photo.uploaded_at.desc(), Photo.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def upload(
        self,
        actor: User,
        storage: StorageService,
        data: bytes,
        content_type: str,
        original_filename: Optional[str],
        caption: Optional[str] = None,
    ) -> Photo:
        await self.gate.require(actor)
        if not data:
            raise InvalidInputError("Empty file")

        stored = storage.store_photo(actor.id, data, content_type)
        photo = Photo(
            filename=Path(stored.path).name,
            original_filename=(original_filename or Path(stored.path).name)[:255],
            caption=caption.strip() if caption and caption.strip() else None,
            storage_path=stored.path,
            content_type=stored.content_type,
            size_bytes=stored.size_bytes,
            width=stored.width,
            height=stored.height,
            uploaded_by=actor.id,
        )
        self.db.add(photo)
        try:
            await self.db.flush()
        except Exception:
            # Don't leave an orphaned object behind when the row can't be written
            storage.delete("photos", stored.path)
            raise
        await self.db.refresh(photo)
        logger.info("Photo %s uploaded by %s", photo.id, actor.id)
        return photo

    async def _get_owned(self, actor: User, photo_id: UUID) -> Photo:
        await self.gate.require(actor)
        photo = await self.get_or_404(actor, photo_id)
        if photo.uploaded_by != actor.id:
            raise ForbiddenError("Only the uploader can change this photo")
        return photo

    async def update(self, actor: User, photo_id: UUID, data: PhotoUpdate) -> Photo:
        photo = await self._get_owned(actor, photo_id)
        if "caption" in data.model_fields_set:
            caption = data.caption.strip() if data.caption else None
            photo.caption = caption or None
        await self.db.flush()
        await self.db.refresh(photo)
        return photo

    async def delete(self, actor: User, photo_id: UUID, storage: StorageService) -> None:
        """Delete the row (comments, reactions and album entries cascade) and its object."""
        photo = await self._get_owned(actor, photo_id)
        storage_path = photo.storage_path
        await self.db.delete(photo)
        await self.db.flush()
        if not storage.delete("photos", storage_path):
            logger.warning("Photo object %s was already missing", storage_path)
