import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from family_photos.exceptions import ConflictError, InvalidInputError, NotFoundError
from family_photos.models.album import Album, AlbumPhoto, AlbumView, generate_share_token
from family_photos.models.photo import Photo
from family_photos.models.profile import Profile
from family_photos.models.user import User
from family_photos.schemas.album import AlbumCreate, AlbumUpdate, PhotoPosition
from family_photos.services.access_gate import AccessGate, active_member_clause
from family_photos.services.profile_service import ProfileService

logger = logging.getLogger(__name__)


@dataclass
class AlbumSummary:
    album: Album
    photo_count: int
    creator: Optional[Profile] = None


@dataclass
class AlbumStats:
    photo_count: int
    view_count: int
    last_viewed: Optional[datetime] = None


@dataclass
class SharedAlbum:
    album: Album
    creator_name: str
    entries: list[AlbumPhoto]


def _unique(ids: list[UUID]) -> list[UUID]:
    return list(dict.fromkeys(ids))


class AlbumService:
    """Albums are shared family-wide: any active member may manage any album."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.gate = AccessGate(db)

    async def get_by_id(self, actor: User, album_id: UUID) -> Optional[Album]:
        result = await self.db.execute(
            select(Album).where(Album.id == album_id, active_member_clause(actor.id))
        )
        return result.scalar_one_or_none()

    async def get_or_404(self, actor: User, album_id: UUID) -> Album:
        album = await self.get_by_id(actor, album_id)
        if album is None:
            raise NotFoundError("Album not found")
        return album

    async def _photo_count(self, album_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(AlbumPhoto.id)).where(AlbumPhoto.album_id == album_id)
        )
        return result.scalar() or 0

    async def summarize(self, album: Album) -> AlbumSummary:
        profiles = await ProfileService(self.db).get_map({album.created_by})
        return AlbumSummary(
            album=album,
            photo_count=await self._photo_count(album.id),
            creator=profiles.get(album.created_by),
        )

    async def get_list(self, actor: User) -> list[AlbumSummary]:
        """Newest first, with photo counts and creator profiles."""
        photo_count = (
            select(func.count(AlbumPhoto.id))
            .where(AlbumPhoto.album_id == Album.id)
            .correlate(Album)
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(Album, photo_count)
            .where(active_member_clause(actor.id))
            .order_by(Album.created_at.desc(), Album.id)
        )
        rows = result.all()
        profiles = await ProfileService(self.db).get_map({album.created_by for album, _ in rows})
        return [
            AlbumSummary(album=album, photo_count=count or 0, creator=profiles.get(album.created_by))
            for album, count in rows
        ]

    async def create(self, actor: User, data: AlbumCreate) -> Album:
        await self.gate.require(actor)
        name = data.name.strip()
        if not name:
            raise InvalidInputError("Album name cannot be empty")

        album = Album(
            name=name,
            description=data.description.strip() if data.description else None,
            created_by=actor.id,
        )
        self.db.add(album)
        await self.db.flush()

        if data.photo_ids:
            await self.add_photos(actor, album.id, data.photo_ids)

        await self.db.refresh(album)
        logger.info("Album %s created by %s", album.id, actor.id)
        return album

    async def update(self, actor: User, album_id: UUID, data: AlbumUpdate) -> Album:
        await self.gate.require(actor)
        album = await self.get_or_404(actor, album_id)

        update_data = data.model_dump(exclude_unset=True)
        if "name" in update_data:
            name = (update_data["name"] or "").strip()
            if not name:
                raise InvalidInputError("Album name cannot be empty")
            update_data["name"] = name
        if "description" in update_data and update_data["description"] is not None:
            update_data["description"] = update_data["description"].strip() or None
        if "is_public" in update_data and update_data["is_public"] is None:
            del update_data["is_public"]

        for field, value in update_data.items():
            setattr(album, field, value)

        await self.db.flush()
        await self.db.refresh(album)
        return album

    async def delete(self, actor: User, album_id: UUID) -> None:
        await self.gate.require(actor)
        album = await self.get_or_404(actor, album_id)
        await self.db.delete(album)
        await self.db.flush()

    async def get_photos(self, actor: User, album_id: UUID) -> list[AlbumPhoto]:
        await self.get_or_404(actor, album_id)
        result = await self.db.execute(
            select(AlbumPhoto)
            .where(AlbumPhoto.album_id == album_id, active_member_clause(actor.id))
            .options(selectinload(AlbumPhoto.photo))
            .order_by(AlbumPhoto.position, AlbumPhoto.added_at)
        )
        return list(result.scalars().all())

    async def add_photos(
        self, actor: User, album_id: UUID, photo_ids: list[UUID]
    ) -> list[AlbumPhoto]:
        """Append photos after the current last position."""
        await self.gate.require(actor)
        await self.get_or_404(actor, album_id)
        photo_ids = _unique(photo_ids)

        found = await self.db.execute(select(Photo.id).where(Photo.id.in_(photo_ids)))
        missing = set(photo_ids) - set(found.scalars().all())
        if missing:
            raise NotFoundError("Photo not found")

        existing = await self.db.execute(
            select(AlbumPhoto.photo_id).where(
                AlbumPhoto.album_id == album_id, AlbumPhoto.photo_id.in_(photo_ids)
            )
        )
        if existing.first() is not None:
            raise ConflictError("Photo is already in this album")

        max_result = await self.db.execute(
            select(func.max(AlbumPhoto.position)).where(AlbumPhoto.album_id == album_id)
        )
        max_position = max_result.scalar()
        next_position = 0 if max_position is None else max_position + 1

        entries = [
            AlbumPhoto(
                album_id=album_id,
                photo_id=photo_id,
                added_by=actor.id,
                position=next_position + offset,
            )
            for offset, photo_id in enumerate(photo_ids)
        ]
        self.db.add_all(entries)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Photo is already in this album") from None
        return entries

    async def remove_photo(self, actor: User, album_id: UUID, photo_id: UUID) -> None:
        await self.gate.require(actor)
        await self.get_or_404(actor, album_id)
        result = await self.db.execute(
            select(AlbumPhoto).where(
                AlbumPhoto.album_id == album_id, AlbumPhoto.photo_id == photo_id
            )
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError("Photo is not in this album")
        await self.db.delete(entry)
        await self.db.flush()

    async def reorder(self, actor: User, album_id: UUID, positions: list[PhotoPosition]) -> None:
        await self.gate.require(actor)
        await self.get_or_404(actor, album_id)

        entry_ids = {p.id for p in positions}
        result = await self.db.execute(
            select(AlbumPhoto.id).where(
                AlbumPhoto.album_id == album_id, AlbumPhoto.id.in_(entry_ids)
            )
        )
        if set(result.scalars().all()) != entry_ids:
            raise InvalidInputError("Every entry must belong to this album")

        for item in positions:
            await self.db.execute(
                update(AlbumPhoto)
                .where(AlbumPhoto.id == item.id, AlbumPhoto.album_id == album_id)
                .values(position=item.position)
            )
        await self.db.flush()

    async def regenerate_share_token(self, actor: User, album_id: UUID) -> Album:
        """Issue a new token. Links built from the old one stop working."""
        await self.gate.require(actor)
        album = await self.get_or_404(actor, album_id)
        album.share_token = generate_share_token()
        await self.db.flush()
        await self.db.refresh(album)
        return album

    async def get_stats(self, actor: User, album_id: UUID) -> AlbumStats:
        await self.get_or_404(actor, album_id)
        views = await self.db.execute(
            select(func.count(AlbumView.id), func.max(AlbumView.viewed_at)).where(
                AlbumView.album_id == album_id
            )
        )
        view_count, last_viewed = views.one()
        return AlbumStats(
            photo_count=await self._photo_count(album_id),
            view_count=view_count or 0,
            last_viewed=last_viewed,
        )

    async def get_shared(
        self,
        share_token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> SharedAlbum:
        """Public lookup by share token. Private and expired albums look missing."""
        now = datetime.now(timezone.utc)
        result = await self.db.execute(
            select(Album).where(
                Album.share_token == share_token,
                Album.is_public.is_(True),
                (Album.expires_at.is_(None)) | (Album.expires_at > now),
            )
        )
        album = result.scalar_one_or_none()
        if album is None:
            raise NotFoundError("Album not found or no longer shared")

        entries_result = await self.db.execute(
            select(AlbumPhoto)
            .where(AlbumPhoto.album_id == album.id)
            .options(selectinload(AlbumPhoto.photo))
            .order_by(AlbumPhoto.position, AlbumPhoto.added_at)
        )
        entries = list(entries_result.scalars().all())

        creator = await self.db.get(Profile, album.created_by)
        await self._log_view(album.id, ip_address, user_agent)

        return SharedAlbum(
            album=album,
            creator_name=ProfileService.display_name(creator),
            entries=entries,
        )

    async def _log_view(
        self, album_id: UUID, ip_address: Optional[str], user_agent: Optional[str]
    ) -> None:
        try:
            async with self.db.begin_nested():
                self.db.add(
                    AlbumView(
                        album_id=album_id,
                        ip_address=(ip_address or None) and ip_address[:45],
                        user_agent=(user_agent or None) and user_agent[:500],
                    )
                )
        except SQLAlchemyError as e:
            logger.warning("Failed to record view for album %s: %s", album_id, e)
