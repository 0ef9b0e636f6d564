import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from family_photos.config import get_settings
from family_photos.exceptions import InvalidInputError

logger = logging.getLogger(__name__)
settings = get_settings()

BUCKETS = {"photos", "avatars"}

ALLOWED_MIME_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


@dataclass
class StoredObject:
    path: str
    content_type: str
    size_bytes: int
    width: Optional[int] = None
    height: Optional[int] = None


class StorageService:
    """Private object storage on the local filesystem, one directory per bucket.

    Objects are never served directly; callers hand out signed URLs
    (see ``family_photos.utils.signed_urls``).
    """

    def __init__(self, storage_path: Optional[str] = None):
        self.storage_path = Path(storage_path or settings.storage_path)
        for bucket in BUCKETS:
            (self.storage_path / bucket).mkdir(parents=True, exist_ok=True)

    def _bucket_path(self, bucket: str) -> Path:
        if bucket not in BUCKETS:
            raise InvalidInputError(f"Unknown storage bucket: {bucket}")
        return self.storage_path / bucket

    def _generate_filename(self, extension: str) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        unique_id = uuid.uuid4().hex[:8]
        return f"{timestamp}_{unique_id}{extension}"

    def resolve(self, bucket: str, path: str) -> Path:
        """Absolute path for an object. Raises InvalidInputError on traversal."""
        bucket_path = self._bucket_path(bucket)
        full_path = (bucket_path / path).resolve()
        if not full_path.is_relative_to(bucket_path.resolve()):
            raise InvalidInputError("Invalid path")
        return full_path

    def validate_image(self, data: bytes, content_type: str) -> tuple[int, int]:
        """Check type, size and decodability. Returns (width, height)."""
        if content_type not in ALLOWED_MIME_TYPES:
            raise InvalidInputError(
                "Invalid image file. Supported formats: JPEG, PNG, WebP, GIF"
            )

        if len(data) > settings.max_upload_size_mb * 1024 * 1024:
            raise InvalidInputError(
                f"File too large. Maximum size is {settings.max_upload_size_mb}MB"
            )

        try:
            with Image.open(BytesIO(data)) as image:
                image.verify()
            with Image.open(BytesIO(data)) as image:
                return image.size
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise InvalidInputError("File is not a valid image") from e

    def store_photo(self, owner_id: uuid.UUID, data: bytes, content_type: str) -> StoredObject:
        width, height = self.validate_image(data, content_type)

        filename = self._generate_filename(ALLOWED_MIME_TYPES[content_type])
        relative_path = f"{owner_id}/{filename}"
        full_path = self.resolve("photos", relative_path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(data)

        return StoredObject(
            path=relative_path,
            content_type=content_type,
            size_bytes=len(data),
            width=width,
            height=height,
        )

    def _resize_image(self, image: Image.Image, max_size: tuple[int, int], quality: int) -> bytes:
        # Flatten transparency onto white before JPEG encoding
        if image.mode in ("RGBA", "P", "LA"):
            background = Image.new("RGB", image.size, (255, 255, 255))
            if image.mode == "P":
                image = image.convert("RGBA")
            background.paste(image, mask=image.split()[-1] if image.mode in ("RGBA", "LA") else None)
            image = background
        elif image.mode != "RGB":
            image = image.convert("RGB")

        image.thumbnail(max_size, Image.Resampling.LANCZOS)

        output = BytesIO()
        image.save(output, format="JPEG", quality=quality, optimize=True)
        return output.getvalue()

    def store_avatar(self, user_id: uuid.UUID, data: bytes, content_type: str) -> StoredObject:
        """Store a user's avatar as a bounded JPEG, replacing any previous one."""
        self.validate_image(data, content_type)

        with Image.open(BytesIO(data)) as image:
            size = (settings.avatar_max_size, settings.avatar_max_size)
            jpeg = self._resize_image(image.copy(), size, settings.avatar_quality)

        relative_path = f"{user_id}/avatar.jpg"
        full_path = self.resolve("avatars", relative_path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(jpeg)

        with Image.open(BytesIO(jpeg)) as resized:
            width, height = resized.size
        return StoredObject(
            path=relative_path,
            content_type="image/jpeg",
            size_bytes=len(jpeg),
            width=width,
            height=height,
        )

    def delete(self, bucket: str, path: str) -> bool:
        full_path = self.resolve(bucket, path)
        if not full_path.exists():
            return False
        full_path.unlink()
        return True


def get_storage() -> StorageService:
    return StorageService()
