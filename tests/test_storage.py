from urllib.parse import urlparse

import pytest
from httpx import AsyncClient
from PIL import Image

from family_photos.exceptions import InvalidInputError
from family_photos.models import Photo
from family_photos.services.storage_service import StorageService
from family_photos.utils.signed_urls import sign_url


class TestStorageService:
    """Tests for the filesystem-backed object store."""

    def test_store_photo_keeps_original_bytes(self, storage: StorageService, png_bytes: bytes):
        stored = storage.store_photo("owner", png_bytes, "image/png")
        assert stored.path.startswith("owner/")
        assert stored.path.endswith(".png")
        assert (stored.width, stored.height) == (64, 48)
        assert storage.resolve("photos", stored.path).read_bytes() == png_bytes

    def test_rejects_unsupported_type(self, storage: StorageService, png_bytes: bytes):
        with pytest.raises(InvalidInputError):
            storage.store_photo("owner", png_bytes, "image/tiff")

    def test_avatar_is_bounded_jpeg(self, storage: StorageService, image_factory):
        image_bytes = image_factory("PNG", size=(1200, 800), mode="RGBA")
        stored = storage.store_avatar("owner", image_bytes, "image/png")
        assert stored.path == "owner/avatar.jpg"
        assert stored.content_type == "image/jpeg"
        with Image.open(storage.resolve("avatars", stored.path)) as image:
            assert image.format == "JPEG"
            assert max(image.size) == 500

    def test_path_traversal_rejected(self, storage: StorageService):
        with pytest.raises(InvalidInputError):
            storage.resolve("photos", "../avatars/x.jpg")
        with pytest.raises(InvalidInputError):
            storage.resolve("secrets", "x.jpg")

    def test_delete_missing_object(self, storage: StorageService):
        assert storage.delete("photos", "nobody/none.jpg") is False


class TestStorageEndpoint:
    """Tests for serving objects through signed links."""

    @pytest.mark.asyncio
    async def test_signed_download(self, client: AsyncClient, test_photo: Photo):
        response = await client.get(sign_url("photos", test_photo.storage_path))
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.content.startswith(b"\xff\xd8")

    @pytest.mark.asyncio
    async def test_bad_signature(self, client: AsyncClient, test_photo: Photo):
        url = urlparse(sign_url("photos", test_photo.storage_path))
        response = await client.get(url.path, params={"expires": 9999999999, "signature": "0" * 64})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_expired_link(self, client: AsyncClient, test_photo: Photo):
        response = await client.get(sign_url("photos", test_photo.storage_path, expires_in=-10))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_object(self, client: AsyncClient):
        response = await client.get(sign_url("photos", "nobody/missing.jpg"))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_bucket(self, client: AsyncClient):
        response = await client.get(sign_url("secrets", "x.jpg"))
        assert response.status_code == 404
