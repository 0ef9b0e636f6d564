"""HMAC-signed, time-limited URLs for objects in private storage buckets."""
import hashlib
import hmac
import time
from urllib.parse import quote, urlencode

from family_photos.config import get_settings

STORAGE_URL_PREFIX = "/api/storage"


def _signature(bucket: str, path: str, expires: int, secret_key: str) -> str:
    message = f"{bucket}/{path}:{expires}".encode()
    return hmac.new(secret_key.encode(), message, hashlib.sha256).hexdigest()


def sign_url(
    bucket: str,
    path: str,
    expires_in: int | None = None,
    now: float | None = None,
) -> str:
    settings = get_settings()
    if expires_in is None:
        expires_in = settings.signed_url_expires_seconds
    expires = int((now if now is not None else time.time()) + expires_in)
    signature = _signature(bucket, path, expires, settings.secret_key)
    query = urlencode({"expires": expires, "signature": signature})
    return f"{STORAGE_URL_PREFIX}/{bucket}/{quote(path)}?{query}"


def sign_image_url(path: str) -> str:
    return sign_url("photos", path)


def verify_signature(
    bucket: str,
    path: str,
    expires: int,
    signature: str,
    now: float | None = None,
) -> bool:
    """True when the signature matches and the URL has not expired."""
    if expires < (now if now is not None else time.time()):
        return False
    expected = _signature(bucket, path, expires, get_settings().secret_key)
    return hmac.compare_digest(expected, signature)
