import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.config import get_settings
from family_photos.exceptions import AccessDeniedError, UnauthorizedError
from family_photos.models.user import LoginCode
from family_photos.services.email_service import EmailProvider, build_magic_link_email
from family_photos.services.family_service import FamilyService, validate_email_address

logger = logging.getLogger(__name__)


def hash_code(code: str) -> str:
    return hashlib.sha256(code.encode()).hexdigest()


@dataclass
class IssuedLink:
    email: str
    code: str
    login_url: str


@dataclass
class RedeemedCode:
    email: str
    next_path: str


class MagicLinkService:
    """One-time, short-lived login codes delivered by email.

    Only invited or active emails may request a link. The raw code is only ever
    held in memory and in the emailed URL; the database keeps its hash.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def issue(self, email: str, next_path: str = "/") -> IssuedLink:
        settings = get_settings()
        normalized = validate_email_address(email)

        if not await FamilyService(self.db).is_email_invited(normalized):
            raise AccessDeniedError(
                "This email address has not been invited to join the family. "
                "Please ask an existing family member to invite you.",
                code="NOT_INVITED",
            )

        code = secrets.token_urlsafe(32)
        self.db.add(
            LoginCode(
                email=normalized,
                code_hash=hash_code(code),
                next_path=next_path,
                expires_at=datetime.now(timezone.utc)
                + timedelta(minutes=settings.login_code_expire_minutes),
            )
        )
        await self.db.flush()

        query = urlencode({"code": code, "next": next_path})
        login_url = f"{settings.app_url.rstrip('/')}/auth/callback?{query}"
        return IssuedLink(email=normalized, code=code, login_url=login_url)

    async def send(self, provider: EmailProvider, link: IssuedLink) -> bool:
        settings = get_settings()
        message = build_magic_link_email(
            link.email, link.login_url, settings.login_code_expire_minutes
        )
        result = await provider.send(message)
        if not result.get("success"):
            logger.error("Error sending magic link to %s: %s", link.email, result.get("error"))
            return False
        return True

    async def redeem(self, code: str) -> RedeemedCode:
        """Consume a code. Unknown, used, or expired codes raise UnauthorizedError."""
        result = await self.db.execute(
            select(LoginCode).where(LoginCode.code_hash == hash_code(code)).with_for_update()
        )
        login_code = result.scalar_one_or_none()

        if login_code is None or login_code.consumed_at is not None:
            raise UnauthorizedError("Invalid or already used sign-in link")
        if login_code.expires_at <= datetime.now(timezone.utc):
            raise UnauthorizedError("This sign-in link has expired. Please request a new one.")

        login_code.consumed_at = datetime.now(timezone.utc)
        await self.db.flush()
        return RedeemedCode(email=login_code.email, next_path=login_code.next_path)
