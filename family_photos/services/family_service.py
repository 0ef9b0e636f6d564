import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from family_photos.config import get_settings
from family_photos.exceptions import (
    AccessDeniedError,
    AlreadyActiveError,
    AlreadyInvitedError,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from family_photos.models.family import FamilyMember, MemberStatus
from family_photos.models.profile import Profile
from family_photos.models.user import User
from family_photos.schemas.family import FamilyMemberResponse, FamilyStats
from family_photos.schemas.profile import avatar_link
from family_photos.services.access_gate import AccessGate, active_member_clause
from family_photos.services.email_service import EmailProvider, build_invitation_email

logger = logging.getLogger(__name__)


def generate_invitation_token() -> str:
    return secrets.token_urlsafe(32)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_email_address(email: str) -> str:
    """Normalize and check the format of an email. Raises InvalidInputError."""
    normalized = normalize_email(email)
    try:
        validate_email(normalized, check_deliverability=False)
    except EmailNotValidError:
        raise InvalidInputError("Invalid email address") from None
    return normalized


@dataclass
class RemovalResult:
    member_id: UUID
    previous_status: MemberStatus

    @property
    def message(self) -> str:
        if self.previous_status == MemberStatus.invited:
            return "Invitation cancelled successfully"
        return "Family member removed successfully"


class FamilyService:
    """Membership store and the invitation workflow on top of it."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.gate = AccessGate(db)

    async def get_by_email(self, email: str) -> Optional[FamilyMember]:
        result = await self.db.execute(
            select(FamilyMember).where(FamilyMember.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def get_by_user_id(self, user_id: UUID) -> Optional[FamilyMember]:
        result = await self.db.execute(select(FamilyMember).where(FamilyMember.user_id == user_id))
        return result.scalar_one_or_none()

    async def is_email_invited(self, email: str) -> bool:
        """True when the email may request a magic link (invited or already active)."""
        member = await self.get_by_email(email)
        return member is not None and member.status in (MemberStatus.invited, MemberStatus.active)

    async def get_invitation_by_token(self, token: str) -> FamilyMember:
        result = await self.db.execute(
            select(FamilyMember).where(
                FamilyMember.invitation_token == token,
                FamilyMember.status == MemberStatus.invited,
            )
        )
        member = result.scalar_one_or_none()
        if member is None:
            raise NotFoundError("Invitation not found")
        return member

    async def list_members(self, actor: User) -> tuple[list[FamilyMemberResponse], FamilyStats]:
        """All member rows with profile details, newest invitation first."""
        await self.gate.require(actor)

        inviter = aliased(Profile)
        result = await self.db.execute(
            select(FamilyMember, Profile, inviter.full_name)
            .outerjoin(Profile, Profile.id == FamilyMember.user_id)
            .outerjoin(inviter, inviter.id == FamilyMember.invited_by)
            .where(active_member_clause(actor.id))
            .order_by(FamilyMember.invited_at.desc())
        )

        members = []
        for member, profile, inviter_name in result.all():
            members.append(
                FamilyMemberResponse(
                    id=member.id,
                    user_id=member.user_id,
                    email=member.email,
                    status=member.status,
                    invited_at=member.invited_at,
                    accepted_at=member.accepted_at,
                    invitation_token=member.invitation_token,
                    invited_by=member.invited_by,
                    full_name=profile.full_name if profile else member.invited_name,
                    avatar_url=avatar_link(profile.avatar_url) if profile else None,
                    invited_by_name=inviter_name,
                )
            )

        stats = FamilyStats(
            total_members=len(members),
            active_members=sum(1 for m in members if m.status == MemberStatus.active),
            pending_invitations=sum(1 for m in members if m.status == MemberStatus.invited),
        )
        return members, stats

    async def invite(
        self, actor: User, email: str, full_name: Optional[str] = None
    ) -> FamilyMember:
        """Create an invitation. The caller commits and then sends the email."""
        await self.gate.require(
            actor, "Access denied. You must be an active family member to invite others."
        )
        normalized = validate_email_address(email)
        full_name = full_name.strip() if full_name and full_name.strip() else None

        existing = await self.get_by_email(normalized)
        if existing is not None:
            if existing.status == MemberStatus.invited:
                raise AlreadyInvitedError()
            if existing.status == MemberStatus.active:
                raise AlreadyActiveError()

            # inactive / pending rows are re-issued rather than duplicated
            existing.status = MemberStatus.invited
            existing.user_id = None
            existing.accepted_at = None
            existing.invited_at = datetime.now(timezone.utc)
            existing.invited_by = actor.id
            existing.invited_name = full_name
            existing.invitation_token = generate_invitation_token()
            await self.db.flush()
            await self.db.refresh(existing)
            logger.info("Re-issued invitation for %s by %s", normalized, actor.id)
            return existing

        invitation = FamilyMember(
            email=normalized,
            status=MemberStatus.invited,
            invited_by=actor.id,
            invited_name=full_name,
            invitation_token=generate_invitation_token(),
            invited_at=datetime.now(timezone.utc),
        )
        self.db.add(invitation)
        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race with a concurrent invite for the same email
            await self.db.rollback()
            raise ConflictError("This email has already been invited") from None
        await self.db.refresh(invitation)
        logger.info("Created invitation for %s by %s", normalized, actor.id)
        return invitation

    async def send_invitation_email(
        self, provider: EmailProvider, invitation: FamilyMember
    ) -> bool:
        """Best-effort delivery. Failures are logged and reported, never raised."""
        settings = get_settings()
        message = build_invitation_email(
            to=invitation.email,
            app_url=settings.app_url,
            invitation_token=invitation.invitation_token,
            full_name=invitation.invited_name,
        )
        try:
            result = await provider.send(message)
        except Exception:
            logger.exception("Error with email service while inviting %s", invitation.email)
            return False

        if not result.get("success"):
            logger.error(
                "Error sending invitation email to %s: %s", invitation.email, result.get("error")
            )
            return False

        logger.info("Invitation email sent to %s", invitation.email)
        return True

    async def accept_on_login(self, email: str, user: User) -> Optional[FamilyMember]:
        """Activate a pending invitation for ``email`` on behalf of ``user``.

        Returns the member row when the user is (now) active, None otherwise.
        Repeated logins of an active member change nothing except creating a
        missing profile.
        """
        normalized = normalize_email(email)
        result = await self.db.execute(
            select(FamilyMember).where(FamilyMember.email == normalized).with_for_update()
        )
        member = result.scalar_one_or_none()
        if member is None:
            logger.info("Login by %s with no family membership", normalized)
            return None

        if member.status == MemberStatus.invited:
            member.user_id = user.id
            member.status = MemberStatus.active
            member.accepted_at = datetime.now(timezone.utc)
            await self.db.flush()
            await self._upsert_profile(user, member.invited_name)
            logger.info("Invitation accepted by %s", normalized)
            return member

        if member.status == MemberStatus.active and member.user_id == user.id:
            await self._ensure_profile(user)
            return member

        return None

    async def activate_for_signup(self, user: User) -> FamilyMember:
        member = await self.accept_on_login(user.email, user)
        if member is None:
            raise AccessDeniedError("No invitation found for this email address")
        return member

    async def _ensure_profile(self, user: User) -> Profile:
        profile = await self.db.get(Profile, user.id)
        if profile is None:
            profile = Profile(id=user.id, email=user.email)
            self.db.add(profile)
            await self.db.flush()
        return profile

    async def _upsert_profile(self, user: User, full_name: Optional[str]) -> Profile:
        profile = await self.db.get(Profile, user.id)
        if profile is None:
            profile = Profile(id=user.id, email=user.email, full_name=full_name)
            self.db.add(profile)
        else:
            profile.email = user.email
            if not profile.full_name and full_name:
                profile.full_name = full_name
        await self.db.flush()
        return profile

    async def bootstrap(self, email: str, full_name: Optional[str] = None) -> FamilyMember:
        """Seed a member without an inviting actor. Only for operator scripts.

        Active right away if the email already has an identity, otherwise
        invited (and activated by the normal first-login path).
        """
        normalized = validate_email_address(email)
        existing = await self.get_by_email(normalized)
        if existing is not None and existing.status == MemberStatus.active:
            raise AlreadyActiveError()

        result = await self.db.execute(select(User).where(User.email == normalized))
        user = result.scalar_one_or_none()

        member = existing or FamilyMember(email=normalized)
        member.invited_name = full_name
        member.invitation_token = generate_invitation_token()
        member.invited_at = datetime.now(timezone.utc)
        member.invited_by = None
        if user is not None:
            member.user_id = user.id
            member.status = MemberStatus.active
            member.accepted_at = datetime.now(timezone.utc)
        else:
            member.user_id = None
            member.status = MemberStatus.invited
            member.accepted_at = None

        if existing is None:
            self.db.add(member)
        await self.db.flush()
        if user is not None:
            await self._upsert_profile(user, full_name)
        await self.db.refresh(member)
        return member

    async def cancel_or_remove(self, actor: User, member_id: UUID) -> RemovalResult:
        await self.gate.require(actor)

        result = await self.db.execute(
            select(FamilyMember).where(
                FamilyMember.id == member_id, active_member_clause(actor.id)
            )
        )
        member = result.scalar_one_or_none()
        if member is None:
            raise NotFoundError("Family member not found")

        if member.user_id == actor.id:
            raise ForbiddenError("You cannot remove yourself from the family")

        removal = RemovalResult(member_id=member.id, previous_status=member.status)
        await self.db.delete(member)
        await self.db.flush()
        logger.info("%s: %s (by %s)", removal.message, member.email, actor.id)
        return removal
