from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.exceptions import (
    AccessDeniedError,
    AlreadyActiveError,
    AlreadyInvitedError,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from family_photos.models import FamilyMember, MemberStatus, Profile, User
from family_photos.services.family_service import FamilyService, validate_email_address


class TestEmailValidation:
    """Tests for invitation email normalization."""

    def test_normalizes_case_and_whitespace(self):
        assert validate_email_address("  Alice@Example.COM ") == "alice@example.com"

    @pytest.mark.parametrize("email", ["", "not-an-email", "a@", "@example.com", "a b@example.com"])
    def test_rejects_malformed(self, email):
        with pytest.raises(InvalidInputError):
            validate_email_address(email)


class TestInviteService:
    """Tests for FamilyService.invite."""

    @pytest.mark.asyncio
    async def test_invite_creates_invited_row(self, db_session: AsyncSession, test_user: User):
        invitation = await FamilyService(db_session).invite(test_user, "New@Example.com", "Newbie")
        await db_session.commit()

        assert invitation.email == "new@example.com"
        assert invitation.status == MemberStatus.invited
        assert invitation.invited_by == test_user.id
        assert invitation.user_id is None
        assert invitation.invited_name == "Newbie"
        assert invitation.invitation_token

    @pytest.mark.asyncio
    async def test_invite_twice_while_invited_conflicts(
        self, db_session: AsyncSession, test_user: User
    ):
        service = FamilyService(db_session)
        await service.invite(test_user, "twice@example.com")
        await db_session.commit()

        with pytest.raises(AlreadyInvitedError):
            await service.invite(test_user, "TWICE@example.com")

    @pytest.mark.asyncio
    async def test_invite_active_member_conflicts(
        self, db_session: AsyncSession, test_user: User, other_member: User
    ):
        with pytest.raises(AlreadyActiveError):
            await FamilyService(db_session).invite(test_user, other_member.email)

    @pytest.mark.asyncio
    async def test_inactive_row_is_reissued(self, db_session: AsyncSession, test_user: User):
        old = FamilyMember(
            email="former@example.com",
            status=MemberStatus.inactive,
            invitation_token="old-token",
        )
        db_session.add(old)
        await db_session.commit()

        invitation = await FamilyService(db_session).invite(test_user, "former@example.com")
        await db_session.commit()

        assert invitation.id == old.id
        assert invitation.status == MemberStatus.invited
        assert invitation.invitation_token != "old-token"
        count = await db_session.execute(
            select(func.count()).select_from(FamilyMember).where(
                FamilyMember.email == "former@example.com"
            )
        )
        assert count.scalar() == 1

    @pytest.mark.asyncio
    async def test_non_member_cannot_invite(self, db_session: AsyncSession, outsider: User):
        with pytest.raises(AccessDeniedError):
            await FamilyService(db_session).invite(outsider, "friend@example.com")

    @pytest.mark.asyncio
    async def test_concurrent_invite_loses_on_unique_email(
        self, db_session: AsyncSession, test_user: User, monkeypatch
    ):
        service = FamilyService(db_session)
        await service.invite(test_user, "race@example.com")
        await db_session.commit()

        # The other writer inserted between our lookup and our insert
        async def nothing_found(email: str):
            return None

        monkeypatch.setattr(service, "get_by_email", nothing_found)
        with pytest.raises(ConflictError) as exc_info:
            await service.invite(test_user, "Race@example.com")
        assert exc_info.value.status_code == 409

        count = await db_session.execute(
            select(func.count())
            .select_from(FamilyMember)
            .where(FamilyMember.email == "race@example.com")
        )
        assert count.scalar() == 1


class TestAcceptOnLogin:
    """Tests for invitation acceptance at sign-in."""

    @pytest.mark.asyncio
    async def test_accept_activates_and_creates_profile(
        self, db_session: AsyncSession, test_user: User
    ):
        service = FamilyService(db_session)
        await service.invite(test_user, "joiner@example.com", "Joiner")
        user = User(email="joiner@example.com")
        db_session.add(user)
        await db_session.commit()

        member = await service.accept_on_login("joiner@example.com", user)
        await db_session.commit()

        assert member is not None
        assert member.status == MemberStatus.active
        assert member.user_id == user.id
        assert member.accepted_at is not None
        profile = await db_session.get(Profile, user.id)
        assert profile is not None
        assert profile.full_name == "Joiner"

    @pytest.mark.asyncio
    async def test_accept_is_idempotent_once_active(
        self, db_session: AsyncSession, test_user: User
    ):
        service = FamilyService(db_session)
        await service.invite(test_user, "again@example.com")
        user = User(email="again@example.com")
        db_session.add(user)
        await db_session.commit()

        first = await service.accept_on_login("again@example.com", user)
        await db_session.commit()
        accepted_at = first.accepted_at

        second = await service.accept_on_login("again@example.com", user)
        await db_session.commit()

        assert second.accepted_at == accepted_at
        count = await db_session.execute(
            select(func.count()).select_from(Profile).where(Profile.id == user.id)
        )
        assert count.scalar() == 1

    @pytest.mark.asyncio
    async def test_uninvited_login_is_not_a_member(self, db_session: AsyncSession):
        user = User(email="stranger@example.com")
        db_session.add(user)
        await db_session.commit()

        assert await FamilyService(db_session).accept_on_login(user.email, user) is None

    @pytest.mark.asyncio
    async def test_signup_without_invitation_is_denied(
        self, db_session: AsyncSession, outsider: User
    ):
        with pytest.raises(AccessDeniedError, match="No invitation found"):
            await FamilyService(db_session).activate_for_signup(outsider)


class TestCancelOrRemove:
    """Tests for cancelling invitations and removing members."""

    @pytest.mark.asyncio
    async def test_cancel_invitation_message(self, db_session: AsyncSession, test_user: User):
        service = FamilyService(db_session)
        invitation = await service.invite(test_user, "cancel@example.com")
        await db_session.commit()

        removal = await service.cancel_or_remove(test_user, invitation.id)
        assert removal.message == "Invitation cancelled successfully"

    @pytest.mark.asyncio
    async def test_remove_member_message(
        self, db_session: AsyncSession, test_user: User, other_member: User
    ):
        service = FamilyService(db_session)
        member = await service.get_by_user_id(other_member.id)

        removal = await service.cancel_or_remove(test_user, member.id)
        assert removal.message == "Family member removed successfully"
        assert await service.get_by_user_id(other_member.id) is None

    @pytest.mark.asyncio
    async def test_self_removal_is_forbidden(self, db_session: AsyncSession, test_user: User):
        service = FamilyService(db_session)
        own = await service.get_by_user_id(test_user.id)

        with pytest.raises(ForbiddenError):
            await service.cancel_or_remove(test_user, own.id)

    @pytest.mark.asyncio
    async def test_self_removal_forbidden_for_any_status(
        self, db_session: AsyncSession, test_user: User
    ):
        # A second row pointing at the caller, in a non-active state
        stale = FamilyMember(
            email="alias@example.com",
            user_id=test_user.id,
            status=MemberStatus.pending,
            invitation_token="stale-token",
        )
        db_session.add(stale)
        await db_session.commit()

        with pytest.raises(ForbiddenError):
            await FamilyService(db_session).cancel_or_remove(test_user, stale.id)

    @pytest.mark.asyncio
    async def test_remove_missing_member(self, db_session: AsyncSession, test_user: User):
        with pytest.raises(NotFoundError):
            await FamilyService(db_session).cancel_or_remove(test_user, uuid4())


class TestBootstrap:
    """Tests for seeding the first member."""

    @pytest.mark.asyncio
    async def test_bootstrap_without_identity_invites(self, db_session: AsyncSession):
        member = await FamilyService(db_session).bootstrap("first@example.com", "First")
        await db_session.commit()

        assert member.status == MemberStatus.invited
        assert member.user_id is None

    @pytest.mark.asyncio
    async def test_bootstrap_with_identity_activates(self, db_session: AsyncSession):
        user = User(email="owner@example.com")
        db_session.add(user)
        await db_session.commit()

        member = await FamilyService(db_session).bootstrap("owner@example.com")
        await db_session.commit()

        assert member.status == MemberStatus.active
        assert member.user_id == user.id
        assert await db_session.get(Profile, user.id) is not None


class TestFamilyEndpoints:
    """Tests for the /api/family endpoints."""

    @pytest.mark.asyncio
    async def test_list_members_with_stats(
        self, client: AsyncClient, auth_headers: dict, other_member: User
    ):
        await client.post(
            "/api/family/invite", json={"email": "pending@example.com"}, headers=auth_headers
        )

        response = await client.get("/api/family", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["stats"] == {
            "total_members": 3,
            "active_members": 2,
            "pending_invitations": 1,
        }
        # Newest invitation first
        assert data["family_members"][0]["email"] == "pending@example.com"
        names = {m["full_name"] for m in data["family_members"]}
        assert "Other Member" in names

    @pytest.mark.asyncio
    async def test_list_members_signs_avatar_urls(
        self, client: AsyncClient, auth_headers: dict, test_user: User, image_factory
    ):
        uploaded = await client.post(
            "/api/profiles/me/avatar",
            files={"file": ("me.png", image_factory("PNG"), "image/png")},
            headers=auth_headers,
        )
        assert uploaded.status_code == 200

        response = await client.get("/api/family", headers=auth_headers)
        assert response.status_code == 200
        mine = next(
            m for m in response.json()["family_members"] if m["user_id"] == str(test_user.id)
        )
        expected_prefix = f"/api/storage/avatars/{test_user.id}/avatar.jpg?"
        assert mine["avatar_url"].startswith(expected_prefix)
        assert "signature=" in mine["avatar_url"]

    @pytest.mark.asyncio
    async def test_invite_returns_201_and_sends_email(
        self, client: AsyncClient, auth_headers: dict, email_outbox
    ):
        response = await client.post(
            "/api/family/invite",
            json={"email": "Cousin@Example.com", "full_name": "Cousin"},
            headers=auth_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "cousin@example.com"
        assert data["status"] == "invited"
        assert set(data) == {"id", "email", "invitation_token", "invited_at", "status"}

        assert len(email_outbox.sent) == 1
        assert email_outbox.sent[0].to == "cousin@example.com"
        assert data["invitation_token"] in email_outbox.sent[0].html_body

    @pytest.mark.asyncio
    async def test_invite_survives_email_failure(
        self, client: AsyncClient, auth_headers: dict, email_outbox
    ):
        email_outbox.fail = True
        response = await client.post(
            "/api/family/invite", json={"email": "offline@example.com"}, headers=auth_headers
        )
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_invite_invalid_email(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/family/invite", json={"email": "nope"}, headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid email address"

    @pytest.mark.asyncio
    async def test_duplicate_invite_conflict(self, client: AsyncClient, auth_headers: dict):
        payload = {"email": "dup@example.com"}
        first = await client.post("/api/family/invite", json=payload, headers=auth_headers)
        assert first.status_code == 201

        second = await client.post("/api/family/invite", json=payload, headers=auth_headers)
        assert second.status_code == 409
        assert second.json()["detail"] == "This email has already been invited"

    @pytest.mark.asyncio
    async def test_delete_invitation(self, client: AsyncClient, auth_headers: dict):
        created = await client.post(
            "/api/family/invite", json={"email": "gone@example.com"}, headers=auth_headers
        )
        member_id = created.json()["id"]

        response = await client.delete(f"/api/family/{member_id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"message": "Invitation cancelled successfully"}

    @pytest.mark.asyncio
    async def test_non_member_cannot_list(self, client: AsyncClient, outsider_headers: dict):
        response = await client.get("/api/family", headers=outsider_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_anonymous_cannot_list(self, client: AsyncClient):
        response = await client.get("/api/family")
        assert response.status_code == 401


class TestInvitationScenario:
    """End-to-end: invite, first login, duplicate invite, self-removal."""

    @pytest.mark.asyncio
    async def test_full_invitation_flow(
        self, client: AsyncClient, auth_headers: dict, login, db_session
    ):
        response = await client.post(
            "/api/family/invite", json={"email": "a@example.com"}, headers=auth_headers
        )
        assert response.status_code == 201
        assert response.json()["status"] == "invited"

        session = await login("a@example.com")
        assert session["member_status"] == "active"

        member = await FamilyService(db_session).get_by_email("a@example.com")
        assert member.status == MemberStatus.active
        assert str(member.user_id) == session["user"]["id"]
        assert await db_session.get(Profile, member.user_id) is not None

        again = await client.post(
            "/api/family/invite", json={"email": "a@example.com"}, headers=auth_headers
        )
        assert again.status_code == 409

        new_headers = {"Authorization": f"Bearer {session['access_token']}"}
        response = await client.delete(f"/api/family/{member.id}", headers=new_headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "You cannot remove yourself from the family"
