"""The single "is this caller an active family member?" predicate.

The predicate is expressed once, as an SQL ``EXISTS`` clause. Request handlers
evaluate it through ``AccessGate.require`` (via the ``CurrentMember``
dependency), and every service embeds the same clause in its read queries and
calls ``require`` before writing, so a caller that reaches a service without
going through a handler gets the same answer.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import ColumnElement, exists, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from family_photos.exceptions import AccessDeniedError, UnauthorizedError
from family_photos.models.family import FamilyMember, MemberStatus
from family_photos.models.user import User


def active_member_clause(user_id: Optional[UUID]) -> ColumnElement[bool]:
    """SQL boolean true when ``user_id`` belongs to an active member.

    Selects from its own alias of ``family_members`` so it never correlates
    with an enclosing query over the same table.
    """
    gate = aliased(FamilyMember)
    return exists().where(
        gate.user_id == user_id,
        gate.status == MemberStatus.active,
    )


class AccessGate:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def is_active_member(self, user_id: Optional[UUID]) -> bool:
        if user_id is None:
            return False
        result = await self.db.execute(select(active_member_clause(user_id)))
        return bool(result.scalar())

    async def require(self, user: Optional[User], message: Optional[str] = None) -> User:
        """Return ``user`` if active, otherwise raise Unauthorized / AccessDenied."""
        if user is None:
            raise UnauthorizedError()
        if not await self.is_active_member(user.id):
            raise AccessDeniedError(message)
        return user
