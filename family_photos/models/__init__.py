"""Database models."""

from family_photos.models.album import Album, AlbumPhoto, AlbumView
from family_photos.models.family import FamilyMember, MemberStatus
from family_photos.models.photo import Comment, Photo, Reaction
from family_photos.models.profile import Profile
from family_photos.models.user import LoginCode, User

__all__ = [
    "Album",
    "AlbumPhoto",
    "AlbumView",
    "Comment",
    "FamilyMember",
    "LoginCode",
    "MemberStatus",
    "Photo",
    "Profile",
    "Reaction",
    "User",
]
