"""Service layer for business logic."""

from family_photos.services.access_gate import AccessGate, active_member_clause
from family_photos.services.album_service import AlbumService
from family_photos.services.comment_service import CommentService
from family_photos.services.family_service import FamilyService
from family_photos.services.magic_link_service import MagicLinkService
from family_photos.services.photo_service import PhotoService
from family_photos.services.profile_service import ProfileService
from family_photos.services.reaction_service import ReactionService
from family_photos.services.storage_service import StorageService
from family_photos.services.user_service import UserService

__all__ = [
    "AccessGate",
    "active_member_clause",
    "AlbumService",
    "CommentService",
    "FamilyService",
    "MagicLinkService",
    "PhotoService",
    "ProfileService",
    "ReactionService",
    "StorageService",
    "UserService",
]
