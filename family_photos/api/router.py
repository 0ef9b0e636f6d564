from fastapi import APIRouter

from family_photos.api.albums import router as albums_router
from family_photos.api.albums import shared_router
from family_photos.api.auth import router as auth_router
from family_photos.api.comments import router as comments_router
from family_photos.api.family import router as family_router
from family_photos.api.health import router as health_router
from family_photos.api.photos import router as photos_router
from family_photos.api.profiles import router as profiles_router
from family_photos.api.reactions import router as reactions_router
from family_photos.api.storage import router as storage_router

api_router = APIRouter()

# Include sub-routers
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router)
api_router.include_router(family_router)
api_router.include_router(profiles_router)
api_router.include_router(reactions_router)
api_router.include_router(comments_router)
api_router.include_router(photos_router)
api_router.include_router(albums_router)
api_router.include_router(shared_router)
api_router.include_router(storage_router)
