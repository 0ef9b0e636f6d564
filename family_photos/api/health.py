import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from family_photos.config import get_settings
from family_photos.database import get_db
from family_photos.services.storage_service import StorageService, get_storage

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage),
) -> dict[str, Any]:
    checks = {
        "database": "unhealthy",
        "storage": "unhealthy",
    }

    # Check database
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except SQLAlchemyError as e:
        logger.warning("Readiness check: database unavailable: %s", e)
        checks["database"] = f"unhealthy: {str(e)}"

    # Check storage root
    if storage.storage_path.is_dir():
        checks["storage"] = "healthy"

    overall = "healthy" if all(v == "healthy" for v in checks.values()) else "unhealthy"

    return {
        "status": overall,
        "email": get_settings().get_email_mode(),
        "checks": checks,
    }
