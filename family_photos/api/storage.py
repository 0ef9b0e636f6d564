import mimetypes
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse

from family_photos.services.storage_service import BUCKETS, StorageService, get_storage
from family_photos.utils.signed_urls import verify_signature

router = APIRouter(prefix="/storage", tags=["Storage"])


@router.get("/{bucket}/{path:path}")
async def get_object(
    bucket: str,
    path: str,
    storage: Annotated[StorageService, Depends(get_storage)],
    expires: Annotated[int, Query()],
    signature: Annotated[str, Query(max_length=128)],
) -> FileResponse:
    """Serve a private object. The signed URL is the only credential."""
    if bucket not in BUCKETS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Bucket not found",
        )

    object_path = storage.resolve(bucket, path)

    if not verify_signature(bucket, path, expires, signature):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired link",
        )

    if not object_path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Object not found",
        )

    media_type, _ = mimetypes.guess_type(object_path.name)
    return FileResponse(
        path=str(object_path),
        media_type=media_type or "application/octet-stream",
        headers={"Cache-Control": "private, max-age=3600"},
    )
