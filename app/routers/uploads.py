# =============================================================================
# app/routers/uploads.py - Image Upload Pipeline
# =============================================================================
# Accepts an image, validates it, converts it to WEBP (main + thumbnail) and
# stores it through the storage fallback chain (Supabase -> R2 -> local).
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from app.auth import AuthUser, get_current_user, require_staff
from app.exceptions import BusinessRuleError, PermissionDeniedError
from core.models.user import can_publish, is_staff
from core.services.storage_service import ALLOWED_FOLDERS, ImageUploadResult, StorageService

logger = logging.getLogger(__name__)

router = APIRouter()

# Folders only designers and staff may write to
PUBLISHER_FOLDERS = ("arts", "collections")


@router.post("/images", response_model=ImageUploadResult, status_code=status.HTTP_201_CREATED)
async def upload_image(
    file: Annotated[UploadFile, File(description="JPEG, PNG, WEBP or GIF image")],
    folder: Annotated[str, Form(description="community, arts, avatars or collections")] = "community",
    user: AuthUser = Depends(get_current_user),
):
    """
    Upload an image.

    This endpoint:
    1. Validates content type and size
    2. Produces a WEBP main image (max 1200px wide) and thumbnail (max 400px)
    3. Stores both on the first working backend

    When every backend fails the response carries placeholder URLs and
    storage_type "placeholder".
    """
    if folder not in ALLOWED_FOLDERS:
        raise BusinessRuleError(
            f"Unknown upload folder: {folder}",
            code="INVALID_UPLOAD_FOLDER",
            details={"allowed": list(ALLOWED_FOLDERS)},
        )
    if folder in PUBLISHER_FOLDERS and not (can_publish(user.role) or is_staff(user.role)):
        raise PermissionDeniedError(f"Uploading to {folder} requires a designer account")

    filename = file.filename or "image"
    content = await file.read()
    StorageService.validate_image(filename, file.content_type, len(content))

    logger.info(f"User {user.id} uploading {filename} ({len(content) / (1024 * 1024):.2f}MB) to {folder}")
    return StorageService.upload_image(content, filename=filename, folder=folder)


@router.delete("/images", status_code=status.HTTP_204_NO_CONTENT)
async def delete_image(
    url: Annotated[str, Query(min_length=1, description="URL returned by the upload")],
    user: AuthUser = Depends(require_staff),
):
    """Remove a stored image and its thumbnail (staff only)."""
    StorageService.delete_image(url)
