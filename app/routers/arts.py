# =============================================================================
# app/routers/arts.py - Art Catalog Endpoints
# =============================================================================
# Public browsing plus designer/staff management of arts.
# Downloads are gated: premium arts need a premium-level account.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status

from app.auth import AuthUser, get_current_user, get_current_user_optional, require_roles
from core.models.art import (
    ArtCreate,
    ArtList,
    ArtResponse,
    ArtSort,
    ArtUpdate,
    DownloadResponse,
    FavoriteToggleResponse,
)
from core.models.user import AccessLevel
from core.services.art_service import ArtService
from core.services.storage_service import StorageService

router = APIRouter()

ArtId = Annotated[int, Path(ge=1, description="Art id")]

require_publisher = require_roles(AccessLevel.DESIGNER, AccessLevel.DESIGNER_ADM, AccessLevel.ADMIN)


# =============================================================================
# Browsing
# =============================================================================

@router.get("", response_model=ArtList)
async def list_arts(
    page: Annotated[int, Query(ge=1, description="Page number")] = 1,
    limit: Annotated[int, Query(ge=1, le=100, description="Items per page")] = 20,
    category_id: Annotated[int | None, Query(ge=1)] = None,
    format: str | None = None,
    file_type: str | None = None,
    search: Annotated[str | None, Query(max_length=100, description="Title contains")] = None,
    is_premium: bool | None = None,
    is_visible: Annotated[bool | None, Query(description="Staff only")] = None,
    designer_id: Annotated[int | None, Query(ge=1)] = None,
    sort_by: ArtSort = ArtSort.RECENT,
    viewer: AuthUser | None = Depends(get_current_user_optional),
):
    """
    List arts with filters and pagination.

    Hidden arts are only listed for staff.
    """
    arts, total = ArtService.list_arts(
        page=page,
        limit=limit,
        category_id=category_id,
        format=format,
        file_type=file_type,
        search=search,
        is_premium=is_premium,
        is_visible=is_visible,
        designer_id=designer_id,
        sort_by=sort_by,
        viewer_role=viewer.role if viewer else None,
    )
    return ArtList(
        arts=[ArtResponse(**art) for art in arts],
        total_count=total,
        page=page,
        limit=limit,
    )


@router.get("/me/downloads", response_model=list[ArtResponse])
async def list_my_downloads(
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    user: AuthUser = Depends(get_current_user),
):
    """Arts the caller downloaded, most recent first."""
    return [ArtResponse(**art) for art in ArtService.list_downloads(user.id, limit=limit)]


@router.get("/{art_id}", response_model=ArtResponse)
async def get_art(
    art_id: ArtId,
    viewer: AuthUser | None = Depends(get_current_user_optional),
):
    return ArtResponse(**ArtService.get_art(art_id, viewer_role=viewer.role if viewer else None))


@router.get("/{art_id}/related", response_model=list[ArtResponse])
async def get_related_arts(
    art_id: ArtId,
    limit: Annotated[int, Query(ge=1, le=20)] = 4,
):
    """Visible arts from the same category."""
    return [ArtResponse(**art) for art in ArtService.get_related(art_id, limit=limit)]


@router.post("/{art_id}/view")
async def record_view(
    art_id: ArtId,
    viewer: AuthUser | None = Depends(get_current_user_optional),
):
    view_count = ArtService.record_view(art_id, user_id=viewer.id if viewer else None)
    return {"art_id": art_id, "view_count": view_count}


@router.post("/{art_id}/download", response_model=DownloadResponse)
async def download_art(
    art_id: ArtId,
    user: AuthUser = Depends(get_current_user),
):
    """
    Get the edit link of an art.

    Raises:
        403: Premium art and the caller has no premium access
    """
    return DownloadResponse(**ArtService.record_download(art_id, user.id, user.role))


@router.post("/{art_id}/favorite", response_model=FavoriteToggleResponse)
async def toggle_favorite(
    art_id: ArtId,
    user: AuthUser = Depends(get_current_user),
):
    favorited = ArtService.toggle_favorite(art_id, user.id)
    return FavoriteToggleResponse(art_id=art_id, favorited=favorited)


# =============================================================================
# Management
# =============================================================================

@router.post("", response_model=ArtResponse, status_code=status.HTTP_201_CREATED)
async def create_art(
    request: ArtCreate,
    user: AuthUser = Depends(require_publisher),
):
    """Publish an art (designers and admins)."""
    return ArtResponse(**ArtService.create_art(user.id, request))


@router.patch("/{art_id}", response_model=ArtResponse)
async def update_art(
    art_id: ArtId,
    request: ArtUpdate,
    user: AuthUser = Depends(require_publisher),
):
    return ArtResponse(**ArtService.update_art(art_id, request, user.id, user.role))


@router.delete("/{art_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_art(
    art_id: ArtId,
    user: AuthUser = Depends(get_current_user),
):
    """
    Delete an art and its stored images.

    Allowed for the art's designer and for staff.
    """
    art = ArtService.delete_art(art_id, user.id, user.role)
    if art.get("image_url"):
        StorageService.delete_image(art["image_url"])
