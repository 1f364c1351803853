# =============================================================================
# app/routers/taxonomies.py - Categories, Formats, File Types, Collections
# =============================================================================
# The three lookup tables share one router factory:
#
#   /categories, /formats, /file-types
#     GET    ""          list (public)
#     GET    "/{slug}"   get by slug (public)
#     POST   ""          create (admin)
#     PATCH  "/{id}"     update (admin)
#     DELETE "/{id}"     delete (admin)
#
# Collections have their own router below.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status

from app.auth import AuthUser, get_current_user_optional, require_admin, require_roles
from core.models.art import (
    CollectionCreate,
    CollectionResponse,
    CollectionUpdate,
    TaxonomyCreate,
    TaxonomyItem,
    TaxonomyUpdate,
)
from core.models.user import AccessLevel, is_staff
from core.services.taxonomy_service import CollectionService, TaxonomyService
from app.exceptions import PermissionDeniedError


def create_taxonomy_router(kind: str) -> APIRouter:
    """
    Build the CRUD router for one lookup table.

    Args:
        kind: URL segment (categories, formats or file-types)
    """
    taxonomy_router = APIRouter()

    @taxonomy_router.get("", response_model=list[TaxonomyItem])
    async def list_items():
        return [TaxonomyItem(**item) for item in TaxonomyService.list_items(kind)]

    @taxonomy_router.get("/{slug}", response_model=TaxonomyItem)
    async def get_item(slug: Annotated[str, Path(max_length=120)]):
        return TaxonomyItem(**TaxonomyService.get_by_slug(kind, slug))

    @taxonomy_router.post("", response_model=TaxonomyItem, status_code=status.HTTP_201_CREATED)
    async def create_item(request: TaxonomyCreate, user: AuthUser = Depends(require_admin)):
        return TaxonomyItem(**TaxonomyService.create(kind, request))

    @taxonomy_router.patch("/{item_id}", response_model=TaxonomyItem)
    async def update_item(
        item_id: Annotated[int, Path(ge=1)],
        request: TaxonomyUpdate,
        user: AuthUser = Depends(require_admin),
    ):
        return TaxonomyItem(**TaxonomyService.update(kind, item_id, request))

    @taxonomy_router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_item(
        item_id: Annotated[int, Path(ge=1)],
        user: AuthUser = Depends(require_admin),
    ):
        TaxonomyService.delete(kind, item_id)

    return taxonomy_router


categories_router = create_taxonomy_router("categories")
formats_router = create_taxonomy_router("formats")
file_types_router = create_taxonomy_router("file-types")


# =============================================================================
# Collections
# =============================================================================

collections_router = APIRouter()

require_publisher = require_roles(AccessLevel.DESIGNER, AccessLevel.DESIGNER_ADM, AccessLevel.ADMIN)

CollectionId = Annotated[int, Path(ge=1, description="Collection id")]


def _check_collection_owner(collection_id: int, user: AuthUser) -> None:
    collection = CollectionService.get_collection(collection_id, include_hidden=True)
    if collection.get("designer_id") != user.id and not is_staff(user.role):
        raise PermissionDeniedError("Only the collection's designer or staff can change it")


@collections_router.get("", response_model=list[CollectionResponse])
async def list_collections(
    designer_id: Annotated[int | None, Query(ge=1)] = None,
):
    return [CollectionResponse(**c) for c in CollectionService.list_collections(designer_id)]


@collections_router.get("/{collection_id}", response_model=CollectionResponse)
async def get_collection(
    collection_id: CollectionId,
    viewer: AuthUser | None = Depends(get_current_user_optional),
):
    """Collection with its arts. Hidden arts are included for staff only."""
    include_hidden = viewer is not None and is_staff(viewer.role)
    return CollectionResponse(**CollectionService.get_collection(collection_id, include_hidden))


@collections_router.post("", response_model=CollectionResponse, status_code=status.HTTP_201_CREATED)
async def create_collection(
    request: CollectionCreate,
    user: AuthUser = Depends(require_publisher),
):
    return CollectionResponse(**CollectionService.create(user.id, request))


@collections_router.patch("/{collection_id}", response_model=CollectionResponse)
async def update_collection(
    collection_id: CollectionId,
    request: CollectionUpdate,
    user: AuthUser = Depends(require_publisher),
):
    _check_collection_owner(collection_id, user)
    return CollectionResponse(**CollectionService.update(collection_id, request))


@collections_router.delete("/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_collection(
    collection_id: CollectionId,
    user: AuthUser = Depends(require_publisher),
):
    _check_collection_owner(collection_id, user)
    CollectionService.delete(collection_id)
