# =============================================================================
# core/models/art.py - Catalog Schemas
# =============================================================================
# Arts are the downloadable design assets. Each art belongs to a category,
# has a format (e.g. "feed", "stories") and a file type (e.g. "canva",
# "psd"), and may be grouped into a collection.
#
# Categories, formats and file types share the same shape (TaxonomyItem).
# =============================================================================

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ArtSort(str, Enum):
    """
    Ordering for art listings.

    - recent: newest first
    - popular: most downloaded first, then most viewed
    """
    RECENT = "recent"
    POPULAR = "popular"


# =============================================================================
# Taxonomies (categories, formats, file types)
# =============================================================================

class TaxonomyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str | None = Field(
        default=None,
        max_length=120,
        pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$",
        description="Generated from the name when omitted"
    )
    description: str | None = None


class TaxonomyUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    slug: str | None = Field(default=None, max_length=120, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    description: str | None = None


class TaxonomyItem(BaseModel):
    id: int
    name: str
    slug: str
    description: str | None = None
    created_at: datetime | None = None


# =============================================================================
# Collections
# =============================================================================

class CollectionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    image_url: str | None = None
    is_premium: bool = False


class CollectionUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    image_url: str | None = None
    is_premium: bool | None = None


class CollectionResponse(BaseModel):
    id: int
    title: str
    description: str | None = None
    image_url: str | None = None
    is_premium: bool = False
    designer_id: int | None = None
    created_at: datetime | None = None
    arts: list["ArtResponse"] | None = None


# =============================================================================
# Arts
# =============================================================================

class ArtCreate(BaseModel):
    """
    Input for creating an art.

    Example:
        {
            "title": "Post Dia das Mães",
            "image_url": "https://.../arts/abc.webp",
            "format": "feed",
            "file_type": "canva",
            "edit_url": "https://www.canva.com/design/...",
            "category_id": 3,
            "is_premium": true
        }
    """
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    image_url: str = Field(..., min_length=1)
    thumbnail_url: str | None = None
    format: str = Field(..., min_length=1, max_length=50)
    file_type: str = Field(..., min_length=1, max_length=50)
    edit_url: str = Field(..., min_length=1, description="Link the user opens to edit the art")
    is_premium: bool = False
    is_visible: bool = True
    category_id: int | None = None
    collection_id: int | None = None


class ArtUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    image_url: str | None = None
    thumbnail_url: str | None = None
    format: str | None = None
    file_type: str | None = None
    edit_url: str | None = None
    is_premium: bool | None = None
    is_visible: bool | None = None
    category_id: int | None = None
    collection_id: int | None = None


class ArtResponse(BaseModel):
    id: int
    title: str
    description: str | None = None
    image_url: str
    thumbnail_url: str | None = None
    format: str | None = None
    file_type: str | None = None
    is_premium: bool = False
    is_visible: bool = True
    category_id: int | None = None
    collection_id: int | None = None
    designer_id: int | None = None
    download_count: int = 0
    view_count: int = 0
    like_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ArtList(BaseModel):
    """Paginated art listing."""
    arts: list[ArtResponse]
    total_count: int
    page: int
    limit: int


class DownloadResponse(BaseModel):
    """Returned when a download is granted."""
    art_id: int
    edit_url: str
    download_count: int


class FavoriteToggleResponse(BaseModel):
    art_id: int
    favorited: bool


CollectionResponse.model_rebuild()
