# =============================================================================
# core/services/taxonomy_service.py - Categories, Formats, File Types, Collections
# =============================================================================
# Categories, formats and file types are identical name/slug tables, so one
# service handles all three by table name. Collections group arts.
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import slugify, to_iso, utcnow
from core.models.art import CollectionCreate, CollectionUpdate, TaxonomyCreate, TaxonomyUpdate
from app.exceptions import BusinessRuleError, ConflictError, NotFoundError

logger = logging.getLogger(__name__)

# URL segment -> (table, display name)
TAXONOMIES: dict[str, tuple[str, str]] = {
    "categories": ("categories", "Category"),
    "formats": ("formats", "Format"),
    "file-types": ("file_types", "File type"),
}

COLLECTIONS_TABLE = "collections"
ARTS_TABLE = "arts"


class TaxonomyService:
    """CRUD over the name/slug lookup tables."""

    @staticmethod
    def _resolve(kind: str) -> tuple[str, str]:
        if kind not in TAXONOMIES:
            raise NotFoundError("Taxonomy", kind)
        return TAXONOMIES[kind]

    @staticmethod
    def list_items(kind: str) -> list[dict[str, Any]]:
        table, _ = TaxonomyService._resolve(kind)
        client = SupabaseClient.get_client()
        response = client.table(table).select("*").order("name").execute()
        return response.data or []

    @staticmethod
    def get_by_slug(kind: str, slug: str) -> dict[str, Any]:
        table, label = TaxonomyService._resolve(kind)
        item = SupabaseClient.fetch_one(table, slug=slug)
        if not item:
            raise NotFoundError(label, slug)
        return item

    @staticmethod
    def create(kind: str, data: TaxonomyCreate) -> dict[str, Any]:
        """
        Create an item, deriving the slug from the name when not given.

        Raises:
            ConflictError: If the slug is taken
        """
        table, label = TaxonomyService._resolve(kind)
        slug = data.slug or slugify(data.name)
        if not slug:
            raise BusinessRuleError(f"Could not build a slug from name {data.name!r}", code="INVALID_SLUG")

        try:
            item = SupabaseClient.insert_row(table, {
                "name": data.name.strip(),
                "slug": slug,
                "description": data.description,
                "created_at": to_iso(utcnow()),
            })
        except SupabaseClientError as e:
            if e.code == "UNIQUE_VIOLATION":
                raise ConflictError(f"{label} slug already exists: {slug}", field="slug")
            raise

        logger.info(f"Created {label.lower()} {item['id']} ({slug})")
        return item

    @staticmethod
    def update(kind: str, item_id: int, data: TaxonomyUpdate) -> dict[str, Any]:
        table, label = TaxonomyService._resolve(kind)
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes and "slug" not in changes:
            changes["slug"] = slugify(changes["name"])

        try:
            item = SupabaseClient.update_row(table, item_id, changes)
        except SupabaseClientError as e:
            if e.code == "UNIQUE_VIOLATION":
                raise ConflictError(f"{label} slug already exists", field="slug")
            raise

        if not item:
            raise NotFoundError(label, item_id)
        return item

    @staticmethod
    def delete(kind: str, item_id: int) -> None:
        """
        Delete an item.

        Categories still referenced by arts can't be removed.
        """
        table, label = TaxonomyService._resolve(kind)
        if table == "categories" and SupabaseClient.count(ARTS_TABLE, category_id=item_id):
            raise BusinessRuleError(
                "Category still has arts; move them before deleting it",
                code="CATEGORY_IN_USE",
                details={"category_id": item_id},
            )

        if not SupabaseClient.delete_row(table, item_id):
            raise NotFoundError(label, item_id)
        logger.info(f"Deleted {label.lower()} {item_id}")


class CollectionService:
    """Collections of arts curated by designers."""

    @staticmethod
    def list_collections(designer_id: int | None = None) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        query = client.table(COLLECTIONS_TABLE).select("*")
        if designer_id is not None:
            query = query.eq("designer_id", designer_id)
        response = query.order("created_at", desc=True).execute()
        return response.data or []

    @staticmethod
    def get_collection(collection_id: int, include_hidden: bool = False) -> dict[str, Any]:
        """Get a collection with its arts (visible arts only unless include_hidden)."""
        collection = SupabaseClient.fetch_by_id(COLLECTIONS_TABLE, collection_id)
        if not collection:
            raise NotFoundError("Collection", collection_id)

        client = SupabaseClient.get_client()
        query = client.table(ARTS_TABLE).select("*").eq("collection_id", collection_id)
        if not include_hidden:
            query = query.eq("is_visible", True)
        collection["arts"] = query.order("created_at", desc=True).execute().data or []
        return collection

    @staticmethod
    def create(designer_id: int, data: CollectionCreate) -> dict[str, Any]:
        row = data.model_dump()
        row["designer_id"] = designer_id
        row["created_at"] = to_iso(utcnow())
        collection = SupabaseClient.insert_row(COLLECTIONS_TABLE, row)
        logger.info(f"Created collection {collection['id']} for designer {designer_id}")
        return collection

    @staticmethod
    def update(collection_id: int, data: CollectionUpdate) -> dict[str, Any]:
        collection = SupabaseClient.update_row(COLLECTIONS_TABLE, collection_id, data.model_dump(exclude_unset=True))
        if not collection:
            raise NotFoundError("Collection", collection_id)
        return collection

    @staticmethod
    def delete(collection_id: int) -> None:
        """Delete a collection; its arts are kept and detached."""
        client = SupabaseClient.get_client()
        client.table(ARTS_TABLE).update({"collection_id": None}).eq("collection_id", collection_id).execute()

        if not SupabaseClient.delete_row(COLLECTIONS_TABLE, collection_id):
            raise NotFoundError("Collection", collection_id)
        logger.info(f"Deleted collection {collection_id}")
