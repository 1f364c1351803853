# =============================================================================
# core/services/art_service.py - Art Catalog Business Logic
# =============================================================================
# Listing, CRUD, views, downloads (with premium gating) and favorites.
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import page_range, to_iso, utcnow
from core.models.art import ArtCreate, ArtSort, ArtUpdate
from core.models.user import AccessLevel, can_access_premium, is_staff
from app.exceptions import NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

ARTS_TABLE = "arts"
VIEWS_TABLE = "views"
DOWNLOADS_TABLE = "downloads"
FAVORITES_TABLE = "favorites"

DEFAULT_RELATED_LIMIT = 4


class ArtService:
    """
    Service for the art catalog.

    Hidden arts (is_visible = False) are only returned to staff.
    """

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @staticmethod
    def list_arts(
        page: int = 1,
        limit: int = 20,
        category_id: int | None = None,
        format: str | None = None,
        file_type: str | None = None,
        search: str | None = None,
        is_premium: bool | None = None,
        is_visible: bool | None = None,
        designer_id: int | None = None,
        sort_by: ArtSort = ArtSort.RECENT,
        viewer_role: AccessLevel | str | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """
        List arts with filters and pagination.

        Args:
            page: 1-based page number
            limit: Page size
            category_id, format, file_type, designer_id: Exact-match filters
            search: Case-insensitive substring of the title
            is_premium: Only premium (True) or only free (False) arts
            is_visible: Visibility filter, honored for staff only
            sort_by: recent or popular
            viewer_role: Caller's access level (None for anonymous)

        Returns:
            (arts, total_count)
        """
        client = SupabaseClient.get_client()
        start, end = page_range(page, limit)

        query = client.table(ARTS_TABLE).select("*", count="exact")

        if category_id is not None:
            query = query.eq("category_id", category_id)
        if format:
            query = query.eq("format", format)
        if file_type:
            query = query.eq("file_type", file_type)
        if designer_id is not None:
            query = query.eq("designer_id", designer_id)
        if is_premium is not None:
            query = query.eq("is_premium", is_premium)
        if search:
            query = query.ilike("title", f"%{search.strip()}%")

        # Non-staff never see hidden arts, whatever they ask for
        if viewer_role is not None and is_staff(viewer_role):
            if is_visible is not None:
                query = query.eq("is_visible", is_visible)
        else:
            query = query.eq("is_visible", True)

        if sort_by == ArtSort.POPULAR:
            query = query.order("download_count", desc=True).order("view_count", desc=True)
        else:
            query = query.order("created_at", desc=True)

        response = query.range(start, end).execute()
        return response.data or [], response.count or 0

    @staticmethod
    def get_art(art_id: int, viewer_role: AccessLevel | str | None = None) -> dict[str, Any]:
        """
        Get an art by id.

        Raises:
            NotFoundError: If missing, or hidden and the viewer isn't staff
        """
        art = SupabaseClient.fetch_by_id(ARTS_TABLE, art_id)
        if not art:
            raise NotFoundError("Art", art_id)

        if not art.get("is_visible", True) and not (viewer_role is not None and is_staff(viewer_role)):
            raise NotFoundError("Art", art_id)
        return art

    @staticmethod
    def get_related(art_id: int, limit: int = DEFAULT_RELATED_LIMIT) -> list[dict[str, Any]]:
        """Visible arts from the same category, newest first, excluding the art itself."""
        art = ArtService.get_art(art_id)
        if art.get("category_id") is None:
            return []

        client = SupabaseClient.get_client()
        response = (
            client.table(ARTS_TABLE)
            .select("*")
            .eq("category_id", art["category_id"])
            .eq("is_visible", True)
            .neq("id", art_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return response.data or []

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    @staticmethod
    def create_art(designer_id: int, data: ArtCreate) -> dict[str, Any]:
        now = to_iso(utcnow())
        row = data.model_dump()
        row.update({
            "designer_id": designer_id,
            "download_count": 0,
            "view_count": 0,
            "like_count": 0,
            "created_at": now,
            "updated_at": now,
        })
        art = SupabaseClient.insert_row(ARTS_TABLE, row)
        logger.info(f"Created art {art['id']} by designer {designer_id}")
        return art

    @staticmethod
    def _check_owner(art: dict[str, Any], user_id: int, role: AccessLevel | str) -> None:
        if art.get("designer_id") != user_id and not is_staff(role):
            raise PermissionDeniedError("Only the art's designer or staff can change it")

    @staticmethod
    def update_art(art_id: int, data: ArtUpdate, user_id: int, role: AccessLevel | str) -> dict[str, Any]:
        art = ArtService.get_art(art_id, viewer_role=role)
        ArtService._check_owner(art, user_id, role)

        changes = data.model_dump(exclude_unset=True)
        changes["updated_at"] = to_iso(utcnow())
        updated = SupabaseClient.update_row(ARTS_TABLE, art_id, changes)
        logger.info(f"Updated art {art_id}: {sorted(changes)}")
        return updated or art

    @staticmethod
    def delete_art(art_id: int, user_id: int, role: AccessLevel | str) -> dict[str, Any]:
        """
        Delete an art and its views, downloads and favorites.

        Returns:
            The deleted row (so callers can clean up its images)
        """
        art = ArtService.get_art(art_id, viewer_role=role)
        ArtService._check_owner(art, user_id, role)

        client = SupabaseClient.get_client()
        for table in (VIEWS_TABLE, DOWNLOADS_TABLE, FAVORITES_TABLE):
            client.table(table).delete().eq("art_id", art_id).execute()
        SupabaseClient.delete_row(ARTS_TABLE, art_id)

        logger.info(f"Deleted art {art_id}")
        return art

    # -------------------------------------------------------------------------
    # Views and Downloads
    # -------------------------------------------------------------------------

    @staticmethod
    def _increment(art: dict[str, Any], column: str) -> int:
        value = (art.get(column) or 0) + 1
        SupabaseClient.update_row(ARTS_TABLE, art["id"], {column: value})
        return value

    @staticmethod
    def record_view(art_id: int, user_id: int | None = None) -> int:
        """
        Record a view and bump view_count.

        Returns:
            The new view_count
        """
        art = ArtService.get_art(art_id)
        SupabaseClient.insert_row(VIEWS_TABLE, {
            "art_id": art_id,
            "user_id": user_id,
            "created_at": to_iso(utcnow()),
        })
        return ArtService._increment(art, "view_count")

    @staticmethod
    def record_download(art_id: int, user_id: int, role: AccessLevel | str) -> dict[str, Any]:
        """
        Grant a download.

        Premium arts require a premium-level access (premium, designer,
        designer_adm, support or admin).

        Returns:
            Dict with art_id, edit_url and the new download_count

        Raises:
            PermissionDeniedError: If the art is premium and the user isn't
        """
        art = ArtService.get_art(art_id, viewer_role=role)

        if art.get("is_premium") and not can_access_premium(role):
            logger.info(f"Premium download of art {art_id} refused for user {user_id}")
            raise PermissionDeniedError(
                "This art is available to premium subscribers only",
                required=[AccessLevel.PREMIUM.value],
            )

        SupabaseClient.insert_row(DOWNLOADS_TABLE, {
            "art_id": art_id,
            "user_id": user_id,
            "created_at": to_iso(utcnow()),
        })
        count = ArtService._increment(art, "download_count")
        logger.info(f"User {user_id} downloaded art {art_id}")

        return {"art_id": art_id, "edit_url": art.get("edit_url", ""), "download_count": count}

    @staticmethod
    def list_downloads(user_id: int, limit: int = 50) -> list[dict[str, Any]]:
        """The user's most recent downloads, joined with the arts."""
        client = SupabaseClient.get_client()
        rows = (
            client.table(DOWNLOADS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        ).data or []
        return ArtService._arts_for(rows)

    # -------------------------------------------------------------------------
    # Favorites
    # -------------------------------------------------------------------------

    @staticmethod
    def toggle_favorite(art_id: int, user_id: int) -> bool:
        """
        Add or remove a favorite.

        Returns:
            True if the art is now a favorite
        """
        ArtService.get_art(art_id)
        client = SupabaseClient.get_client()

        removed = (
            client.table(FAVORITES_TABLE)
            .delete()
            .eq("art_id", art_id)
            .eq("user_id", user_id)
            .execute()
        )
        if removed.data:
            logger.debug(f"User {user_id} unfavorited art {art_id}")
            return False

        try:
            SupabaseClient.insert_row(FAVORITES_TABLE, {
                "art_id": art_id,
                "user_id": user_id,
                "created_at": to_iso(utcnow()),
            })
        except SupabaseClientError as e:
            # A concurrent request already added it
            if e.code != "UNIQUE_VIOLATION":
                raise
        return True

    @staticmethod
    def list_favorites(user_id: int) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        rows = (
            client.table(FAVORITES_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        ).data or []
        return ArtService._arts_for(rows)

    @staticmethod
    def _arts_for(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Resolve art_id rows to visible arts, keeping row order and dropping duplicates."""
        art_ids = list(dict.fromkeys(row["art_id"] for row in rows))
        if not art_ids:
            return []

        client = SupabaseClient.get_client()
        arts = client.table(ARTS_TABLE).select("*").in_("id", art_ids).execute().data or []
        by_id = {art["id"]: art for art in arts if art.get("is_visible", True)}
        return [by_id[i] for i in art_ids if i in by_id]
