# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single client connection
# and provides small helpers for the row-level operations every service
# repeats:
# - Fetch a single row by id or by column filters
# - Read every row of a query past PostgREST's max-rows cap
# - Insert a row and return it
# - Update a row by id and return it
# - Delete rows by id
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   art = SupabaseClient.fetch_by_id("arts", 42)
# =============================================================================

from __future__ import annotations

import logging
from typing import Any, Callable

from supabase import create_client, Client

from app.config import settings

# Set up logging for this module
logger = logging.getLogger(__name__)


class SupabaseClientError(Exception):
    """
    Error during Supabase operations.

    Carries a code and a suggestion so callers can tell HOW to fix it,
    not just WHAT failed.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


def is_unique_violation(error: Exception) -> bool:
    """Check whether a PostgREST error is a unique constraint violation (23505)."""
    text = str(error)
    return "23505" in text or "duplicate key" in text


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Example:
        user = SupabaseClient.fetch_one("users", email="ana@example.com")
        art = SupabaseClient.update_row("arts", 42, {"is_visible": False})
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        This is appropriate for server-side operations.

        Returns:
            Client: Supabase client instance

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_by_id(cls, table: str, row_id: int | str) -> dict[str, Any] | None:
        """
        Fetch a single row by primary key.

        Args:
            table: Table name
            row_id: Value of the `id` column

        Returns:
            Row dict, or None if not found

        Raises:
            SupabaseClientError: If the query fails
        """
        return cls.fetch_one(table, id=row_id)

    @classmethod
    def fetch_one(cls, table: str, **filters: Any) -> dict[str, Any] | None:
        """
        Fetch the first row matching all equality filters.

        Args:
            table: Table name
            **filters: column=value pairs combined with AND

        Returns:
            Row dict, or None if nothing matches
        """
        client = cls.get_client()

        try:
            query = client.table(table).select("*")
            for column, value in filters.items():
                query = query.eq(column, value)
            response = query.limit(1).execute()
        except Exception as e:
            logger.error(f"Failed to fetch from {table} where {filters}: {e}")
            raise SupabaseClientError(
                message=f"Failed to fetch from {table}: {e}",
                code="FETCH_FAILED",
                details={"table": table, "filters": {k: str(v) for k, v in filters.items()}}
            )

        return response.data[0] if response.data else None

    @classmethod
    def fetch_all(cls, build_query: Callable[[], Any], page_size: int | None = None) -> list[dict[str, Any]]:
        """
        Read every row of a query, one range at a time.

        PostgREST silently caps each response at max-rows, so reads that
        must see a whole table page through it. The query is rebuilt for
        every page (builders can't be reused) and needs a stable order.

        Args:
            build_query: Returns a fresh select query, e.g.
                lambda: client.table("community_points").select("user_id").order("id")
            page_size: Rows per request (defaults to SUPABASE_MAX_ROWS)

        Returns:
            All matching rows

        Raises:
            SupabaseClientError: If any page fails
        """
        page_size = page_size or settings.SUPABASE_MAX_ROWS
        rows: list[dict[str, Any]] = []
        start = 0

        while True:
            try:
                response = build_query().range(start, start + page_size - 1).execute()
            except Exception as e:
                logger.error(f"Failed to page query at offset {start}: {e}")
                raise SupabaseClientError(
                    message=f"Failed to read rows: {e}",
                    code="FETCH_FAILED",
                    details={"offset": start}
                )

            page = response.data or []
            rows.extend(page)
            if len(page) < page_size:
                return rows
            start += page_size

    @classmethod
    def count(cls, table: str, **filters: Any) -> int:
        """Count rows matching all equality filters."""
        client = cls.get_client()

        try:
            query = client.table(table).select("id", count="exact")
            for column, value in filters.items():
                query = query.eq(column, value)
            response = query.execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to count rows in {table}: {e}",
                code="COUNT_FAILED",
                details={"table": table}
            )

        return response.count or 0

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @classmethod
    def insert_row(cls, table: str, data: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a row and return it as stored.

        Raises:
            SupabaseClientError: If the insert fails or returns nothing.
                Unique violations use code UNIQUE_VIOLATION.
        """
        client = cls.get_client()

        try:
            response = client.table(table).insert(data).execute()
        except Exception as e:
            code = "UNIQUE_VIOLATION" if is_unique_violation(e) else "INSERT_FAILED"
            logger.error(f"Failed to insert into {table}: {e}")
            raise SupabaseClientError(
                message=f"Failed to insert into {table}: {e}",
                code=code,
                details={"table": table}
            )

        if not response.data:
            raise SupabaseClientError(
                message=f"Insert into {table} returned no data",
                code="INSERT_FAILED",
                details={"table": table}
            )

        return response.data[0]

    @classmethod
    def update_row(cls, table: str, row_id: int | str, data: dict[str, Any]) -> dict[str, Any] | None:
        """
        Update a row by id.

        Returns:
            The updated row, or None if no row has that id
        """
        client = cls.get_client()

        try:
            response = client.table(table).update(data).eq("id", row_id).execute()
        except Exception as e:
            logger.error(f"Failed to update {table} {row_id}: {e}")
            raise SupabaseClientError(
                message=f"Failed to update {table}: {e}",
                code="UPDATE_FAILED",
                details={"table": table, "id": str(row_id)}
            )

        return response.data[0] if response.data else None

    @classmethod
    def delete_row(cls, table: str, row_id: int | str) -> bool:
        """
        Delete a row by id.

        Returns:
            True if a row was deleted
        """
        client = cls.get_client()

        try:
            response = client.table(table).delete().eq("id", row_id).execute()
        except Exception as e:
            logger.error(f"Failed to delete {table} {row_id}: {e}")
            raise SupabaseClientError(
                message=f"Failed to delete from {table}: {e}",
                code="DELETE_FAILED",
                details={"table": table, "id": str(row_id)}
            )

        return bool(response.data)
