# =============================================================================
# core/services/notification_service.py - In-App Notifications
# =============================================================================
# Rows are written when someone follows a user, likes a post or comments on
# it. Nobody is notified about their own actions.
#
# Notifications are a side effect: if the insert fails the follow, like or
# comment that triggered it still stands, and the failure is only logged.
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import page_range, to_iso, utcnow
from core.models.notification import NotificationType
from app.exceptions import BusinessRuleError

logger = logging.getLogger(__name__)

NOTIFICATIONS_TABLE = "notifications"
USERS_TABLE = "users"

MESSAGES = {
    NotificationType.NEW_FOLLOWER: "{username} started following you",
    NotificationType.POST_LIKE: "{username} liked your post",
    NotificationType.POST_COMMENT: "{username} commented on your post",
}


class NotificationService:
    """
    Service for writing and reading notifications.

    Example:
        NotificationService.notify(
            recipient_id=7, source_user_id=3,
            kind=NotificationType.POST_LIKE, related_post_id=42,
        )
    """

    @staticmethod
    def notify(
        recipient_id: int,
        source_user_id: int,
        kind: NotificationType,
        related_post_id: int | None = None,
        related_comment_id: int | None = None,
    ) -> dict[str, Any] | None:
        """
        Record a notification for recipient_id.

        Returns:
            The stored row, or None when skipped (self-action) or on failure
        """
        if recipient_id == source_user_id:
            return None

        source = SupabaseClient.fetch_by_id(USERS_TABLE, source_user_id) or {}
        content = MESSAGES[kind].format(username=source.get("username", "Someone"))

        try:
            row = SupabaseClient.insert_row(NOTIFICATIONS_TABLE, {
                "user_id": recipient_id,
                "type": kind.value,
                "content": content,
                "source_user_id": source_user_id,
                "related_post_id": related_post_id,
                "related_comment_id": related_comment_id,
                "is_read": False,
                "created_at": to_iso(utcnow()),
            })
        except SupabaseClientError as e:
            logger.warning(f"Could not notify user {recipient_id} of {kind.value}: {e}")
            return None

        logger.debug(f"Notified user {recipient_id}: {content}")
        return row

    @staticmethod
    def list_notifications(
        user_id: int,
        page: int = 1,
        limit: int = 20,
        unread_only: bool = False,
    ) -> tuple[list[dict[str, Any]], int]:
        """Newest first, with the acting user attached as source_user."""
        client = SupabaseClient.get_client()
        start, end = page_range(page, limit)

        query = client.table(NOTIFICATIONS_TABLE).select("*", count="exact").eq("user_id", user_id)
        if unread_only:
            query = query.eq("is_read", False)
        response = query.order("created_at", desc=True).order("id", desc=True).range(start, end).execute()
        rows = response.data or []

        source_ids = sorted({row["source_user_id"] for row in rows if row.get("source_user_id")})
        sources: dict[int, dict[str, Any]] = {}
        if source_ids:
            users = client.table(USERS_TABLE).select("*").in_("id", source_ids).execute().data or []
            sources = {user["id"]: user for user in users}
        for row in rows:
            row["source_user"] = sources.get(row.get("source_user_id"))

        return rows, response.count or 0

    @staticmethod
    def unread_count(user_id: int) -> int:
        return SupabaseClient.count(NOTIFICATIONS_TABLE, user_id=user_id, is_read=False)

    @staticmethod
    def mark_read(user_id: int, notification_ids: list[int] | None = None, mark_all: bool = False) -> int:
        """
        Mark some or all of a user's notifications as read.

        Ids that belong to other users are ignored.

        Returns:
            The user's remaining unread count

        Raises:
            BusinessRuleError: If neither ids nor mark_all were given
        """
        if not mark_all and not notification_ids:
            raise BusinessRuleError(
                "Pass notification_ids or all=true",
                code="NOTHING_TO_MARK",
            )

        client = SupabaseClient.get_client()
        query = (
            client.table(NOTIFICATIONS_TABLE)
            .update({"is_read": True})
            .eq("user_id", user_id)
            .eq("is_read", False)
        )
        if not mark_all:
            query = query.in_("id", list(notification_ids))
        updated = query.execute().data or []

        logger.debug(f"Marked {len(updated)} notifications read for user {user_id}")
        return NotificationService.unread_count(user_id)
