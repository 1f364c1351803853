# =============================================================================
# core/services/admin_service.py - Admin Dashboard Aggregates
# =============================================================================

import logging
from datetime import datetime, timedelta
from typing import Any

from lib.supabase_client import SupabaseClient
from lib.utils import parse_timestamp, utcnow
from core.models.community import PostStatus
from core.models.subscription import SubscriptionStatus, WebhookStatus
from core.models.user import AccessLevel, normalize_role

logger = logging.getLogger(__name__)

NEW_USER_WINDOW_DAYS = 30


class AdminService:
    """Read-only counters for the admin dashboard."""

    @staticmethod
    def _rows(table: str, columns: str = "*", **filters: Any) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()

        def build():
            query = client.table(table).select(columns)
            for column, value in filters.items():
                query = query.eq(column, value)
            return query.order("id")

        return SupabaseClient.fetch_all(build)

    @staticmethod
    def get_dashboard_stats(now: datetime | None = None) -> dict[str, Any]:
        """
        Platform counters.

        Returns:
            Dict with users, arts, activity, subscriptions, webhooks and community blocks

        Example:
            stats = AdminService.get_dashboard_stats()
            stats["users"]["by_role"]["premium"]  # 42
        """
        now = now or utcnow()
        since = now - timedelta(days=NEW_USER_WINDOW_DAYS)

        users = AdminService._rows("users", "id,role,created_at")
        by_role = {level.value: 0 for level in AccessLevel if level != AccessLevel.VISITOR}
        new_users = 0
        for user in users:
            try:
                role = normalize_role(user.get("role")).value
            except ValueError:
                role = AccessLevel.FREE.value
            by_role[role] = by_role.get(role, 0) + 1

            created = parse_timestamp(user.get("created_at"))
            if created is not None and created >= since:
                new_users += 1

        active = AdminService._rows("subscriptions", "id,source", status=SubscriptionStatus.ACTIVE.value)
        by_source: dict[str, int] = {}
        for row in active:
            by_source[row.get("source", "unknown")] = by_source.get(row.get("source", "unknown"), 0) + 1

        stats = {
            "users": {
                "total": len(users),
                "by_role": by_role,
                "new_last_30_days": new_users,
            },
            "arts": {
                "total": SupabaseClient.count("arts"),
                "premium": SupabaseClient.count("arts", is_premium=True),
            },
            "activity": {
                "downloads": SupabaseClient.count("downloads"),
                "views": SupabaseClient.count("views"),
            },
            "subscriptions": {
                "active": len(active),
                "by_source": by_source,
            },
            "webhooks": {
                "errors": SupabaseClient.count("webhook_logs", status=WebhookStatus.ERROR.value),
            },
            "community": {
                "pending_posts": SupabaseClient.count("community_posts", status=PostStatus.PENDING.value),
            },
        }
        logger.debug(f"Dashboard stats computed: {len(users)} users, {stats['arts']['total']} arts")
        return stats
