# =============================================================================
# core/services/community_service.py - Community Posts and Gamification
# =============================================================================
# Handles posts, moderation, likes, saves, comments, the points ledger and
# community settings. Every change that moves points triggers a leaderboard
# recalculation for the user who gained or lost them.
# =============================================================================

import logging
from datetime import datetime
from typing import Any

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import page_range, to_iso, utcnow
from core.models.community import (
    CommunitySettings,
    CommunitySettingsUpdate,
    PointsReason,
    PostCreate,
    PostStatus,
)
from core.models.user import AccessLevel, is_moderator
from core.models.notification import NotificationType
from core.services.leaderboard_service import (
    LeaderboardService,
    month_period,
    resolve_period,
)
from core.services.notification_service import NotificationService
from core.services.user_service import UserService
from app.exceptions import BusinessRuleError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

SETTINGS_TABLE = "community_settings"
POSTS_TABLE = "community_posts"
LIKES_TABLE = "community_likes"
SAVES_TABLE = "community_saves"
COMMENTS_TABLE = "community_comments"
POINTS_TABLE = "community_points"

# Interaction kind -> (table, points reason, settings field)
INTERACTIONS: dict[str, tuple[str, PointsReason, str]] = {
    "like": (LIKES_TABLE, PointsReason.LIKE, "points_for_like"),
    "save": (SAVES_TABLE, PointsReason.SAVE, "points_for_save"),
}


class CommunityService:
    """
    Service for the community area.

    Visibility rules:
    - approved posts are public
    - pending/rejected posts are visible to their author and moderators
    """

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    @staticmethod
    def get_settings() -> CommunitySettings:
        """Current settings, or defaults when none were saved yet."""
        client = SupabaseClient.get_client()
        response = client.table(SETTINGS_TABLE).select("*").order("id").limit(1).execute()
        if not response.data:
            return CommunitySettings()
        return CommunitySettings(**response.data[0])

    @staticmethod
    def update_settings(data: CommunitySettingsUpdate) -> CommunitySettings:
        """
        Merge changes into the settings row (creating it on first save).

        Raises:
            BusinessRuleError: If level_thresholds is empty or has no zero level
        """
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        thresholds = changes.get("level_thresholds")
        if thresholds is not None and (not thresholds or min(thresholds.values()) != 0):
            raise BusinessRuleError(
                "Level thresholds must include a level starting at 0 points",
                code="INVALID_LEVEL_THRESHOLDS",
            )

        changes["updated_at"] = to_iso(utcnow())
        client = SupabaseClient.get_client()
        existing = client.table(SETTINGS_TABLE).select("*").order("id").limit(1).execute().data

        if existing:
            row = SupabaseClient.update_row(SETTINGS_TABLE, existing[0]["id"], changes)
        else:
            merged = CommunitySettings().model_dump(mode="json")
            merged.update(changes)
            row = SupabaseClient.insert_row(SETTINGS_TABLE, merged)

        logger.info(f"Community settings updated: {sorted(changes)}")
        return CommunitySettings(**row)

    # -------------------------------------------------------------------------
    # Points Ledger
    # -------------------------------------------------------------------------

    @staticmethod
    def award_points(
        user_id: int,
        points: int,
        reason: PointsReason,
        source_id: int,
        now: datetime | None = None,
    ) -> dict[str, Any] | None:
        """
        Add a points row. Zero or negative awards are skipped.

        Returns:
            The inserted row, or None when skipped
        """
        if points <= 0:
            return None

        now = now or utcnow()
        row = SupabaseClient.insert_row(POINTS_TABLE, {
            "user_id": user_id,
            "points": points,
            "reason": reason.value,
            "source_id": source_id,
            "period": month_period(now),
            "created_at": to_iso(now),
        })
        logger.info(f"User {user_id} earned {points} points ({reason.value} #{source_id})")
        return row

    @staticmethod
    def revoke_points(user_id: int, reason: PointsReason, source_ids: list[int]) -> int:
        """
        Remove the points rows for the given sources.

        Returns:
            Number of rows removed
        """
        if not source_ids:
            return 0

        client = SupabaseClient.get_client()
        response = (
            client.table(POINTS_TABLE)
            .delete()
            .eq("user_id", user_id)
            .eq("reason", reason.value)
            .in_("source_id", source_ids)
            .execute()
        )
        removed = len(response.data or [])
        if removed:
            logger.info(f"Revoked {removed} {reason.value} point rows from user {user_id}")
        return removed

    @staticmethod
    def _refresh_leaderboard(user_id: int, settings: CommunitySettings) -> None:
        LeaderboardService.recalculate_user(user_id, thresholds=settings.level_thresholds)

    # -------------------------------------------------------------------------
    # Posts
    # -------------------------------------------------------------------------

    @staticmethod
    def create_post(user_id: int, role: AccessLevel | str, data: PostCreate) -> dict[str, Any]:
        """
        Publish a post.

        Moderators' posts, and all posts when approval is disabled, are
        approved immediately and earn points_for_post. Others wait as pending.
        """
        settings = CommunityService.get_settings()
        auto_approve = is_moderator(role) or not settings.require_approval
        status = PostStatus.APPROVED if auto_approve else PostStatus.PENDING

        now = to_iso(utcnow())
        post = SupabaseClient.insert_row(POSTS_TABLE, {
            **data.model_dump(),
            "user_id": user_id,
            "status": status.value,
            "is_featured": False,
            "view_count": 0,
            "created_at": now,
            "updated_at": now,
        })
        logger.info(f"User {user_id} created post {post['id']} ({status.value})")

        if status == PostStatus.APPROVED:
            CommunityService.award_points(user_id, settings.points_for_post, PointsReason.POST, post["id"])
            CommunityService._refresh_leaderboard(user_id, settings)

        return post

    @staticmethod
    def _fetch_post(post_id: int) -> dict[str, Any]:
        post = SupabaseClient.fetch_by_id(POSTS_TABLE, post_id)
        if not post:
            raise NotFoundError("Post", post_id)
        return post

    @staticmethod
    def _approved_post(post_id: int) -> dict[str, Any]:
        """Fetch a post that must be public for interactions."""
        post = CommunityService._fetch_post(post_id)
        if post.get("status") != PostStatus.APPROVED.value:
            raise NotFoundError("Post", post_id)
        return post

    @staticmethod
    def get_post(
        post_id: int,
        viewer_id: int | None = None,
        viewer_role: AccessLevel | str | None = None,
    ) -> dict[str, Any]:
        """
        Get one post with counts and author.

        Raises:
            NotFoundError: If missing or not visible to the viewer
        """
        post = CommunityService._fetch_post(post_id)
        if post.get("status") != PostStatus.APPROVED.value:
            is_author = viewer_id is not None and post.get("user_id") == viewer_id
            if not is_author and not (viewer_role is not None and is_moderator(viewer_role)):
                raise NotFoundError("Post", post_id)

        return CommunityService._enrich([post], viewer_id)[0]

    @staticmethod
    def list_posts(
        page: int = 1,
        limit: int = 20,
        user_id: int | None = None,
        status: PostStatus | None = PostStatus.APPROVED,
        search: str | None = None,
        featured_only: bool = False,
        viewer_id: int | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """
        List posts newest first.

        Args:
            status: Status filter (None lists all statuses, for moderators)
            user_id: Only posts by this author
            search: Case-insensitive substring of the title
            featured_only: Only featured posts
            viewer_id: Used to fill is_liked / is_saved

        Returns:
            (posts, total_count)
        """
        client = SupabaseClient.get_client()
        start, end = page_range(page, limit)

        query = client.table(POSTS_TABLE).select("*", count="exact")
        if status is not None:
            query = query.eq("status", status.value)
        if user_id is not None:
            query = query.eq("user_id", user_id)
        if featured_only:
            query = query.eq("is_featured", True)
        if search:
            query = query.ilike("title", f"%{search.strip()}%")

        response = query.order("created_at", desc=True).range(start, end).execute()
        posts = response.data or []
        return CommunityService._enrich(posts, viewer_id), response.count or 0

    @staticmethod
    def _enrich(posts: list[dict[str, Any]], viewer_id: int | None) -> list[dict[str, Any]]:
        """Attach author, like/save/comment counts and the viewer's flags."""
        if not posts:
            return posts

        client = SupabaseClient.get_client()
        post_ids = [post["id"] for post in posts]
        authors = UserService.get_users_by_ids([post["user_id"] for post in posts])

        likes = SupabaseClient.fetch_all(
            lambda: client.table(LIKES_TABLE).select("*").in_("post_id", post_ids).order("id")
        )
        saves = SupabaseClient.fetch_all(
            lambda: client.table(SAVES_TABLE).select("*").in_("post_id", post_ids).order("id")
        )
        comments = SupabaseClient.fetch_all(
            lambda: client.table(COMMENTS_TABLE)
            .select("id, post_id")
            .in_("post_id", post_ids)
            .eq("is_hidden", False)
            .order("id")
        )

        for post in posts:
            pid = post["id"]
            post_likes = [row for row in likes if row["post_id"] == pid]
            post_saves = [row for row in saves if row["post_id"] == pid]
            post["author"] = authors.get(post["user_id"])
            post["likes_count"] = len(post_likes)
            post["saves_count"] = len(post_saves)
            post["comments_count"] = sum(1 for row in comments if row["post_id"] == pid)
            post["is_liked"] = viewer_id is not None and any(row["user_id"] == viewer_id for row in post_likes)
            post["is_saved"] = viewer_id is not None and any(row["user_id"] == viewer_id for row in post_saves)
        return posts

    @staticmethod
    def set_post_status(post_id: int, status: PostStatus) -> dict[str, Any]:
        """
        Moderate a post.

        Approving a post for the first time awards points_for_post to its
        author. Re-approving is a no-op. Rejecting an approved post revokes
        the post points.
        """
        post = CommunityService._fetch_post(post_id)
        previous = PostStatus(post.get("status", PostStatus.PENDING.value))
        if previous == status:
            return post

        if status == PostStatus.PENDING:
            raise BusinessRuleError("Posts can't be moved back to pending", code="INVALID_POST_STATUS")

        updated = SupabaseClient.update_row(POSTS_TABLE, post_id, {
            "status": status.value,
            "updated_at": to_iso(utcnow()),
        }) or post

        settings = CommunityService.get_settings()
        author_id = post["user_id"]
        if status == PostStatus.APPROVED:
            CommunityService.award_points(author_id, settings.points_for_post, PointsReason.POST, post_id)
        else:
            CommunityService.revoke_points(author_id, PointsReason.POST, [post_id])
            CommunityService.revoke_points(author_id, PointsReason.FEATURED, [post_id])
        CommunityService._refresh_leaderboard(author_id, settings)

        logger.info(f"Post {post_id} moved {previous.value} -> {status.value}")
        return updated

    @staticmethod
    def set_featured(post_id: int, featured: bool) -> dict[str, Any]:
        """
        Feature or unfeature an approved post.

        Featuring awards points_for_weekly_featured once per post;
        unfeaturing revokes it.
        """
        post = CommunityService._approved_post(post_id)
        if bool(post.get("is_featured")) == featured:
            return post

        updated = SupabaseClient.update_row(POSTS_TABLE, post_id, {
            "is_featured": featured,
            "updated_at": to_iso(utcnow()),
        }) or post

        settings = CommunityService.get_settings()
        author_id = post["user_id"]
        if featured:
            CommunityService.award_points(
                author_id, settings.points_for_weekly_featured, PointsReason.FEATURED, post_id
            )
        else:
            CommunityService.revoke_points(author_id, PointsReason.FEATURED, [post_id])
        CommunityService._refresh_leaderboard(author_id, settings)

        logger.info(f"Post {post_id} {'featured' if featured else 'unfeatured'}")
        return updated

    @staticmethod
    def delete_post(post_id: int, user_id: int, role: AccessLevel | str) -> dict[str, Any]:
        """
        Delete a post with its likes, saves, comments and the points they earned.

        Returns:
            The deleted post (so callers can clean up its images)

        Raises:
            PermissionDeniedError: If the caller is neither author nor moderator
        """
        post = CommunityService._fetch_post(post_id)
        author_id = post["user_id"]
        if author_id != user_id and not is_moderator(role):
            raise PermissionDeniedError("Only the author or a moderator can delete this post")

        client = SupabaseClient.get_client()
        for table, reason, _ in INTERACTIONS.values():
            rows = client.table(table).delete().eq("post_id", post_id).execute().data or []
            CommunityService.revoke_points(author_id, reason, [row["id"] for row in rows])
        client.table(COMMENTS_TABLE).delete().eq("post_id", post_id).execute()

        CommunityService.revoke_points(author_id, PointsReason.POST, [post_id])
        CommunityService.revoke_points(author_id, PointsReason.FEATURED, [post_id])
        SupabaseClient.delete_row(POSTS_TABLE, post_id)

        CommunityService._refresh_leaderboard(author_id, CommunityService.get_settings())
        logger.info(f"Post {post_id} deleted by user {user_id}")
        return post

    # -------------------------------------------------------------------------
    # Likes and Saves
    # -------------------------------------------------------------------------

    @staticmethod
    def add_interaction(kind: str, post_id: int, user_id: int) -> int:
        """
        Like or save an approved post.

        The post author earns points unless they are the one interacting.

        Returns:
            The post's new like/save count

        Raises:
            NotFoundError: If the post is missing or not approved
            BusinessRuleError: If the user already liked/saved it
        """
        table, reason, points_field = INTERACTIONS[kind]
        post = CommunityService._approved_post(post_id)

        try:
            row = SupabaseClient.insert_row(table, {
                "post_id": post_id,
                "user_id": user_id,
                "created_at": to_iso(utcnow()),
            })
        except SupabaseClientError as e:
            if e.code == "UNIQUE_VIOLATION":
                raise BusinessRuleError(f"Post already {kind}d", code=f"ALREADY_{kind.upper()}D")
            raise

        author_id = post["user_id"]
        if author_id != user_id:
            settings = CommunityService.get_settings()
            CommunityService.award_points(author_id, getattr(settings, points_field), reason, row["id"])
            CommunityService._refresh_leaderboard(author_id, settings)
            if kind == "like":
                NotificationService.notify(
                    author_id, user_id, NotificationType.POST_LIKE, related_post_id=post_id
                )

        return SupabaseClient.count(table, post_id=post_id)

    @staticmethod
    def remove_interaction(kind: str, post_id: int, user_id: int) -> int:
        """
        Undo a like or save and revoke the points it earned.

        Returns:
            The post's new like/save count

        Raises:
            NotFoundError: If the post is missing or not approved
            BusinessRuleError: If the user hadn't liked/saved it
        """
        table, reason, _ = INTERACTIONS[kind]
        post = CommunityService._approved_post(post_id)

        client = SupabaseClient.get_client()
        removed = (
            client.table(table)
            .delete()
            .eq("post_id", post_id)
            .eq("user_id", user_id)
            .execute()
        ).data or []
        if not removed:
            raise BusinessRuleError(f"Post was not {kind}d", code=f"NOT_{kind.upper()}D")

        author_id = post["user_id"]
        if author_id != user_id:
            if CommunityService.revoke_points(author_id, reason, [row["id"] for row in removed]):
                CommunityService._refresh_leaderboard(author_id, CommunityService.get_settings())

        return SupabaseClient.count(table, post_id=post_id)

    @staticmethod
    def list_saved_posts(user_id: int) -> list[dict[str, Any]]:
        """Approved posts the user saved, most recently saved first."""
        client = SupabaseClient.get_client()
        saves = (
            client.table(SAVES_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        ).data or []
        post_ids = [row["post_id"] for row in saves]
        if not post_ids:
            return []

        posts = (
            client.table(POSTS_TABLE)
            .select("*")
            .in_("id", post_ids)
            .eq("status", PostStatus.APPROVED.value)
            .execute()
        ).data or []
        by_id = {post["id"]: post for post in posts}
        ordered = [by_id[pid] for pid in post_ids if pid in by_id]
        return CommunityService._enrich(ordered, user_id)

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------

    @staticmethod
    def add_comment(post_id: int, user_id: int, content: str) -> dict[str, Any]:
        """
        Comment on an approved post.

        Raises:
            NotFoundError: If the post is missing or not approved
            BusinessRuleError: If comments are disabled
        """
        settings = CommunityService.get_settings()
        if not settings.allow_comments:
            raise BusinessRuleError("Comments are disabled", code="COMMENTS_DISABLED")

        post = CommunityService._approved_post(post_id)
        comment = SupabaseClient.insert_row(COMMENTS_TABLE, {
            "post_id": post_id,
            "user_id": user_id,
            "content": content.strip(),
            "is_hidden": False,
            "created_at": to_iso(utcnow()),
        })
        logger.info(f"User {user_id} commented on post {post_id}")
        NotificationService.notify(
            post["user_id"], user_id, NotificationType.POST_COMMENT,
            related_post_id=post_id, related_comment_id=comment["id"],
        )
        return comment

    @staticmethod
    def list_comments(post_id: int, include_hidden: bool = False) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        query = client.table(COMMENTS_TABLE).select("*").eq("post_id", post_id)
        if not include_hidden:
            query = query.eq("is_hidden", False)
        comments = query.order("created_at").execute().data or []

        authors = UserService.get_users_by_ids([c["user_id"] for c in comments])
        for comment in comments:
            comment["author"] = authors.get(comment["user_id"])
        return comments

    @staticmethod
    def list_all_comments(
        page: int = 1,
        limit: int = 50,
        hidden: bool | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """Moderation listing across all posts, newest first."""
        client = SupabaseClient.get_client()
        start, end = page_range(page, limit)
        query = client.table(COMMENTS_TABLE).select("*", count="exact")
        if hidden is not None:
            query = query.eq("is_hidden", hidden)
        response = query.order("created_at", desc=True).range(start, end).execute()

        comments = response.data or []
        authors = UserService.get_users_by_ids([c["user_id"] for c in comments])
        for comment in comments:
            comment["author"] = authors.get(comment["user_id"])
        return comments, response.count or 0

    @staticmethod
    def toggle_comment_hidden(comment_id: int) -> dict[str, Any]:
        comment = SupabaseClient.fetch_by_id(COMMENTS_TABLE, comment_id)
        if not comment:
            raise NotFoundError("Comment", comment_id)

        hidden = not comment.get("is_hidden", False)
        updated = SupabaseClient.update_row(COMMENTS_TABLE, comment_id, {"is_hidden": hidden}) or comment
        logger.info(f"Comment {comment_id} {'hidden' if hidden else 'shown'}")
        return updated

    @staticmethod
    def delete_comment(comment_id: int, user_id: int, role: AccessLevel | str) -> None:
        comment = SupabaseClient.fetch_by_id(COMMENTS_TABLE, comment_id)
        if not comment:
            raise NotFoundError("Comment", comment_id)
        if comment["user_id"] != user_id and not is_moderator(role):
            raise PermissionDeniedError("Only the author or a moderator can delete this comment")

        SupabaseClient.delete_row(COMMENTS_TABLE, comment_id)
        logger.info(f"Comment {comment_id} deleted by user {user_id}")

    # -------------------------------------------------------------------------
    # Ranking
    # -------------------------------------------------------------------------

    @staticmethod
    def get_ranking(
        period: str | None = None,
        limit: int = 50,
        viewer_role: AccessLevel | str | None = None,
    ) -> dict[str, Any]:
        """
        Ranking for a period with user info and top-3 prizes.

        When show_ranking is off, only moderators get entries.
        """
        settings = CommunityService.get_settings()
        key = resolve_period(period)
        prizes = {
            "1": settings.prize_1st_place,
            "2": settings.prize_2nd_place,
            "3": settings.prize_3rd_place,
        }

        if not settings.show_ranking and not (viewer_role is not None and is_moderator(viewer_role)):
            return {"period": key, "enabled": False, "entries": [], "prizes": prizes}

        rows = LeaderboardService.get_period_rows(key, limit=limit)
        users = UserService.get_users_by_ids([row["user_id"] for row in rows])
        for row in rows:
            row["user"] = users.get(row["user_id"])

        return {"period": key, "enabled": settings.show_ranking, "entries": rows, "prizes": prizes}

    @staticmethod
    def get_user_stats(user_id: int) -> dict[str, Any]:
        return {
            "user_id": user_id,
            "all_time": LeaderboardService.get_user_row(user_id, "all_time"),
            "current_month": LeaderboardService.get_user_row(user_id, resolve_period("month")),
        }

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    @staticmethod
    def get_admin_stats() -> dict[str, int]:
        client = SupabaseClient.get_client()
        by_status = {
            status: SupabaseClient.count(POSTS_TABLE, status=status.value)
            for status in PostStatus
        }

        # Only the author columns are read; totals come from exact counts
        post_authors = SupabaseClient.fetch_all(
            lambda: client.table(POSTS_TABLE).select("id, user_id").order("id")
        )
        comment_authors = SupabaseClient.fetch_all(
            lambda: client.table(COMMENTS_TABLE).select("id, user_id").order("id")
        )
        participants = {row["user_id"] for row in post_authors + comment_authors}

        return {
            "total_posts": SupabaseClient.count(POSTS_TABLE),
            "pending_posts": by_status[PostStatus.PENDING],
            "approved_posts": by_status[PostStatus.APPROVED],
            "rejected_posts": by_status[PostStatus.REJECTED],
            "total_comments": SupabaseClient.count(COMMENTS_TABLE),
            "hidden_comments": SupabaseClient.count(COMMENTS_TABLE, is_hidden=True),
            "participants": len(participants),
        }
