# =============================================================================
# core/services/leaderboard_service.py - Community Points and Ranking
# =============================================================================
# Recalculates a user's leaderboard rows from the points ledger and the
# community tables, then re-ranks every period the user appears in.
#
# Periods:
#   all_time   - everything
#   YYYY       - calendar year
#   YYYY-MM    - calendar month
#   YYYY-Www   - week of the year, Sunday-based, week 01 starts on Jan 1
#
# The week number of a date d is ceil((days since Jan 1 + weekday(Jan 1) + 1) / 7)
# with weekday counted from Sunday = 0, so weeks break on Sundays and the
# first week may be shorter than seven days.
# =============================================================================

import logging
import math
from datetime import datetime
from typing import Any, Iterable

from lib.supabase_client import SupabaseClient
from lib.utils import parse_timestamp, to_iso, utcnow
from core.models.community import DEFAULT_LEVEL_THRESHOLDS, PointsReason, PostStatus

logger = logging.getLogger(__name__)

ALL_TIME = "all_time"

LEADERBOARD_TABLE = "community_leaderboard"
POINTS_TABLE = "community_points"
POSTS_TABLE = "community_posts"
LIKES_TABLE = "community_likes"
SAVES_TABLE = "community_saves"


# =============================================================================
# Period Keys
# =============================================================================

def week_number(moment: datetime) -> int:
    """
    Sunday-based week of the year for a date.

    Example:
        week_number(datetime(2025, 1, 4))  # 1  (Jan 1 2025 is a Wednesday)
        week_number(datetime(2025, 1, 5))  # 2  (first Sunday)
    """
    start_of_year = moment.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    days = (moment.date() - start_of_year.date()).days
    # Python weekday(): Monday=0; shift so Sunday=0
    first_weekday = (start_of_year.weekday() + 1) % 7
    return math.ceil((days + first_weekday + 1) / 7)


def period_keys(moment: datetime) -> list[str]:
    """
    All leaderboard periods a moment belongs to.

    Example:
        period_keys(datetime(2025, 5, 17))
        # ["all_time", "2025", "2025-05", "2025-W20"]
    """
    return [
        ALL_TIME,
        f"{moment.year}",
        f"{moment.year}-{moment.month:02d}",
        f"{moment.year}-W{week_number(moment):02d}",
    ]


def month_period(moment: datetime) -> str:
    """Period stored on points rows (YYYY-MM)."""
    return f"{moment.year}-{moment.month:02d}"


def resolve_period(period: str | None, now: datetime | None = None) -> str:
    """
    Translate ranking aliases into period keys.

    Accepts all_time/year/month/week or an explicit key; defaults to the
    current month.
    """
    now = now or utcnow()
    _, year, month, week = period_keys(now)
    aliases = {
        None: month,
        "": month,
        "all_time": ALL_TIME,
        "year": year,
        "month": month,
        "week": week,
    }
    return aliases.get(period, period)


def in_period(created_at: str | datetime | None, period: str) -> bool:
    """Check whether a timestamp falls inside a period."""
    if period == ALL_TIME:
        return True
    moment = parse_timestamp(created_at)
    if moment is None:
        return False
    return period in period_keys(moment)


# =============================================================================
# Levels and Ranks
# =============================================================================

def level_for_points(total_points: int, thresholds: dict[str, int] | None = None) -> str:
    """
    Name of the highest level whose threshold is met.

    Example:
        level_for_points(600)  # "Colaborador KDG"
    """
    thresholds = thresholds or DEFAULT_LEVEL_THRESHOLDS
    ordered = sorted(thresholds.items(), key=lambda item: item[1])

    level = ordered[0][0]
    for name, minimum in ordered:
        if total_points >= minimum:
            level = name
    return level


def assign_ranks(rows: Iterable[dict[str, Any]]) -> list[tuple[int, int]]:
    """
    Rank leaderboard rows within one period.

    Higher total_points rank first; ties go to the lower user_id.

    Returns:
        List of (row id, rank) with ranks 1..n
    """
    ordered = sorted(rows, key=lambda row: (-(row.get("total_points") or 0), row["user_id"]))
    return [(row["id"], position + 1) for position, row in enumerate(ordered)]


def aggregate_period(
    period: str,
    points: list[dict[str, Any]],
    posts: list[dict[str, Any]],
    likes: list[dict[str, Any]],
    saves: list[dict[str, Any]],
) -> dict[str, int]:
    """
    Sum one user's activity for a single period.

    Args:
        period: Period key
        points: The user's points rows
        posts: The user's approved posts
        likes, saves: Likes and saves received on those posts

    Returns:
        Dict with total_points, post_count, likes_received, saves_received, featured_count
    """
    window = [row for row in points if in_period(row.get("created_at"), period)]
    return {
        "total_points": sum(row.get("points") or 0 for row in window),
        "post_count": sum(1 for row in posts if in_period(row.get("created_at"), period)),
        "likes_received": sum(1 for row in likes if in_period(row.get("created_at"), period)),
        "saves_received": sum(1 for row in saves if in_period(row.get("created_at"), period)),
        "featured_count": sum(1 for row in window if row.get("reason") == PointsReason.FEATURED.value),
    }


# =============================================================================
# Service
# =============================================================================

class LeaderboardService:
    """
    Rebuilds leaderboard rows from source tables.

    Recalculation is idempotent: running it twice yields the same rows.
    """

    @staticmethod
    def _user_activity(user_id: int) -> tuple[list, list, list, list]:
        client = SupabaseClient.get_client()

        points = SupabaseClient.fetch_all(
            lambda: client.table(POINTS_TABLE).select("*").eq("user_id", user_id).order("id")
        )
        posts = SupabaseClient.fetch_all(
            lambda: client.table(POSTS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .eq("status", PostStatus.APPROVED.value)
            .order("id")
        )

        post_ids = [post["id"] for post in posts]
        likes: list[dict[str, Any]] = []
        saves: list[dict[str, Any]] = []
        if post_ids:
            # Interactions by the author on their own posts don't count
            likes = [
                row for row in SupabaseClient.fetch_all(
                    lambda: client.table(LIKES_TABLE).select("*").in_("post_id", post_ids).order("id")
                )
                if row.get("user_id") != user_id
            ]
            saves = [
                row for row in SupabaseClient.fetch_all(
                    lambda: client.table(SAVES_TABLE).select("*").in_("post_id", post_ids).order("id")
                )
                if row.get("user_id") != user_id
            ]
        return points, posts, likes, saves

    @staticmethod
    def recalculate_user(
        user_id: int,
        thresholds: dict[str, int] | None = None,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """
        Recompute and store a user's rows for the current periods, then re-rank.

        Args:
            user_id: User to recalculate
            thresholds: Level thresholds (community settings)
            now: Reference time for current period keys

        Returns:
            The upserted leaderboard rows (with ranks)
        """
        now = now or utcnow()
        points, posts, likes, saves = LeaderboardService._user_activity(user_id)
        client = SupabaseClient.get_client()

        periods = period_keys(now)
        rows = []
        for period in periods:
            totals = aggregate_period(period, points, posts, likes, saves)
            rows.append({
                "user_id": user_id,
                "period": period,
                **totals,
                "level": level_for_points(totals["total_points"], thresholds),
                "last_updated": to_iso(now),
            })

        client.table(LEADERBOARD_TABLE).upsert(rows, on_conflict="user_id,period").execute()

        for period in periods:
            LeaderboardService.update_ranks(period)

        logger.info(
            f"Recalculated leaderboard for user {user_id}: "
            f"{rows[0]['total_points']} points all time, level {rows[0]['level']}"
        )

        stored = (
            client.table(LEADERBOARD_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .in_("period", periods)
            .execute()
        ).data or []
        order = {period: i for i, period in enumerate(periods)}
        return sorted(stored, key=lambda row: order.get(row["period"], len(order)))

    @staticmethod
    def update_ranks(period: str) -> int:
        """
        Re-rank all rows of a period.

        Returns:
            Number of rows whose rank changed
        """
        client = SupabaseClient.get_client()
        rows = SupabaseClient.fetch_all(
            lambda: client.table(LEADERBOARD_TABLE).select("*").eq("period", period).order("id")
        )
        current = {row["id"]: row.get("rank") for row in rows}

        changed = 0
        for row_id, rank in assign_ranks(rows):
            if current.get(row_id) != rank:
                client.table(LEADERBOARD_TABLE).update({"rank": rank}).eq("id", row_id).execute()
                changed += 1

        if changed:
            logger.debug(f"Updated {changed} ranks for period {period}")
        return changed

    @staticmethod
    def recalculate_all(thresholds: dict[str, int] | None = None) -> int:
        """
        Recalculate every user with points or approved posts.

        Returns:
            Number of users recalculated
        """
        client = SupabaseClient.get_client()
        point_users = SupabaseClient.fetch_all(
            lambda: client.table(POINTS_TABLE).select("id, user_id").order("id")
        )
        post_users = SupabaseClient.fetch_all(
            lambda: client.table(POSTS_TABLE)
            .select("id, user_id")
            .eq("status", PostStatus.APPROVED.value)
            .order("id")
        )

        user_ids = sorted({row["user_id"] for row in point_users + post_users})
        for user_id in user_ids:
            LeaderboardService.recalculate_user(user_id, thresholds=thresholds)

        logger.info(f"Recalculated leaderboard for {len(user_ids)} users")
        return len(user_ids)

    @staticmethod
    def get_period_rows(period: str, limit: int = 50) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        response = (
            client.table(LEADERBOARD_TABLE)
            .select("*")
            .eq("period", period)
            .gt("total_points", 0)
            .order("rank")
            .limit(limit)
            .execute()
        )
        return response.data or []

    @staticmethod
    def get_user_row(user_id: int, period: str) -> dict[str, Any] | None:
        return SupabaseClient.fetch_one(LEADERBOARD_TABLE, user_id=user_id, period=period)
