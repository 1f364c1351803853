# =============================================================================
# tests/test_leaderboard.py - Leaderboard Tests
# =============================================================================
# Period keys, levels, ranking order and recalculation from the points ledger.
#
# Run with: pytest tests/test_leaderboard.py -v
# =============================================================================

from datetime import datetime, timezone

from core.services.leaderboard_service import (
    LeaderboardService,
    assign_ranks,
    in_period,
    level_for_points,
    period_keys,
    resolve_period,
    week_number,
)


NOW = datetime(2025, 5, 17, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Period Keys
# =============================================================================

class TestPeriodKeys:
    """Tests for week numbers and period membership."""

    def test_week_number_sunday_based(self):
        # Jan 1 2025 is a Wednesday; the first Sunday starts week 2
        assert week_number(datetime(2025, 1, 1)) == 1
        assert week_number(datetime(2025, 1, 4)) == 1
        assert week_number(datetime(2025, 1, 5)) == 2

    def test_period_keys(self):
        assert period_keys(NOW) == ["all_time", "2025", "2025-05", "2025-W20"]

    def test_resolve_aliases(self):
        assert resolve_period(None, NOW) == "2025-05"
        assert resolve_period("week", NOW) == "2025-W20"
        assert resolve_period("year", NOW) == "2025"
        assert resolve_period("all_time", NOW) == "all_time"
        assert resolve_period("2024-12", NOW) == "2024-12"

    def test_in_period(self):
        assert in_period("2025-05-02T10:00:00+00:00", "2025-05")
        assert not in_period("2025-04-30T23:59:00+00:00", "2025-05")
        assert in_period(None, "all_time")
        assert not in_period(None, "2025")


# =============================================================================
# Levels and Ranks
# =============================================================================

class TestLevels:

    def test_default_levels(self):
        assert level_for_points(0) == "Iniciante KDG"
        assert level_for_points(500) == "Iniciante KDG"
        assert level_for_points(501) == "Colaborador KDG"
        assert level_for_points(10001) == "Lenda KDG"

    def test_custom_thresholds(self):
        thresholds = {"Bronze": 0, "Prata": 10}
        assert level_for_points(9, thresholds) == "Bronze"
        assert level_for_points(10, thresholds) == "Prata"


class TestAssignRanks:

    def test_points_desc_then_user_id(self):
        # Arrange: Users 3 and 2 tie on points
        rows = [
            {"id": 10, "user_id": 3, "total_points": 50},
            {"id": 11, "user_id": 1, "total_points": 10},
            {"id": 12, "user_id": 2, "total_points": 50},
        ]

        # Act
        ranks = dict(assign_ranks(rows))

        # Assert: Tie broken by the lower user_id, ranks are sequential
        assert ranks == {12: 1, 10: 2, 11: 3}

    def test_empty(self):
        assert assign_ranks([]) == []


# =============================================================================
# Recalculation
# =============================================================================

class TestRecalculateUser:
    """Tests for rebuilding a user's rows from points and posts."""

    def test_totals_per_period(self, fake_db):
        # Arrange: One approved post this month and points from two months
        fake_db.seed("community_posts", {
            "id": 1, "user_id": 7, "status": "approved", "created_at": "2025-05-03T10:00:00+00:00",
        })
        fake_db.seed(
            "community_points",
            {"user_id": 7, "points": 20, "reason": "post", "source_id": 1,
             "created_at": "2025-05-03T10:00:00+00:00"},
            {"user_id": 7, "points": 50, "reason": "featured", "source_id": 1,
             "created_at": "2025-05-16T10:00:00+00:00"},
            {"user_id": 7, "points": 500, "reason": "post", "source_id": 99,
             "created_at": "2024-11-01T10:00:00+00:00"},
        )

        # Act
        rows = LeaderboardService.recalculate_user(7, now=NOW)

        # Assert
        by_period = {row["period"]: row for row in rows}
        assert by_period["all_time"]["total_points"] == 570
        assert by_period["all_time"]["level"] == "Colaborador KDG"
        assert by_period["2025-05"]["total_points"] == 70
        assert by_period["2025-05"]["post_count"] == 1
        assert by_period["2025-05"]["featured_count"] == 1
        assert by_period["2025-W20"]["total_points"] == 50
        assert by_period["2025-05"]["rank"] == 1

    def test_recalculation_replaces_rows(self, fake_db):
        fake_db.seed("community_points", {
            "user_id": 4, "points": 5, "reason": "like", "source_id": 1,
            "created_at": "2025-05-10T10:00:00+00:00",
        })
        LeaderboardService.recalculate_user(4, now=NOW)
        LeaderboardService.recalculate_user(4, now=NOW)

        rows = [r for r in fake_db.rows("community_leaderboard") if r["user_id"] == 4]
        assert len(rows) == 4

    def test_ranks_across_users(self, fake_db):
        fake_db.seed(
            "community_points",
            {"user_id": 1, "points": 10, "reason": "like", "source_id": 1,
             "created_at": "2025-05-10T10:00:00+00:00"},
            {"user_id": 2, "points": 30, "reason": "save", "source_id": 2,
             "created_at": "2025-05-10T10:00:00+00:00"},
        )

        LeaderboardService.recalculate_user(1, now=NOW)
        LeaderboardService.recalculate_user(2, now=NOW)

        month = {r["user_id"]: r["rank"] for r in LeaderboardService.get_period_rows("2025-05")}
        assert month == {2: 1, 1: 2}

    def test_recalculate_all(self, fake_db):
        fake_db.seed(
            "community_points",
            {"user_id": 1, "points": 10, "reason": "like", "source_id": 1,
             "created_at": "2025-05-10T10:00:00+00:00"},
            {"user_id": 3, "points": 10, "reason": "like", "source_id": 2,
             "created_at": "2025-05-10T10:00:00+00:00"},
        )

        assert LeaderboardService.recalculate_all() == 2
