# =============================================================================
# tests/test_paging.py - Full-Table Reads Under a Row Cap
# =============================================================================
# PostgREST truncates every response to max-rows. These tests shrink that cap
# to two rows so aggregates and sweeps have to page to see everything.
#
# Run with: pytest tests/test_paging.py -v
# =============================================================================

from datetime import datetime, timedelta, timezone

import pytest

from app.config import settings
from core.models.subscription import PlanType, SubscriptionSource, WebhookStatus
from core.services.admin_service import AdminService
from core.services.community_service import CommunityService
from core.services.leaderboard_service import LeaderboardService
from core.services.subscription_service import SubscriptionService
from core.services.webhook_service import WebhookService
from lib.supabase_client import SupabaseClient, SupabaseClientError


ROW_CAP = 2
START = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def capped_db(fake_db, monkeypatch):
    """Fake database that returns at most ROW_CAP rows per request."""
    fake_db.max_rows = ROW_CAP
    monkeypatch.setattr(settings, "SUPABASE_MAX_ROWS", ROW_CAP)
    return fake_db


def _points(user_id: int, points: int = 10) -> dict:
    return {
        "user_id": user_id, "points": points, "reason": "like", "source_id": user_id,
        "created_at": "2025-05-10T10:00:00+00:00",
    }


# =============================================================================
# fetch_all
# =============================================================================

class TestFetchAll:
    """Tests for SupabaseClient.fetch_all."""

    def test_reads_past_the_cap(self, capped_db):
        capped_db.seed("categories", *[{"name": f"C{i}", "slug": f"c{i}"} for i in range(5)])
        client = SupabaseClient.get_client()

        # A plain select only sees the first page
        assert len(client.table("categories").select("*").execute().data) == ROW_CAP

        rows = SupabaseClient.fetch_all(lambda: client.table("categories").select("*").order("id"))

        assert [row["slug"] for row in rows] == ["c0", "c1", "c2", "c3", "c4"]

    def test_exact_multiple_of_page_size(self, capped_db):
        capped_db.seed("categories", *[{"name": f"C{i}", "slug": f"c{i}"} for i in range(4)])
        client = SupabaseClient.get_client()

        rows = SupabaseClient.fetch_all(lambda: client.table("categories").select("*").order("id"))

        assert len(rows) == 4

    def test_empty_table(self, capped_db):
        client = SupabaseClient.get_client()

        assert SupabaseClient.fetch_all(lambda: client.table("categories").select("*").order("id")) == []

    def test_failure_is_wrapped(self, capped_db):
        def broken():
            raise RuntimeError("connection reset")

        with pytest.raises(SupabaseClientError) as exc_info:
            SupabaseClient.fetch_all(broken)
        assert exc_info.value.code == "FETCH_FAILED"


# =============================================================================
# Leaderboard
# =============================================================================

class TestCappedLeaderboard:
    """Recalculation and ranking see every row, not just the first page."""

    def test_recalculate_all_covers_every_user(self, capped_db):
        capped_db.seed("community_points", *[_points(user_id, points=user_id * 10) for user_id in range(1, 6)])

        assert LeaderboardService.recalculate_all() == 5

        all_time = [row for row in capped_db.rows("community_leaderboard") if row["period"] == "all_time"]
        assert sorted(row["user_id"] for row in all_time) == [1, 2, 3, 4, 5]

    def test_ranks_run_through_the_whole_period(self, capped_db):
        capped_db.seed("community_points", *[_points(user_id, points=user_id * 10) for user_id in range(1, 6)])

        LeaderboardService.recalculate_all()

        ranks = {
            row["user_id"]: row["rank"]
            for row in capped_db.rows("community_leaderboard")
            if row["period"] == "all_time"
        }
        assert ranks == {5: 1, 4: 2, 3: 3, 2: 4, 1: 5}

    def test_user_totals_include_every_ledger_row(self, capped_db):
        capped_db.seed("community_points", *[_points(7, points=5) for _ in range(5)])

        rows = LeaderboardService.recalculate_user(7)

        assert rows[0]["period"] == "all_time"
        assert rows[0]["total_points"] == 25


# =============================================================================
# Admin Counters
# =============================================================================

class TestCappedCounters:
    """Dashboard and community counters under the row cap."""

    def test_community_stats(self, capped_db):
        capped_db.seed(
            "community_posts",
            *[{"user_id": i, "status": "approved", "title": "p"} for i in range(1, 4)],
            {"user_id": 4, "status": "pending", "title": "p"},
            {"user_id": 5, "status": "rejected", "title": "p"},
        )
        capped_db.seed(
            "community_comments",
            *[{"post_id": 1, "user_id": 6, "content": "oi", "is_hidden": False} for _ in range(3)],
            {"post_id": 1, "user_id": 7, "content": "spam", "is_hidden": True},
        )

        stats = CommunityService.get_admin_stats()

        assert stats["total_posts"] == 5
        assert stats["approved_posts"] == 3
        assert stats["pending_posts"] == 1
        assert stats["rejected_posts"] == 1
        assert stats["total_comments"] == 4
        assert stats["hidden_comments"] == 1
        assert stats["participants"] == 7

    def test_dashboard_counts_every_user(self, capped_db, make_user):
        for name in ("ana", "bia", "caio", "duda", "edu"):
            make_user(name)
        capped_db.seed("arts", *[{"title": f"Arte {i}", "is_premium": i % 2 == 0} for i in range(5)])

        stats = AdminService.get_dashboard_stats()

        assert stats["users"]["total"] == 5
        assert stats["users"]["by_role"]["free"] == 5
        assert stats["arts"] == {"total": 5, "premium": 3}


# =============================================================================
# Subscriptions and Webhooks
# =============================================================================

class TestCappedSubscriptions:
    """Stats and the expiration sweep past the first page."""

    @staticmethod
    def _activate(count: int, now: datetime) -> None:
        for i in range(count):
            SubscriptionService.create_or_update_subscription(
                email=f"cliente{i}@example.com",
                plan_type=PlanType.MENSAL,
                source=SubscriptionSource.DOPPUS,
                now=now,
            )

    def test_stats_count_every_active_row(self, capped_db):
        self._activate(5, datetime.now(timezone.utc))

        stats = SubscriptionService.get_stats()

        assert stats["active_total"] == 5
        assert stats["active_by_source"] == {"doppus": 5}

    def test_sweep_expires_every_due_row(self, capped_db):
        self._activate(5, START)

        expired = SubscriptionService.check_expired_subscriptions(now=START + timedelta(days=31))

        assert expired == 5
        assert {row["status"] for row in capped_db.rows("subscriptions")} == {"expired"}


class TestCappedWebhookRetries:

    def test_every_failed_log_is_retried(self, capped_db):
        for i in range(5):
            log = WebhookService.create_log(
                SubscriptionSource.DOPPUS,
                {"event": "unknown_event", "data": {"customer": {"email": f"c{i}@example.com"}}},
            )
            WebhookService.update_log(log["id"], WebhookStatus.ERROR, error_message="database timeout")

        summary = WebhookService.retry_failed_webhooks(max_retries=3)

        assert summary["retried"] == 5
        assert all(row["retry_count"] == 1 for row in capped_db.rows("webhook_logs"))
