# =============================================================================
# tests/test_notifications.py - In-App Notification Tests
# =============================================================================
# Follows, likes and comments notify the other user; reading and marking.
#
# Run with: pytest tests/test_notifications.py -v
# =============================================================================

import pytest

from app.exceptions import BusinessRuleError
from core.models.community import PostCreate, PostStatus
from core.models.notification import NotificationType
from core.services.community_service import CommunityService
from core.services.notification_service import NotificationService
from core.services.user_service import UserService

API = "/api/v1"


@pytest.fixture
def author(make_user):
    return make_user("autora")


@pytest.fixture
def fan(make_user):
    return make_user("fan_club")


@pytest.fixture
def approved_post(author):
    post = CommunityService.create_post(
        author["id"], "free", PostCreate(title="Meu convite", image_url="https://cdn.example.com/a.webp")
    )
    return CommunityService.set_post_status(post["id"], PostStatus.APPROVED)


def _types(fake_db, user_id: int) -> list[str]:
    return [row["type"] for row in fake_db.rows("notifications") if row["user_id"] == user_id]


# =============================================================================
# Emitting
# =============================================================================

class TestEmit:
    """Which actions leave a notification behind."""

    def test_follow(self, fake_db, author, fan):
        UserService.follow(fan["id"], author["id"])

        row = fake_db.rows("notifications")[0]
        assert row["user_id"] == author["id"]
        assert row["type"] == "new_follower"
        assert row["content"] == "fan_club started following you"
        assert row["is_read"] is False

    def test_like_and_comment(self, fake_db, author, fan, approved_post):
        CommunityService.add_interaction("like", approved_post["id"], fan["id"])
        comment = CommunityService.add_comment(approved_post["id"], fan["id"], "Lindo!")

        assert _types(fake_db, author["id"]) == ["post_like", "post_comment"]
        comment_note = fake_db.rows("notifications")[1]
        assert comment_note["related_post_id"] == approved_post["id"]
        assert comment_note["related_comment_id"] == comment["id"]

    def test_saves_are_silent(self, fake_db, author, fan, approved_post):
        CommunityService.add_interaction("save", approved_post["id"], fan["id"])

        assert fake_db.rows("notifications") == []

    def test_own_actions_are_silent(self, fake_db, author, approved_post):
        CommunityService.add_interaction("like", approved_post["id"], author["id"])
        CommunityService.add_comment(approved_post["id"], author["id"], "Obrigada!")

        assert fake_db.rows("notifications") == []

    def test_insert_failure_keeps_the_like(self, fake_db, author, fan, approved_post, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("notifications table missing")

        original = fake_db.table

        def table(name):
            if name == "notifications":
                query = original(name)
                query.execute = broken
                return query
            return original(name)

        monkeypatch.setattr(fake_db, "table", table)

        count = CommunityService.add_interaction("like", approved_post["id"], fan["id"])

        assert count == 1
        assert fake_db.rows("notifications") == []


# =============================================================================
# Reading
# =============================================================================

class TestRead:

    @pytest.fixture
    def three_notes(self, make_user, author):
        followers = [make_user(name) for name in ("ana", "bia", "caio")]
        for follower in followers:
            UserService.follow(follower["id"], author["id"])
        return followers

    def test_list_with_source_user(self, author, three_notes):
        rows, total = NotificationService.list_notifications(author["id"])

        assert total == 3
        assert {row["source_user"]["username"] for row in rows} == {"ana", "bia", "caio"}

    def test_mark_some(self, author, three_notes):
        rows, _ = NotificationService.list_notifications(author["id"])

        remaining = NotificationService.mark_read(author["id"], notification_ids=[rows[0]["id"]])

        assert remaining == 2
        _, unread_total = NotificationService.list_notifications(author["id"], unread_only=True)
        assert unread_total == 2

    def test_mark_all(self, author, three_notes):
        assert NotificationService.mark_read(author["id"], mark_all=True) == 0

    def test_other_users_ids_ignored(self, author, fan, three_notes):
        rows, _ = NotificationService.list_notifications(author["id"])

        NotificationService.mark_read(fan["id"], notification_ids=[row["id"] for row in rows])

        assert NotificationService.unread_count(author["id"]) == 3

    def test_nothing_to_mark(self, author):
        with pytest.raises(BusinessRuleError):
            NotificationService.mark_read(author["id"])


class TestNotificationRoutes:

    def test_flow(self, client, author, fan, auth_headers):
        UserService.follow(fan["id"], author["id"])
        headers = auth_headers(author)

        listing = client.get(f"{API}/notifications", headers=headers)
        assert listing.status_code == 200
        body = listing.json()
        assert body["unread_count"] == 1
        assert body["notifications"][0]["type"] == NotificationType.NEW_FOLLOWER.value
        assert body["notifications"][0]["source_user"]["username"] == "fan_club"

        marked = client.post(f"{API}/notifications/mark-read", headers=headers, json={"all": True})
        assert marked.json() == {"unread_count": 0}

        count = client.get(f"{API}/notifications/unread-count", headers=headers)
        assert count.json() == {"unread_count": 0}

    def test_empty_mark_read(self, client, author, auth_headers):
        response = client.post(f"{API}/notifications/mark-read", headers=auth_headers(author), json={})

        assert response.status_code == 400

    def test_requires_login(self, client):
        assert client.get(f"{API}/notifications").status_code in (401, 403)
