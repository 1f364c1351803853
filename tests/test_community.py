# =============================================================================
# tests/test_community.py - Community Service Tests
# =============================================================================
# Posts, moderation, likes/saves, comments and the points they award.
#
# Run with: pytest tests/test_community.py -v
# =============================================================================

import pytest

from app.exceptions import BusinessRuleError, NotFoundError, PermissionDeniedError
from core.models.community import CommunitySettingsUpdate, PostCreate, PostStatus
from core.models.user import AccessLevel
from core.services.community_service import CommunityService


def _post(title: str = "Meu convite") -> PostCreate:
    return PostCreate(title=title, image_url="https://cdn.example.com/community/a.webp")


def _points(fake_db, user_id: int) -> int:
    return sum(row["points"] for row in fake_db.rows("community_points") if row["user_id"] == user_id)


@pytest.fixture
def author(make_user):
    return make_user("autora")


@pytest.fixture
def reader(make_user):
    return make_user("leitor")


@pytest.fixture
def approved_post(author):
    post = CommunityService.create_post(author["id"], "free", _post())
    return CommunityService.set_post_status(post["id"], PostStatus.APPROVED)


# =============================================================================
# Posts and Moderation
# =============================================================================

class TestCreatePost:
    """Tests for post creation and auto-approval."""

    def test_member_post_waits_for_approval(self, fake_db, author):
        post = CommunityService.create_post(author["id"], "free", _post())

        assert post["status"] == "pending"
        assert _points(fake_db, author["id"]) == 0

    def test_moderator_post_is_approved(self, fake_db, make_user):
        moderator = make_user("moderadora", role=AccessLevel.DESIGNER_ADM)

        post = CommunityService.create_post(moderator["id"], "designer_adm", _post())

        assert post["status"] == "approved"
        assert _points(fake_db, moderator["id"]) == 20

    def test_no_approval_required(self, fake_db, author):
        CommunityService.update_settings(CommunitySettingsUpdate(require_approval=False))

        post = CommunityService.create_post(author["id"], "free", _post())

        assert post["status"] == "approved"

    def test_pending_post_hidden_from_others(self, fake_db, author, reader):
        post = CommunityService.create_post(author["id"], "free", _post())

        with pytest.raises(NotFoundError):
            CommunityService.get_post(post["id"], viewer_id=reader["id"], viewer_role="free")

        # The author and moderators still see it
        assert CommunityService.get_post(post["id"], viewer_id=author["id"])["id"] == post["id"]
        assert CommunityService.get_post(post["id"], viewer_role="admin")["id"] == post["id"]


class TestModeration:

    def test_points_awarded_once(self, fake_db, author, approved_post):
        # Approving again is a no-op
        CommunityService.set_post_status(approved_post["id"], PostStatus.APPROVED)

        assert _points(fake_db, author["id"]) == 20

    def test_reject_revokes_points(self, fake_db, author, approved_post):
        CommunityService.set_featured(approved_post["id"], True)
        assert _points(fake_db, author["id"]) == 70

        CommunityService.set_post_status(approved_post["id"], PostStatus.REJECTED)

        assert _points(fake_db, author["id"]) == 0

    def test_cannot_return_to_pending(self, fake_db, approved_post):
        with pytest.raises(BusinessRuleError):
            CommunityService.set_post_status(approved_post["id"], PostStatus.PENDING)

    def test_unfeature_revokes_bonus(self, fake_db, author, approved_post):
        CommunityService.set_featured(approved_post["id"], True)
        CommunityService.set_featured(approved_post["id"], False)

        assert _points(fake_db, author["id"]) == 20

    def test_leaderboard_follows_points(self, fake_db, author, approved_post):
        row = next(
            r for r in fake_db.rows("community_leaderboard")
            if r["user_id"] == author["id"] and r["period"] == "all_time"
        )
        assert row["total_points"] == 20
        assert row["post_count"] == 1


class TestDeletePost:

    def test_only_author_or_moderator(self, fake_db, approved_post, reader):
        with pytest.raises(PermissionDeniedError):
            CommunityService.delete_post(approved_post["id"], reader["id"], "free")

    def test_delete_cleans_up(self, fake_db, author, reader, approved_post):
        CommunityService.add_interaction("like", approved_post["id"], reader["id"])
        CommunityService.add_comment(approved_post["id"], reader["id"], "Lindo!")

        CommunityService.delete_post(approved_post["id"], author["id"], "free")

        assert fake_db.rows("community_posts") == []
        assert fake_db.rows("community_likes") == []
        assert fake_db.rows("community_comments") == []
        assert _points(fake_db, author["id"]) == 0


# =============================================================================
# Likes and Saves
# =============================================================================

class TestInteractions:
    """Tests for likes and saves and their points."""

    def test_like_awards_author(self, fake_db, author, reader, approved_post):
        count = CommunityService.add_interaction("like", approved_post["id"], reader["id"])

        assert count == 1
        assert _points(fake_db, author["id"]) == 25

    def test_save_awards_author(self, fake_db, author, reader, approved_post):
        CommunityService.add_interaction("save", approved_post["id"], reader["id"])

        assert _points(fake_db, author["id"]) == 30

    def test_self_like_earns_nothing(self, fake_db, author, approved_post):
        CommunityService.add_interaction("like", approved_post["id"], author["id"])

        assert _points(fake_db, author["id"]) == 20

    def test_duplicate_like_rejected(self, fake_db, reader, approved_post):
        CommunityService.add_interaction("like", approved_post["id"], reader["id"])

        with pytest.raises(BusinessRuleError) as exc_info:
            CommunityService.add_interaction("like", approved_post["id"], reader["id"])
        assert exc_info.value.code == "ALREADY_LIKED"

    def test_unlike_revokes_points(self, fake_db, author, reader, approved_post):
        CommunityService.add_interaction("like", approved_post["id"], reader["id"])

        count = CommunityService.remove_interaction("like", approved_post["id"], reader["id"])

        assert count == 0
        assert _points(fake_db, author["id"]) == 20

    def test_unlike_without_like(self, fake_db, reader, approved_post):
        with pytest.raises(BusinessRuleError):
            CommunityService.remove_interaction("like", approved_post["id"], reader["id"])

    def test_unlike_on_rejected_post(self, fake_db, author, reader, approved_post):
        # Arrange: the like predates the rejection
        CommunityService.add_interaction("like", approved_post["id"], reader["id"])
        CommunityService.set_post_status(approved_post["id"], PostStatus.REJECTED)

        # Act / Assert: the post is gone for members, the like stays put
        with pytest.raises(NotFoundError):
            CommunityService.remove_interaction("like", approved_post["id"], reader["id"])
        assert len(fake_db.rows("community_likes")) == 1

    def test_unsave_missing_post(self, fake_db, reader):
        with pytest.raises(NotFoundError):
            CommunityService.remove_interaction("save", 999, reader["id"])

    def test_pending_post_cannot_be_liked(self, fake_db, author, reader):
        post = CommunityService.create_post(author["id"], "free", _post())

        with pytest.raises(NotFoundError):
            CommunityService.add_interaction("like", post["id"], reader["id"])

    def test_saved_posts_listing(self, fake_db, reader, approved_post):
        CommunityService.add_interaction("save", approved_post["id"], reader["id"])

        saved = CommunityService.list_saved_posts(reader["id"])

        assert [p["id"] for p in saved] == [approved_post["id"]]
        assert saved[0]["is_saved"] is True


# =============================================================================
# Comments
# =============================================================================

class TestComments:

    def test_hidden_comments_excluded(self, fake_db, reader, approved_post):
        comment = CommunityService.add_comment(approved_post["id"], reader["id"], "  Amei  ")
        assert comment["content"] == "Amei"

        CommunityService.toggle_comment_hidden(comment["id"])

        assert CommunityService.list_comments(approved_post["id"]) == []
        assert len(CommunityService.list_comments(approved_post["id"], include_hidden=True)) == 1

    def test_comments_disabled(self, fake_db, reader, approved_post):
        CommunityService.update_settings(CommunitySettingsUpdate(allow_comments=False))

        with pytest.raises(BusinessRuleError):
            CommunityService.add_comment(approved_post["id"], reader["id"], "Oi")

    def test_only_author_deletes_comment(self, fake_db, author, reader, approved_post):
        comment = CommunityService.add_comment(approved_post["id"], reader["id"], "Oi")

        with pytest.raises(PermissionDeniedError):
            CommunityService.delete_comment(comment["id"], author["id"], "free")


# =============================================================================
# Settings and Ranking
# =============================================================================

class TestSettings:

    def test_thresholds_need_zero_level(self, fake_db):
        with pytest.raises(BusinessRuleError):
            CommunityService.update_settings(CommunitySettingsUpdate(level_thresholds={"Pro": 100}))

    def test_update_merges(self, fake_db):
        CommunityService.update_settings(CommunitySettingsUpdate(points_for_like=7))
        CommunityService.update_settings(CommunitySettingsUpdate(prize_1st_place="R$ 500"))

        settings = CommunityService.get_settings()
        assert settings.points_for_like == 7
        assert settings.prize_1st_place == "R$ 500"

    def test_hidden_ranking_for_members(self, fake_db, approved_post):
        CommunityService.update_settings(CommunitySettingsUpdate(show_ranking=False))

        assert CommunityService.get_ranking("all_time", viewer_role="free")["entries"] == []
        assert len(CommunityService.get_ranking("all_time", viewer_role="admin")["entries"]) == 1
