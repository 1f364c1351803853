# =============================================================================
# tests/test_catalog.py - Arts, Taxonomies and Follows
# =============================================================================
# Service-level tests for the marketplace catalog and user connections.
#
# Run with: pytest tests/test_catalog.py -v
# =============================================================================

import pytest

from app.exceptions import (
    BusinessRuleError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)
from core.models.art import ArtCreate, ArtSort, ArtUpdate, TaxonomyCreate
from core.models.user import AccessLevel
from core.services.art_service import ArtService
from core.services.taxonomy_service import TaxonomyService
from core.services.user_service import UserService


def _art(title: str = "Post Dia das Mães", **overrides) -> ArtCreate:
    data = {
        "title": title,
        "image_url": "https://cdn.example.com/arts/a.webp",
        "format": "feed",
        "file_type": "canva",
        "edit_url": "https://www.canva.com/design/abc",
    }
    data.update(overrides)
    return ArtCreate(**data)


@pytest.fixture
def designer(make_user):
    return make_user("designer1", role=AccessLevel.DESIGNER)


# =============================================================================
# Arts
# =============================================================================

class TestArtListing:
    """Tests for list_arts filters and visibility."""

    def test_hidden_arts_only_for_staff(self, fake_db, designer):
        ArtService.create_art(designer["id"], _art("Visível"))
        ArtService.create_art(designer["id"], _art("Oculta", is_visible=False))

        _, public_total = ArtService.list_arts(viewer_role="free")
        _, staff_total = ArtService.list_arts(viewer_role="support")

        assert public_total == 1
        assert staff_total == 2

    def test_search_is_case_insensitive(self, fake_db, designer):
        ArtService.create_art(designer["id"], _art("Convite Aniversário"))
        ArtService.create_art(designer["id"], _art("Cardápio"))

        arts, total = ArtService.list_arts(search="convite")

        assert total == 1
        assert arts[0]["title"] == "Convite Aniversário"

    def test_popular_sort(self, fake_db, designer):
        first = ArtService.create_art(designer["id"], _art("A"))
        second = ArtService.create_art(designer["id"], _art("B"))
        ArtService.record_download(second["id"], designer["id"], "designer")

        arts, _ = ArtService.list_arts(sort_by=ArtSort.POPULAR)

        assert [a["id"] for a in arts] == [second["id"], first["id"]]

    def test_related_same_category(self, fake_db, designer):
        base = ArtService.create_art(designer["id"], _art("Base", category_id=1))
        sibling = ArtService.create_art(designer["id"], _art("Irmã", category_id=1))
        ArtService.create_art(designer["id"], _art("Outra", category_id=2))

        related = ArtService.get_related(base["id"])

        assert [a["id"] for a in related] == [sibling["id"]]


class TestDownloads:

    def test_free_user_blocked_from_premium(self, fake_db, designer, make_user):
        member = make_user("membro")
        art = ArtService.create_art(designer["id"], _art(is_premium=True))

        with pytest.raises(PermissionDeniedError):
            ArtService.record_download(art["id"], member["id"], "free")

    def test_premium_download_counts(self, fake_db, designer, make_user):
        subscriber = make_user("assinante", role=AccessLevel.PREMIUM)
        art = ArtService.create_art(designer["id"], _art(is_premium=True))

        result = ArtService.record_download(art["id"], subscriber["id"], "premium")

        assert result["download_count"] == 1
        assert result["edit_url"] == "https://www.canva.com/design/abc"
        assert [a["id"] for a in ArtService.list_downloads(subscriber["id"])] == [art["id"]]

    def test_view_count(self, fake_db, designer):
        art = ArtService.create_art(designer["id"], _art())

        ArtService.record_view(art["id"])

        assert ArtService.record_view(art["id"]) == 2


class TestArtOwnership:

    def test_other_designer_cannot_edit(self, fake_db, designer, make_user):
        other = make_user("designer2", role=AccessLevel.DESIGNER)
        art = ArtService.create_art(designer["id"], _art())

        with pytest.raises(PermissionDeniedError):
            ArtService.update_art(art["id"], ArtUpdate(title="Nova"), other["id"], "designer")

    def test_staff_can_edit(self, fake_db, designer, make_user):
        support = make_user("suporte", role=AccessLevel.SUPPORT)
        art = ArtService.create_art(designer["id"], _art())

        updated = ArtService.update_art(art["id"], ArtUpdate(title="Nova"), support["id"], "support")

        assert updated["title"] == "Nova"

    def test_delete_removes_activity(self, fake_db, designer):
        art = ArtService.create_art(designer["id"], _art())
        ArtService.toggle_favorite(art["id"], designer["id"])

        ArtService.delete_art(art["id"], designer["id"], "designer")

        assert fake_db.rows("favorites") == []
        with pytest.raises(NotFoundError):
            ArtService.get_art(art["id"])


class TestFavorites:

    def test_toggle(self, fake_db, designer):
        art = ArtService.create_art(designer["id"], _art())

        assert ArtService.toggle_favorite(art["id"], designer["id"]) is True
        assert [a["id"] for a in ArtService.list_favorites(designer["id"])] == [art["id"]]
        assert ArtService.toggle_favorite(art["id"], designer["id"]) is False
        assert ArtService.list_favorites(designer["id"]) == []


# =============================================================================
# Taxonomies
# =============================================================================

class TestTaxonomies:

    def test_slug_generated(self, fake_db):
        item = TaxonomyService.create("categories", TaxonomyCreate(name="Convites de Aniversário"))

        assert item["slug"] == "convites-de-aniversario"
        assert TaxonomyService.get_by_slug("categories", "convites-de-aniversario")["id"] == item["id"]

    def test_duplicate_slug(self, fake_db):
        TaxonomyService.create("formats", TaxonomyCreate(name="Stories"))

        with pytest.raises(ConflictError):
            TaxonomyService.create("formats", TaxonomyCreate(name="stories"))

    def test_category_in_use(self, fake_db, designer):
        category = TaxonomyService.create("categories", TaxonomyCreate(name="Páscoa"))
        ArtService.create_art(designer["id"], _art(category_id=category["id"]))

        with pytest.raises(BusinessRuleError):
            TaxonomyService.delete("categories", category["id"])

    def test_unknown_kind(self, fake_db):
        with pytest.raises(NotFoundError):
            TaxonomyService.list_items("colors")


# =============================================================================
# Follows
# =============================================================================

class TestFollows:

    def test_follow_updates_counters(self, fake_db, make_user):
        ana = make_user("ana")
        bia = make_user("bia")

        UserService.follow(ana["id"], bia["id"])

        assert UserService.get_user(bia["id"])["followers"] == 1
        assert UserService.get_user(ana["id"])["following"] == 1
        assert UserService.is_following(ana["id"], bia["id"])

    def test_cannot_follow_self(self, fake_db, make_user):
        ana = make_user("ana")

        with pytest.raises(BusinessRuleError):
            UserService.follow(ana["id"], ana["id"])

    def test_unfollow(self, fake_db, make_user):
        ana = make_user("ana")
        bia = make_user("bia")
        UserService.follow(ana["id"], bia["id"])

        UserService.unfollow(ana["id"], bia["id"])

        assert UserService.get_user(bia["id"])["followers"] == 0
        with pytest.raises(BusinessRuleError):
            UserService.unfollow(ana["id"], bia["id"])
