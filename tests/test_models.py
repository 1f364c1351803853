# =============================================================================
# tests/test_models.py - Pydantic Model Tests
# =============================================================================
# Unit tests for the schemas and access-level helpers:
# - Valid data is accepted and parsed correctly
# - Invalid data raises ValidationError
# - Role helpers agree on which tiers can do what
#
# Run with: pytest tests/test_models.py -v
# =============================================================================

import pytest
from pydantic import ValidationError

from core.models.community import CommunitySettings, DEFAULT_LEVEL_THRESHOLDS, PostCreate
from core.models.subscription import SubscriptionStatus, can_transition
from core.models.user import (
    AccessLevel,
    UserRegister,
    UserResponse,
    can_access_premium,
    can_publish,
    is_moderator,
    is_staff,
    normalize_role,
)


# =============================================================================
# Access Levels
# =============================================================================

class TestAccessLevels:
    """Tests for role normalization and permission helpers."""

    def test_legacy_names_map_to_free(self):
        assert normalize_role("usuario") == AccessLevel.FREE
        assert normalize_role("User") == AccessLevel.FREE

    def test_none_is_visitor(self):
        assert normalize_role(None) == AccessLevel.VISITOR

    def test_unknown_role_raises(self):
        with pytest.raises(ValueError):
            normalize_role("superuser")

    def test_premium_access(self):
        """Every paid or staff tier can download premium arts."""
        assert not can_access_premium("free")
        assert not can_access_premium(None)
        for role in ("premium", "designer", "designer_adm", "support", "admin"):
            assert can_access_premium(role), role

    def test_staff_and_moderators(self):
        assert is_staff("support")
        assert not is_moderator("support")
        assert is_moderator("designer_adm")
        assert not is_staff("designer")

    def test_publishers(self):
        assert can_publish("designer")
        assert can_publish("admin")
        assert not can_publish("support")
        assert not can_publish("premium")


# =============================================================================
# User Schemas
# =============================================================================

class TestUserRegister:
    """Tests for registration input."""

    def test_valid_registration(self):
        data = UserRegister(username="ana.souza", email="ana@example.com", password="secret123")
        assert data.name is None

    def test_username_rejects_spaces(self):
        with pytest.raises(ValidationError):
            UserRegister(username="ana souza", email="ana@example.com", password="secret123")

    def test_short_password_rejected(self):
        with pytest.raises(ValidationError):
            UserRegister(username="ana", email="ana@example.com", password="123")

    def test_invalid_email_rejected(self):
        with pytest.raises(ValidationError):
            UserRegister(username="ana", email="not-an-email", password="secret123")


class TestUserResponse:
    """Responses never carry the password hash."""

    def test_password_not_serialized(self):
        # Arrange: A raw users row
        row = {
            "id": 1,
            "username": "ana",
            "email": "ana@example.com",
            "password": "$2b$12$hash",
            "role": "premium",
        }

        # Act
        dumped = UserResponse(**row).model_dump()

        # Assert
        assert "password" not in dumped
        assert dumped["role"] == "premium"


# =============================================================================
# Community Schemas
# =============================================================================

class TestCommunitySettings:

    def test_defaults(self):
        settings = CommunitySettings()
        assert settings.points_for_post == 20
        assert settings.points_for_like == 5
        assert settings.points_for_save == 10
        assert settings.points_for_weekly_featured == 50
        assert settings.level_thresholds == DEFAULT_LEVEL_THRESHOLDS

    def test_thresholds_not_shared_between_instances(self):
        first = CommunitySettings()
        first.level_thresholds["Custom"] = 1
        assert "Custom" not in CommunitySettings().level_thresholds

    def test_negative_points_rejected(self):
        with pytest.raises(ValidationError):
            CommunitySettings(points_for_like=-1)

    def test_post_requires_image(self):
        with pytest.raises(ValidationError):
            PostCreate(title="Meu post", image_url="")


# =============================================================================
# Subscription Status
# =============================================================================

class TestSubscriptionTransitions:

    def test_normal_lifecycle(self):
        assert can_transition(SubscriptionStatus.PENDING, SubscriptionStatus.ACTIVE)
        assert can_transition(SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED)
        assert can_transition(SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED)

    def test_renewal_after_expiry(self):
        assert can_transition(SubscriptionStatus.EXPIRED, SubscriptionStatus.ACTIVE)

    def test_expired_cannot_be_cancelled(self):
        assert not can_transition(SubscriptionStatus.EXPIRED, SubscriptionStatus.CANCELLED)
