# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the DesignAuto API:
# - test_models.py: Pydantic model validation and access levels
# - test_catalog.py: Arts, taxonomies and follows
# - test_community.py / test_leaderboard.py: Posts, points and ranking
# - test_subscriptions.py / test_webhooks.py: Plans and payment webhooks
# - test_storage.py / test_images.py: Upload pipeline
# - test_routes.py: HTTP endpoints through the FastAPI app
# - fakes.py: In-memory Supabase stand-in used by every test
#
# Run tests with: poetry run pytest
# =============================================================================
