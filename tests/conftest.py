# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up test environment variables before any imports
# - Swaps the Supabase client for the in-memory fake in tests/fakes.py
# - Factories for accounts and their bearer tokens
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-access-tokens")
os.environ.setdefault("HOTMART_SECRET", "test-hottok")
os.environ.setdefault("DOPPUS_SECRET_KEY", "test-doppus-secret")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

import pytest

from core.models.user import AccessLevel, UserRegister
from core.services.user_service import UserService
from lib.security import create_access_token
from lib.supabase_client import SupabaseClient
from tests.fakes import FakeSupabase


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_db():
    """In-memory database and storage shared by every service during a test."""
    fake = FakeSupabase()
    previous = SupabaseClient._instance
    SupabaseClient._instance = fake
    yield fake
    SupabaseClient._instance = previous


@pytest.fixture
def client(fake_db):
    """FastAPI TestClient backed by the fake database."""
    from fastapi.testclient import TestClient

    from app.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(fake_db):
    """
    Factory for accounts.

    Example:
        admin = make_user("boss", role=AccessLevel.ADMIN)
    """
    def _make_user(
        username: str,
        role: AccessLevel = AccessLevel.FREE,
        email: str | None = None,
        password: str = "secret123",
    ) -> dict:
        user = UserService.register(
            UserRegister(username=username, email=email or f"{username}@example.com", password=password)
        )
        if role != AccessLevel.FREE:
            user = UserService.update_role(user["id"], role)
        return user

    return _make_user


@pytest.fixture
def auth_headers():
    """Build an Authorization header for a user row."""
    def _auth_headers(user: dict) -> dict[str, str]:
        token = create_access_token(user_id=user["id"], email=user["email"], role=user["role"])
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
