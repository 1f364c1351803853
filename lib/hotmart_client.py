# =============================================================================
# lib/hotmart_client.py - Hotmart API Client
# =============================================================================
# Minimal client for the Hotmart developer API:
# - OAuth client_credentials token, cached until 5 minutes before expiry
# - Subscription lookup by buyer e-mail
# - Connection test used by the admin dashboard
#
# Usage:
#   from lib.hotmart_client import HotmartClient
#   HotmartClient.test_connection()
# =============================================================================

from __future__ import annotations

import base64
import logging
import time
from typing import Any

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

# Refresh the cached token this many seconds before Hotmart expires it
TOKEN_EXPIRY_MARGIN = 5 * 60
REQUEST_TIMEOUT = 15


class HotmartClientError(Exception):
    """Raised when the Hotmart API can't be reached or rejects a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class HotmartClient:
    """
    Class-level Hotmart API client with a shared token cache.

    The cache lives on the class so all requests in a process reuse it.
    """

    _access_token: str | None = None
    _token_expires_at: float = 0.0

    @classmethod
    def is_configured(cls) -> bool:
        return bool(settings.HOTMART_CLIENT_ID and settings.HOTMART_CLIENT_SECRET)

    @classmethod
    def reset_token(cls) -> None:
        """Drop the cached token (e.g. after credentials change)."""
        cls._access_token = None
        cls._token_expires_at = 0.0

    @classmethod
    def get_access_token(cls) -> str:
        """
        Get a valid OAuth token, requesting a new one when the cache is stale.

        Returns:
            Bearer access token

        Raises:
            HotmartClientError: If credentials are missing or Hotmart refuses them
        """
        if cls._access_token and time.time() < cls._token_expires_at:
            return cls._access_token

        if not cls.is_configured():
            raise HotmartClientError("HOTMART_CLIENT_ID and HOTMART_CLIENT_SECRET are not configured")

        credentials = f"{settings.HOTMART_CLIENT_ID}:{settings.HOTMART_CLIENT_SECRET}"
        basic = base64.b64encode(credentials.encode()).decode()

        try:
            response = httpx.post(
                f"{settings.hotmart_base_url}/security/oauth/token",
                params={"grant_type": "client_credentials"},
                headers={
                    "Authorization": f"Basic {basic}",
                    "Content-Type": "application/json",
                },
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Hotmart token request rejected: {e.response.status_code}")
            raise HotmartClientError(
                f"Hotmart rejected the credentials ({e.response.status_code})",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Hotmart token request failed: {e}")
            raise HotmartClientError(f"Could not reach Hotmart: {e}") from e

        payload = response.json()
        token = payload.get("access_token")
        if not token:
            raise HotmartClientError("Hotmart token response had no access_token")

        expires_in = int(payload.get("expires_in", 3600))
        cls._access_token = token
        cls._token_expires_at = time.time() + expires_in - TOKEN_EXPIRY_MARGIN
        logger.info(f"Obtained Hotmart access token (expires in {expires_in}s)")
        return token

    @classmethod
    def get_subscriptions(cls, email: str) -> list[dict[str, Any]]:
        """
        List a buyer's subscriptions.

        Args:
            email: Subscriber e-mail

        Returns:
            The `items` array from Hotmart (empty when none)
        """
        token = cls.get_access_token()

        try:
            response = httpx.get(
                f"{settings.hotmart_base_url}/payments/api/v1/subscriptions",
                params={"subscriber_email": email},
                headers={"Authorization": f"Bearer {token}"},
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                cls.reset_token()
            raise HotmartClientError(
                f"Hotmart subscription lookup failed ({e.response.status_code})",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise HotmartClientError(f"Could not reach Hotmart: {e}") from e

        return response.json().get("items", [])

    @classmethod
    def has_active_subscription(cls, email: str) -> bool:
        return any(item.get("status") == "ACTIVE" for item in cls.get_subscriptions(email))

    @classmethod
    def test_connection(cls) -> dict[str, Any]:
        """
        Check that credentials work.

        Returns:
            Dict with success flag, environment and message
        """
        environment = "sandbox" if settings.HOTMART_SANDBOX else "production"
        cls.reset_token()

        try:
            cls.get_access_token()
        except HotmartClientError as e:
            return {"success": False, "environment": environment, "message": e.message}

        return {"success": True, "environment": environment, "message": "Connected to Hotmart"}
