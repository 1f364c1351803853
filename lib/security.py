# =============================================================================
# lib/security.py - Password Hashing and Access Tokens
# =============================================================================
# - Passwords are stored as bcrypt hashes.
# - Access tokens are JWTs signed with settings.SECRET_KEY (python-jose).
#
# Usage:
#   from lib.security import hash_password, create_access_token
#   token = create_access_token(user_id=7, email="ana@example.com", role="free")
# =============================================================================

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

import bcrypt
from jose import jwt

from app.config import settings
from lib.utils import utcnow

logger = logging.getLogger(__name__)


# =============================================================================
# Passwords
# =============================================================================

def hash_password(password: str) -> str:
    """Hash a plain-text password with a fresh bcrypt salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str | None) -> bool:
    """
    Check a plain-text password against a stored bcrypt hash.

    Malformed or missing hashes never match.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


# =============================================================================
# Access Tokens
# =============================================================================

def create_access_token(
    user_id: int,
    email: str | None,
    role: str,
    expires_minutes: int | None = None,
) -> str:
    """
    Sign an access token for a user.

    Args:
        user_id: users.id, stored in the `sub` claim
        email: Included for clients that display it
        role: Access level at issue time
        expires_minutes: Override for settings.ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        Encoded JWT
    """
    now = utcnow()
    lifetime = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    claims = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=lifetime)).timestamp()),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Verify a token's signature and expiry and return its claims.

    Raises:
        jose.ExpiredSignatureError: If the token has expired
        jose.JWTError: If the token is malformed or the signature is wrong
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
