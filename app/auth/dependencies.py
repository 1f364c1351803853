# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Provides dependency injection for authentication and access levels.
#
# Usage:
#   from app.auth import get_current_user, require_roles, AuthUser
#
#   @router.get("/protected")
#   async def protected(user: AuthUser = Depends(get_current_user)):
#       return {"user_id": user.id}
#
#   @router.get("/admin-only")
#   async def admin_only(user: AuthUser = Depends(require_roles(AccessLevel.ADMIN))):
#       ...
# =============================================================================

import logging
from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, ExpiredSignatureError

from app.auth.models import AuthUser, TokenPayload
from app.exceptions import PermissionDeniedError
from core.models.user import AccessLevel, normalize_role
from lib.security import decode_access_token
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor
security = HTTPBearer()
security_optional = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _load_user(token: str) -> AuthUser:
    """Verify the token and load the account it refers to."""
    try:
        payload = TokenPayload(**decode_access_token(token))
    except ExpiredSignatureError:
        logger.warning("Access token has expired")
        raise _unauthorized("Token has expired")
    except (JWTError, ValueError) as e:
        logger.warning(f"Token validation failed: {e}")
        raise _unauthorized(f"Invalid token: {str(e)}")

    try:
        user_id = int(payload.sub)
    except ValueError:
        logger.warning(f"Invalid user id in token: {payload.sub}")
        raise _unauthorized("Invalid token: malformed user ID")

    row = SupabaseClient.fetch_by_id("users", user_id)
    if not row:
        raise _unauthorized("Invalid token: user no longer exists")
    if not row.get("is_active", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This account has been deactivated",
        )

    try:
        role = normalize_role(row.get("role") or AccessLevel.FREE.value)
    except ValueError:
        logger.warning(f"User {user_id} has unknown role {row.get('role')!r}, treating as free")
        role = AccessLevel.FREE

    logger.debug(f"Authenticated user: {user_id} ({role.value})")
    return AuthUser(id=user_id, username=row.get("username", ""), email=row.get("email"), role=role)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthUser:
    """
    Extract and validate the user from the Bearer token.

    This dependency:
    1. Extracts the Bearer token from the Authorization header
    2. Verifies the JWT signature and expiry
    3. Loads the account and rejects deactivated ones
    4. Returns an AuthUser with the current access level

    Raises:
        HTTPException: 401 if token is invalid or expired, 403 if deactivated
    """
    return _load_user(credentials.credentials)


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_optional)
) -> Optional[AuthUser]:
    """
    Optionally get the current user from the Bearer token.

    Returns None if no token is provided, instead of raising an error.
    Useful for public listings that personalize results for logged-in users.
    """
    if credentials is None:
        return None

    try:
        return _load_user(credentials.credentials)
    except HTTPException:
        # If token is invalid, treat as no auth rather than error
        return None


def require_roles(*roles: AccessLevel) -> Callable:
    """
    Build a dependency that only admits the given access levels.

    Args:
        *roles: Allowed access levels

    Returns:
        Dependency returning the AuthUser

    Example:
        @router.delete("/{id}")
        async def remove(user: AuthUser = Depends(require_roles(AccessLevel.ADMIN))):
            ...
    """
    allowed = frozenset(roles)

    async def dependency(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if user.role not in allowed:
            raise PermissionDeniedError(required=sorted(r.value for r in allowed))
        return user

    return dependency


require_staff = require_roles(AccessLevel.ADMIN, AccessLevel.DESIGNER_ADM, AccessLevel.SUPPORT)
require_moderator = require_roles(AccessLevel.ADMIN, AccessLevel.DESIGNER_ADM)
require_admin = require_roles(AccessLevel.ADMIN)
