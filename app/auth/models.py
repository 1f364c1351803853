# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from typing import Optional

from pydantic import BaseModel, ConfigDict

from core.models.user import (
    AccessLevel,
    can_access_premium,
    can_publish,
    is_moderator,
    is_staff,
)


class AuthUser(BaseModel):
    """
    Authenticated caller, loaded fresh from the users table on each request.

    The role comes from the database rather than the token so a downgrade
    (e.g. expired subscription) applies immediately.
    """
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: Optional[str] = None
    role: AccessLevel

    @property
    def has_premium(self) -> bool:
        return can_access_premium(self.role)

    @property
    def is_moderator(self) -> bool:
        return is_moderator(self.role)

    @property
    def is_staff(self) -> bool:
        return is_staff(self.role)

    @property
    def can_publish(self) -> bool:
        return can_publish(self.role)


class TokenPayload(BaseModel):
    """Decoded access token claims."""
    sub: str  # users.id
    email: Optional[str] = None
    role: Optional[str] = None
    exp: int
    iat: int
