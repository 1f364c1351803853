# =============================================================================
# core/models/user.py - User and Access Level Schemas
# =============================================================================
# These models define the API contract for accounts:
# - AccessLevel: Enum of tiers, plus helpers for the checks routes perform
# - UserRegister / UserLogin: Inputs for the auth endpoints
# - UserResponse / UserPublic: Private and public views of a user row
#
# Access levels are stored as plain strings in users.role. Legacy rows may
# still carry "usuario", which is the old name for the free tier.
# =============================================================================

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class AccessLevel(str, Enum):
    """
    Account tiers, lowest to highest privilege.

    - visitor: no account (never stored, used for anonymous callers)
    - free: registered, free content only
    - premium: paying subscriber, premium downloads
    - designer: publishes arts
    - designer_adm: designer with moderation rights
    - support: staff with read access to the admin dashboard
    - admin: full access
    """
    VISITOR = "visitor"
    FREE = "free"
    PREMIUM = "premium"
    DESIGNER = "designer"
    DESIGNER_ADM = "designer_adm"
    SUPPORT = "support"
    ADMIN = "admin"


# Older rows and payment scripts used Portuguese names for the free tier
LEGACY_ROLE_NAMES = {
    "usuario": AccessLevel.FREE,
    "user": AccessLevel.FREE,
}

PREMIUM_ROLES = frozenset({
    AccessLevel.PREMIUM,
    AccessLevel.DESIGNER,
    AccessLevel.DESIGNER_ADM,
    AccessLevel.SUPPORT,
    AccessLevel.ADMIN,
})
MODERATOR_ROLES = frozenset({AccessLevel.ADMIN, AccessLevel.DESIGNER_ADM})
STAFF_ROLES = frozenset({AccessLevel.ADMIN, AccessLevel.DESIGNER_ADM, AccessLevel.SUPPORT})
PUBLISHER_ROLES = frozenset({AccessLevel.DESIGNER, AccessLevel.DESIGNER_ADM, AccessLevel.ADMIN})

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def normalize_role(value: str | AccessLevel | None) -> AccessLevel:
    """
    Map a stored role string to an AccessLevel.

    Args:
        value: Role from the database or a request (None means visitor)

    Returns:
        The matching AccessLevel

    Raises:
        ValueError: If the role is unknown

    Example:
        normalize_role("usuario")  # AccessLevel.FREE
    """
    if value is None:
        return AccessLevel.VISITOR
    if isinstance(value, AccessLevel):
        return value

    key = value.strip().lower()
    if key in LEGACY_ROLE_NAMES:
        return LEGACY_ROLE_NAMES[key]
    return AccessLevel(key)


def can_access_premium(role: str | AccessLevel | None) -> bool:
    return normalize_role(role) in PREMIUM_ROLES


def is_moderator(role: str | AccessLevel | None) -> bool:
    return normalize_role(role) in MODERATOR_ROLES


def is_staff(role: str | AccessLevel | None) -> bool:
    return normalize_role(role) in STAFF_ROLES


def can_publish(role: str | AccessLevel | None) -> bool:
    return normalize_role(role) in PUBLISHER_ROLES


# =============================================================================
# Request Models
# =============================================================================

class UserRegister(BaseModel):
    """Input for POST /auth/register."""
    username: str = Field(
        ...,
        min_length=3,
        max_length=50,
        pattern=r"^[a-zA-Z0-9_.]+$",
        description="Unique login name (letters, digits, dot, underscore)"
    )
    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=128)
    name: str | None = Field(default=None, max_length=120)


class UserLogin(BaseModel):
    """Input for POST /auth/login. The identifier may be an e-mail or a username."""
    identifier: str = Field(..., min_length=1, description="E-mail or username")
    password: str = Field(..., min_length=1)


class UserUpdate(BaseModel):
    """Profile fields a user may change on their own account."""
    name: str | None = Field(default=None, max_length=120)
    bio: str | None = Field(default=None, max_length=500)
    profile_image_url: str | None = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6, max_length=128)


class RoleUpdate(BaseModel):
    """Admin input for changing an account tier."""
    role: AccessLevel


class ActiveUpdate(BaseModel):
    is_active: bool


# =============================================================================
# Response Models
# =============================================================================

class UserPublic(BaseModel):
    """Public profile shown next to posts, arts and rankings."""
    id: int
    username: str
    name: str | None = None
    profile_image_url: str | None = None
    bio: str | None = None
    role: str = AccessLevel.FREE.value
    followers: int = 0
    following: int = 0


class UserResponse(UserPublic):
    """Full account view for the owner and for admins."""
    email: str
    is_active: bool = True
    plan_type: str | None = None
    plan_source: str | None = None
    plan_expires_at: datetime | None = None
    is_lifetime: bool = False
    last_login: datetime | None = None
    created_at: datetime | None = None


class UserList(BaseModel):
    users: list[UserResponse]
    total_count: int
    page: int
    limit: int


class TokenResponse(BaseModel):
    """Returned by register and login."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user: UserResponse
