# =============================================================================
# core/services/user_service.py - Accounts and Follows
# =============================================================================
# Handles registration, login, profile updates, admin user management and
# designer follows. Also creates accounts on behalf of payment webhooks.
# =============================================================================

import logging
from typing import Any

from lib.security import hash_password, verify_password
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import page_range, to_iso, username_from_email, utcnow
from core.models.user import (
    AccessLevel,
    UserRegister,
    UserUpdate,
    normalize_role,
)
from core.models.notification import NotificationType
from core.services.notification_service import NotificationService
from app.config import settings
from app.exceptions import (
    AuthenticationError,
    BusinessRuleError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
FOLLOWS_TABLE = "user_follows"


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    """
    Service for account operations.

    Rows are returned as dicts straight from the users table; the routers
    shape them into UserResponse/UserPublic (which never expose password).
    """

    # -------------------------------------------------------------------------
    # Registration and Login
    # -------------------------------------------------------------------------

    @staticmethod
    def register(data: UserRegister, role: AccessLevel = AccessLevel.FREE) -> dict[str, Any]:
        """
        Create an account.

        Args:
            data: Validated registration input
            role: Initial access level (free for self-registration)

        Returns:
            Created user row

        Raises:
            ConflictError: If the e-mail or username is taken
        """
        email = _normalize_email(data.email)
        username = data.username.strip().lower()

        if SupabaseClient.fetch_one(USERS_TABLE, email=email):
            raise ConflictError(f"E-mail already registered: {email}", field="email")
        if SupabaseClient.fetch_one(USERS_TABLE, username=username):
            raise ConflictError(f"Username already taken: {username}", field="username")

        now = to_iso(utcnow())
        row = {
            "username": username,
            "email": email,
            "password": hash_password(data.password),
            "name": data.name or username,
            "role": role.value,
            "is_active": True,
            "is_lifetime": False,
            "followers": 0,
            "following": 0,
            "created_at": now,
            "updated_at": now,
        }

        try:
            user = SupabaseClient.insert_row(USERS_TABLE, row)
        except SupabaseClientError as e:
            if e.code == "UNIQUE_VIOLATION":
                raise ConflictError("E-mail or username already registered")
            raise

        logger.info(f"Registered user {user['id']} ({username})")
        return user

    @staticmethod
    def authenticate(identifier: str, password: str) -> dict[str, Any]:
        """
        Check credentials and record the login.

        Args:
            identifier: E-mail or username
            password: Plain-text password

        Returns:
            The user row (with last_login updated)

        Raises:
            AuthenticationError: If no account matches or the password is wrong
            PermissionDeniedError: If the account is deactivated
        """
        key = identifier.strip().lower()
        column = "email" if "@" in key else "username"
        user = SupabaseClient.fetch_one(USERS_TABLE, **{column: key})

        if not user or not verify_password(password, user.get("password")):
            logger.info(f"Failed login for {key}")
            raise AuthenticationError("Invalid e-mail/username or password")

        if not user.get("is_active", True):
            raise PermissionDeniedError("This account has been deactivated")

        updated = SupabaseClient.update_row(USERS_TABLE, user["id"], {"last_login": to_iso(utcnow())})
        return updated or user

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    @staticmethod
    def get_user(user_id: int) -> dict[str, Any]:
        """
        Get a user by id.

        Raises:
            NotFoundError: If the user doesn't exist
        """
        user = SupabaseClient.fetch_by_id(USERS_TABLE, user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    @staticmethod
    def get_by_email(email: str) -> dict[str, Any] | None:
        return SupabaseClient.fetch_one(USERS_TABLE, email=_normalize_email(email))

    @staticmethod
    def get_users_by_ids(user_ids: list[int]) -> dict[int, dict[str, Any]]:
        """Fetch many users at once, keyed by id."""
        ids = sorted({uid for uid in user_ids if uid is not None})
        if not ids:
            return {}

        client = SupabaseClient.get_client()
        response = client.table(USERS_TABLE).select("*").in_("id", ids).execute()
        return {row["id"]: row for row in response.data or []}

    @staticmethod
    def update_profile(user_id: int, data: UserUpdate) -> dict[str, Any]:
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return UserService.get_user(user_id)

        changes["updated_at"] = to_iso(utcnow())
        user = SupabaseClient.update_row(USERS_TABLE, user_id, changes)
        if not user:
            raise NotFoundError("User", user_id)

        logger.info(f"Updated profile for user {user_id}: {sorted(changes)}")
        return user

    @staticmethod
    def change_password(user_id: int, current_password: str, new_password: str) -> None:
        """
        Replace the password after verifying the current one.

        Raises:
            AuthenticationError: If current_password is wrong
        """
        user = UserService.get_user(user_id)
        if not verify_password(current_password, user.get("password")):
            raise AuthenticationError("Current password is incorrect")

        SupabaseClient.update_row(USERS_TABLE, user_id, {
            "password": hash_password(new_password),
            "updated_at": to_iso(utcnow()),
        })
        logger.info(f"Password changed for user {user_id}")

    # -------------------------------------------------------------------------
    # Admin Management
    # -------------------------------------------------------------------------

    @staticmethod
    def list_users(
        page: int = 1,
        limit: int = 20,
        role: str | None = None,
        search: str | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """
        List users for the admin dashboard.

        Args:
            page: 1-based page number
            limit: Page size
            role: Filter by access level
            search: Case-insensitive match on username, e-mail or name

        Returns:
            (users, total_count)
        """
        client = SupabaseClient.get_client()
        start, end = page_range(page, limit)

        query = client.table(USERS_TABLE).select("*", count="exact")
        if role:
            query = query.eq("role", normalize_role(role).value)
        if search:
            term = search.replace(",", " ").strip()
            query = query.or_(
                f"username.ilike.%{term}%,email.ilike.%{term}%,name.ilike.%{term}%"
            )

        response = query.order("created_at", desc=True).range(start, end).execute()
        return response.data or [], response.count or 0

    @staticmethod
    def update_role(user_id: int, role: AccessLevel) -> dict[str, Any]:
        if role == AccessLevel.VISITOR:
            raise BusinessRuleError("Visitor is not an assignable access level", code="INVALID_ROLE")

        user = SupabaseClient.update_row(USERS_TABLE, user_id, {
            "role": role.value,
            "updated_at": to_iso(utcnow()),
        })
        if not user:
            raise NotFoundError("User", user_id)

        logger.info(f"User {user_id} access level set to {role.value}")
        return user

    @staticmethod
    def set_active(user_id: int, is_active: bool) -> dict[str, Any]:
        user = SupabaseClient.update_row(USERS_TABLE, user_id, {
            "is_active": is_active,
            "updated_at": to_iso(utcnow()),
        })
        if not user:
            raise NotFoundError("User", user_id)

        logger.info(f"User {user_id} {'activated' if is_active else 'deactivated'}")
        return user

    @staticmethod
    def delete_user(user_id: int) -> None:
        if not SupabaseClient.delete_row(USERS_TABLE, user_id):
            raise NotFoundError("User", user_id)
        logger.info(f"Deleted user {user_id}")

    # -------------------------------------------------------------------------
    # Webhook Accounts
    # -------------------------------------------------------------------------

    @staticmethod
    def get_or_create_by_email(email: str, name: str | None = None) -> tuple[dict[str, Any], bool]:
        """
        Find the account for a buyer's e-mail, creating it if needed.

        New accounts get a username derived from the e-mail (with a numeric
        suffix on collision) and the default webhook password.

        Returns:
            (user row, created)
        """
        email = _normalize_email(email)
        existing = SupabaseClient.fetch_one(USERS_TABLE, email=email)
        if existing:
            return existing, False

        base = username_from_email(email)[:40]
        if len(base) < 3:
            base = f"usuario{base}"
        username = base
        suffix = 1
        while SupabaseClient.fetch_one(USERS_TABLE, username=username):
            suffix += 1
            username = f"{base}{suffix}"

        user = UserService.register(
            UserRegister(
                username=username,
                email=email,
                password=settings.WEBHOOK_USER_DEFAULT_PASSWORD,
                name=name or username,
            )
        )
        logger.info(f"Created account {user['id']} for buyer {email}")
        return user, True

    # -------------------------------------------------------------------------
    # Follows
    # -------------------------------------------------------------------------

    @staticmethod
    def _adjust_counter(user_id: int, column: str, delta: int) -> None:
        user = SupabaseClient.fetch_by_id(USERS_TABLE, user_id)
        if user:
            value = max(0, (user.get(column) or 0) + delta)
            SupabaseClient.update_row(USERS_TABLE, user_id, {column: value})

    @staticmethod
    def follow(follower_id: int, following_id: int) -> None:
        """
        Follow another user.

        Raises:
            BusinessRuleError: On self-follow or when already following
            NotFoundError: If the target doesn't exist
        """
        if follower_id == following_id:
            raise BusinessRuleError("You can't follow yourself", code="SELF_FOLLOW")

        UserService.get_user(following_id)

        try:
            SupabaseClient.insert_row(FOLLOWS_TABLE, {
                "follower_id": follower_id,
                "following_id": following_id,
                "created_at": to_iso(utcnow()),
            })
        except SupabaseClientError as e:
            if e.code == "UNIQUE_VIOLATION":
                raise BusinessRuleError("Already following this user", code="ALREADY_FOLLOWING")
            raise

        UserService._adjust_counter(following_id, "followers", 1)
        UserService._adjust_counter(follower_id, "following", 1)
        logger.info(f"User {follower_id} followed {following_id}")
        NotificationService.notify(following_id, follower_id, NotificationType.NEW_FOLLOWER)

    @staticmethod
    def unfollow(follower_id: int, following_id: int) -> None:
        client = SupabaseClient.get_client()
        response = (
            client.table(FOLLOWS_TABLE)
            .delete()
            .eq("follower_id", follower_id)
            .eq("following_id", following_id)
            .execute()
        )
        if not response.data:
            raise BusinessRuleError("You are not following this user", code="NOT_FOLLOWING")

        UserService._adjust_counter(following_id, "followers", -1)
        UserService._adjust_counter(follower_id, "following", -1)
        logger.info(f"User {follower_id} unfollowed {following_id}")

    @staticmethod
    def is_following(follower_id: int, following_id: int) -> bool:
        return SupabaseClient.fetch_one(
            FOLLOWS_TABLE, follower_id=follower_id, following_id=following_id
        ) is not None

    @staticmethod
    def list_follows(user_id: int, direction: str = "followers") -> list[dict[str, Any]]:
        """
        List a user's followers or the users they follow.

        Args:
            user_id: The user whose connections to list
            direction: "followers" or "following"
        """
        if direction == "followers":
            match_column, other_column = "following_id", "follower_id"
        else:
            match_column, other_column = "follower_id", "following_id"

        client = SupabaseClient.get_client()
        response = (
            client.table(FOLLOWS_TABLE)
            .select("*")
            .eq(match_column, user_id)
            .order("created_at", desc=True)
            .execute()
        )
        ids = [row[other_column] for row in response.data or []]
        users = UserService.get_users_by_ids(ids)
        return [users[i] for i in ids if i in users]
