# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - user.py: Accounts, access levels, auth inputs
# - art.py: Arts, taxonomies, collections
# - community.py: Posts, comments, points, leaderboard
# - subscription.py: Plans, subscriptions, product mappings, webhook logs
# - report.py: Art reports
# - notification.py: In-app notifications
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# User Models - Accounts and access levels
# -----------------------------------------------------------------------------
from .user import (
    AccessLevel,
    ActiveUpdate,
    PasswordChange,
    RoleUpdate,
    TokenResponse,
    UserList,
    UserLogin,
    UserPublic,
    UserRegister,
    UserResponse,
    UserUpdate,
    can_access_premium,
    can_publish,
    is_moderator,
    is_staff,
    normalize_role,
)

# -----------------------------------------------------------------------------
# Catalog Models - Arts and taxonomies
# -----------------------------------------------------------------------------
from .art import (
    ArtCreate,
    ArtList,
    ArtResponse,
    ArtSort,
    ArtUpdate,
    CollectionCreate,
    CollectionResponse,
    CollectionUpdate,
    DownloadResponse,
    FavoriteToggleResponse,
    TaxonomyCreate,
    TaxonomyItem,
    TaxonomyUpdate,
)

# -----------------------------------------------------------------------------
# Community Models - Posts and gamification
# -----------------------------------------------------------------------------
from .community import (
    DEFAULT_LEVEL_THRESHOLDS,
    CommentCreate,
    CommentResponse,
    CommunityAdminStats,
    CommunitySettings,
    CommunitySettingsUpdate,
    InteractionResponse,
    LeaderboardEntry,
    PointsReason,
    PostCreate,
    PostList,
    PostResponse,
    PostStatus,
    PostStatusUpdate,
    RankingResponse,
    UserCommunityStats,
)

# -----------------------------------------------------------------------------
# Subscription Models - Plans, payments, webhooks
# -----------------------------------------------------------------------------
from .subscription import (
    PLAN_DURATION_DAYS,
    ManualCancelRequest,
    ManualGrantRequest,
    PlanResolution,
    PlanType,
    ProductMappingCreate,
    ProductMappingResponse,
    SubscriptionList,
    SubscriptionResponse,
    SubscriptionSource,
    SubscriptionStats,
    SubscriptionStatus,
    WebhookLogList,
    WebhookLogResponse,
    WebhookResult,
    WebhookStatus,
    can_transition,
)

# -----------------------------------------------------------------------------
# Report Models - Art reports and the staff queue
# -----------------------------------------------------------------------------
from .report import (
    ReportCreate,
    ReportList,
    ReportResponse,
    ReportStatus,
    ReportTypeCreate,
    ReportTypeResponse,
    ReportUpdate,
)

# -----------------------------------------------------------------------------
# Notification Models - In-app notifications
# -----------------------------------------------------------------------------
from .notification import (
    MarkReadRequest,
    NotificationList,
    NotificationResponse,
    NotificationType,
    UnreadCount,
)

# -----------------------------------------------------------------------------
# __all__ - Explicit public API
# -----------------------------------------------------------------------------
__all__ = [
    # User
    "AccessLevel",
    "ActiveUpdate",
    "PasswordChange",
    "RoleUpdate",
    "TokenResponse",
    "UserList",
    "UserLogin",
    "UserPublic",
    "UserRegister",
    "UserResponse",
    "UserUpdate",
    "can_access_premium",
    "can_publish",
    "is_moderator",
    "is_staff",
    "normalize_role",
    # Catalog
    "ArtCreate",
    "ArtList",
    "ArtResponse",
    "ArtSort",
    "ArtUpdate",
    "CollectionCreate",
    "CollectionResponse",
    "CollectionUpdate",
    "DownloadResponse",
    "FavoriteToggleResponse",
    "TaxonomyCreate",
    "TaxonomyItem",
    "TaxonomyUpdate",
    # Community
    "DEFAULT_LEVEL_THRESHOLDS",
    "CommentCreate",
    "CommentResponse",
    "CommunityAdminStats",
    "CommunitySettings",
    "CommunitySettingsUpdate",
    "InteractionResponse",
    "LeaderboardEntry",
    "PointsReason",
    "PostCreate",
    "PostList",
    "PostResponse",
    "PostStatus",
    "PostStatusUpdate",
    "RankingResponse",
    "UserCommunityStats",
    # Subscription
    "PLAN_DURATION_DAYS",
    "ManualCancelRequest",
    "ManualGrantRequest",
    "PlanResolution",
    "PlanType",
    "ProductMappingCreate",
    "ProductMappingResponse",
    "SubscriptionList",
    "SubscriptionResponse",
    "SubscriptionSource",
    "SubscriptionStats",
    "SubscriptionStatus",
    "WebhookLogList",
    "WebhookLogResponse",
    "WebhookResult",
    "WebhookStatus",
    "can_transition",
    # Report
    "ReportCreate",
    "ReportList",
    "ReportResponse",
    "ReportStatus",
    "ReportTypeCreate",
    "ReportTypeResponse",
    "ReportUpdate",
    # Notification
    "MarkReadRequest",
    "NotificationList",
    "NotificationResponse",
    "NotificationType",
    "UnreadCount",
]
