# =============================================================================
# core/models/community.py - Community and Gamification Schemas
# =============================================================================
# Posts, comments, points and leaderboard rows for the community area.
#
# Points flow:
#   approved post      -> author earns points_for_post
#   like / save        -> post author earns points_for_like / points_for_save
#   featured post      -> author earns points_for_weekly_featured
# Leaderboard rows aggregate points per (user, period) and carry a level
# name chosen from CommunitySettings.level_thresholds.
# =============================================================================

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .user import UserPublic


class PostStatus(str, Enum):
    """
    Moderation state of a community post.

    Flow: pending -> approved | rejected
    Posts by moderators, or when approval is disabled, start approved.
    """
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PointsReason(str, Enum):
    POST = "post"
    LIKE = "like"
    SAVE = "save"
    FEATURED = "featured"


DEFAULT_LEVEL_THRESHOLDS: dict[str, int] = {
    "Iniciante KDG": 0,
    "Colaborador KDG": 501,
    "Destaque KDG": 2001,
    "Elite KDG": 5001,
    "Lenda KDG": 10001,
}


# =============================================================================
# Settings
# =============================================================================

class CommunitySettings(BaseModel):
    """
    Community configuration (single row in community_settings).

    Defaults are used until an admin saves the settings for the first time.
    """
    points_for_post: int = Field(default=20, ge=0)
    points_for_like: int = Field(default=5, ge=0)
    points_for_save: int = Field(default=10, ge=0)
    points_for_weekly_featured: int = Field(default=50, ge=0)

    prize_1st_place: str = "R$ 0"
    prize_2nd_place: str = "R$ 0"
    prize_3rd_place: str = "R$ 0"

    level_thresholds: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_LEVEL_THRESHOLDS),
        description="Level name -> minimum total points"
    )

    require_approval: bool = True
    allow_comments: bool = True
    show_ranking: bool = True

    updated_at: datetime | None = None


class CommunitySettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""
    points_for_post: int | None = Field(default=None, ge=0)
    points_for_like: int | None = Field(default=None, ge=0)
    points_for_save: int | None = Field(default=None, ge=0)
    points_for_weekly_featured: int | None = Field(default=None, ge=0)
    prize_1st_place: str | None = None
    prize_2nd_place: str | None = None
    prize_3rd_place: str | None = None
    level_thresholds: dict[str, int] | None = None
    require_approval: bool | None = None
    allow_comments: bool | None = None
    show_ranking: bool | None = None


# =============================================================================
# Posts
# =============================================================================

class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str | None = Field(default=None, max_length=5000)
    image_url: str = Field(..., min_length=1)
    thumbnail_url: str | None = None
    edit_link: str | None = None


class PostStatusUpdate(BaseModel):
    status: PostStatus


class PostResponse(BaseModel):
    id: int
    user_id: int
    title: str
    content: str | None = None
    image_url: str
    thumbnail_url: str | None = None
    edit_link: str | None = None
    status: PostStatus
    is_featured: bool = False
    view_count: int = 0
    created_at: datetime | None = None

    # Enrichment for listings
    author: UserPublic | None = None
    likes_count: int = 0
    saves_count: int = 0
    comments_count: int = 0
    is_liked: bool = False
    is_saved: bool = False


class PostList(BaseModel):
    posts: list[PostResponse]
    total_count: int
    page: int
    limit: int


class InteractionResponse(BaseModel):
    """Result of a like/save toggle."""
    post_id: int
    active: bool
    count: int


# =============================================================================
# Comments
# =============================================================================

class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    id: int
    post_id: int
    user_id: int
    content: str
    is_hidden: bool = False
    created_at: datetime | None = None
    author: UserPublic | None = None


# =============================================================================
# Leaderboard
# =============================================================================

class LeaderboardEntry(BaseModel):
    user_id: int
    period: str
    total_points: int = 0
    rank: int | None = None
    level: str
    post_count: int = 0
    likes_received: int = 0
    saves_received: int = 0
    featured_count: int = 0
    last_updated: datetime | None = None
    user: UserPublic | None = None


class RankingResponse(BaseModel):
    period: str
    enabled: bool = True
    entries: list[LeaderboardEntry]
    prizes: dict[str, str] = Field(default_factory=dict)


class UserCommunityStats(BaseModel):
    user_id: int
    all_time: LeaderboardEntry | None = None
    current_month: LeaderboardEntry | None = None


class CommunityAdminStats(BaseModel):
    total_posts: int
    pending_posts: int
    approved_posts: int
    rejected_posts: int
    total_comments: int
    hidden_comments: int
    participants: int
