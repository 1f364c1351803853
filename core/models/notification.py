# =============================================================================
# core/models/notification.py - In-App Notification Schemas
# =============================================================================

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .user import UserPublic


class NotificationType(str, Enum):
    """What happened to the recipient."""
    NEW_FOLLOWER = "new_follower"
    POST_LIKE = "post_like"
    POST_COMMENT = "post_comment"


class NotificationResponse(BaseModel):
    id: int
    type: NotificationType
    content: str
    is_read: bool = False
    related_post_id: int | None = None
    related_comment_id: int | None = None
    created_at: datetime | None = None
    source_user: UserPublic | None = None


class NotificationList(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int
    total_count: int
    page: int
    limit: int


class MarkReadRequest(BaseModel):
    """Either a list of ids or all=true."""
    notification_ids: list[int] = Field(default_factory=list, max_length=500)
    all: bool = False


class UnreadCount(BaseModel):
    unread_count: int
