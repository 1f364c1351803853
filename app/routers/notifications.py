# =============================================================================
# app/routers/notifications.py - The Caller's Notifications
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.auth import AuthUser, get_current_user
from core.models.notification import (
    MarkReadRequest,
    NotificationList,
    NotificationResponse,
    UnreadCount,
)
from core.services.notification_service import NotificationService

router = APIRouter()


@router.get("", response_model=NotificationList)
async def list_notifications(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    unread: bool = False,
    user: AuthUser = Depends(get_current_user),
):
    """Newest first; unread=true leaves out the ones already read."""
    rows, total = NotificationService.list_notifications(user.id, page=page, limit=limit, unread_only=unread)
    return NotificationList(
        notifications=[NotificationResponse(**n) for n in rows],
        unread_count=NotificationService.unread_count(user.id),
        total_count=total,
        page=page,
        limit=limit,
    )


@router.get("/unread-count", response_model=UnreadCount)
async def get_unread_count(user: AuthUser = Depends(get_current_user)):
    return UnreadCount(unread_count=NotificationService.unread_count(user.id))


@router.post("/mark-read", response_model=UnreadCount)
async def mark_read(request: MarkReadRequest, user: AuthUser = Depends(get_current_user)):
    """
    Mark the given notifications (or all of them) as read.

    Raises:
        400: Neither notification_ids nor all=true
    """
    remaining = NotificationService.mark_read(
        user.id,
        notification_ids=request.notification_ids,
        mark_all=request.all,
    )
    return UnreadCount(unread_count=remaining)
