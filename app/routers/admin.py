# =============================================================================
# app/routers/admin.py - Admin Dashboard Endpoints
# =============================================================================
# Everything here requires a staff account (admin, designer_adm, support).
# Some endpoints narrow that further:
#   - community moderation and answering art reports: admin or designer_adm
#   - account, plan and settings changes: admin
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from app.auth import AuthUser, require_admin, require_moderator, require_staff
from core.models.community import (
    CommentResponse,
    CommunityAdminStats,
    CommunitySettings,
    CommunitySettingsUpdate,
    PostList,
    PostResponse,
    PostStatus,
    PostStatusUpdate,
)
from core.models.report import (
    ReportList,
    ReportResponse,
    ReportStatus,
    ReportTypeCreate,
    ReportTypeResponse,
    ReportUpdate,
)
from core.models.subscription import (
    ManualCancelRequest,
    ManualGrantRequest,
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
)
from core.models.user import AccessLevel, ActiveUpdate, RoleUpdate, UserList, UserResponse
from core.services.admin_service import AdminService
from core.services.community_service import CommunityService
from core.services.report_service import ReportService
from core.services.storage_service import StorageService
from core.services.subscription_service import SubscriptionService
from core.services.user_service import UserService
from core.services.webhook_service import WebhookService
from lib.hotmart_client import HotmartClient
from app.exceptions import BusinessRuleError

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_staff)])

ItemId = Annotated[int, Path(ge=1)]
Page = Annotated[int, Query(ge=1)]
Limit = Annotated[int, Query(ge=1, le=100)]


# =============================================================================
# Dashboard
# =============================================================================

@router.get("/dashboard")
async def get_dashboard():
    """Counters for users, arts, activity, subscriptions, webhooks and community."""
    return AdminService.get_dashboard_stats()


@router.get("/storage/check")
async def check_storage():
    """Connectivity of each storage backend, in fallback order."""
    return {"backends": StorageService.check_backends()}


@router.get("/hotmart/test")
async def test_hotmart_connection():
    return HotmartClient.test_connection()


# =============================================================================
# Users
# =============================================================================

@router.get("/users", response_model=UserList)
async def list_users(
    page: Page = 1,
    limit: Limit = 20,
    role: AccessLevel | None = None,
    search: Annotated[str | None, Query(max_length=100)] = None,
):
    users, total = UserService.list_users(
        page=page,
        limit=limit,
        role=role.value if role else None,
        search=search,
    )
    return UserList(users=[UserResponse(**u) for u in users], total_count=total, page=page, limit=limit)


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: ItemId,
    request: RoleUpdate,
    admin: AuthUser = Depends(require_admin),
):
    if user_id == admin.id and request.role != AccessLevel.ADMIN:
        raise BusinessRuleError("Admins can't demote themselves", code="SELF_DEMOTION")
    return UserResponse(**UserService.update_role(user_id, request.role))


@router.patch("/users/{user_id}/active", response_model=UserResponse)
async def set_user_active(
    user_id: ItemId,
    request: ActiveUpdate,
    admin: AuthUser = Depends(require_admin),
):
    if user_id == admin.id and not request.is_active:
        raise BusinessRuleError("Admins can't deactivate themselves", code="SELF_DEACTIVATION")
    return UserResponse(**UserService.set_active(user_id, request.is_active))


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: ItemId,
    admin: AuthUser = Depends(require_admin),
):
    if user_id == admin.id:
        raise BusinessRuleError("Admins can't delete themselves", code="SELF_DELETION")
    UserService.delete_user(user_id)


# =============================================================================
# Subscriptions
# =============================================================================

@router.get("/subscriptions", response_model=SubscriptionList)
async def list_subscriptions(
    page: Page = 1,
    limit: Limit = 20,
    status_filter: Annotated[SubscriptionStatus | None, Query(alias="status")] = None,
    source: SubscriptionSource | None = None,
):
    rows, total = SubscriptionService.list_subscriptions(page, limit, status=status_filter, source=source)
    return SubscriptionList(
        subscriptions=[SubscriptionResponse(**row) for row in rows],
        total_count=total,
        page=page,
        limit=limit,
    )


@router.get("/subscriptions/stats", response_model=SubscriptionStats)
async def get_subscription_stats():
    return SubscriptionStats(**SubscriptionService.get_stats())


@router.post("/subscriptions/grant")
async def grant_subscription(
    request: ManualGrantRequest,
    admin: AuthUser = Depends(require_admin),
):
    """
    Give a plan without a payment (source manual).

    Creates the account when the e-mail is new.
    """
    outcome = SubscriptionService.create_or_update_subscription(
        email=request.email,
        name=request.name,
        plan_type=request.plan_type,
        source=SubscriptionSource.MANUAL,
        duration_days=request.duration_days,
    )
    logger.info(f"Admin {admin.id} granted {request.plan_type.value} to {request.email}")
    return {
        "user": UserResponse(**outcome["user"]),
        "subscription": SubscriptionResponse(**outcome["subscription"]),
        "user_created": outcome["user_created"],
    }


@router.post("/subscriptions/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    request: ManualCancelRequest,
    admin: AuthUser = Depends(require_admin),
):
    subscription = SubscriptionService.cancel_subscription(
        request.email,
        immediate=request.immediate,
        reason=request.reason or f"cancelled by admin {admin.id}",
    )
    if subscription is None:
        raise BusinessRuleError(f"No subscription found for {request.email}", code="NO_SUBSCRIPTION")
    return SubscriptionResponse(**subscription)


@router.post("/subscriptions/expire-check")
async def run_expiration_check(admin: AuthUser = Depends(require_admin)):
    """Run the expiration sweep now instead of waiting for the schedule."""
    return {"expired": SubscriptionService.check_expired_subscriptions()}


# =============================================================================
# Product Mappings
# =============================================================================

@router.get("/product-mappings", response_model=list[ProductMappingResponse])
async def list_product_mappings(source: SubscriptionSource | None = None):
    return [ProductMappingResponse(**m) for m in SubscriptionService.list_mappings(source)]


@router.post(
    "/product-mappings",
    response_model=ProductMappingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_product_mapping(
    request: ProductMappingCreate,
    admin: AuthUser = Depends(require_admin),
):
    return ProductMappingResponse(**SubscriptionService.create_mapping(request))


@router.put("/product-mappings/{mapping_id}", response_model=ProductMappingResponse)
async def update_product_mapping(
    mapping_id: ItemId,
    request: ProductMappingCreate,
    admin: AuthUser = Depends(require_admin),
):
    return ProductMappingResponse(**SubscriptionService.update_mapping(mapping_id, request))


@router.delete("/product-mappings/{mapping_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product_mapping(
    mapping_id: ItemId,
    admin: AuthUser = Depends(require_admin),
):
    SubscriptionService.delete_mapping(mapping_id)


# =============================================================================
# Webhook Logs
# =============================================================================

@router.get("/webhooks", response_model=WebhookLogList)
async def list_webhook_logs(
    page: Page = 1,
    limit: Limit = 20,
    source: SubscriptionSource | None = None,
    status_filter: Annotated[WebhookStatus | None, Query(alias="status")] = None,
    search: Annotated[str | None, Query(max_length=100, description="E-mail or transaction id")] = None,
):
    logs, total = WebhookService.list_logs(page, limit, source=source, status=status_filter, search=search)
    return WebhookLogList(
        logs=[WebhookLogResponse(**log) for log in logs],
        total_count=total,
        page=page,
        limit=limit,
    )


@router.get("/webhooks/{log_id}", response_model=WebhookLogResponse)
async def get_webhook_log(log_id: ItemId):
    return WebhookLogResponse(**WebhookService.get_log(log_id))


@router.post("/webhooks/{log_id}/reprocess", response_model=WebhookResult)
async def reprocess_webhook(log_id: ItemId):
    """Run a logged webhook again (increments retry_count)."""
    return WebhookService.reprocess_webhook(log_id)


# =============================================================================
# Community Moderation
# =============================================================================

@router.get("/community/stats", response_model=CommunityAdminStats)
async def get_community_stats(user: AuthUser = Depends(require_moderator)):
    return CommunityAdminStats(**CommunityService.get_admin_stats())


@router.get("/community/posts", response_model=PostList)
async def list_community_posts(
    page: Page = 1,
    limit: Limit = 20,
    status_filter: Annotated[PostStatus | None, Query(alias="status")] = None,
    search: Annotated[str | None, Query(max_length=100)] = None,
    user: AuthUser = Depends(require_moderator),
):
    """Posts in any status (all when no status is given)."""
    posts, total = CommunityService.list_posts(
        page=page,
        limit=limit,
        status=status_filter,
        search=search,
        viewer_id=user.id,
    )
    return PostList(posts=[PostResponse(**p) for p in posts], total_count=total, page=page, limit=limit)


@router.patch("/community/posts/{post_id}/status", response_model=PostResponse)
async def moderate_post(
    post_id: ItemId,
    request: PostStatusUpdate,
    user: AuthUser = Depends(require_moderator),
):
    """
    Approve or reject a post.

    The first approval awards the author points_for_post.
    """
    CommunityService.set_post_status(post_id, request.status)
    return PostResponse(**CommunityService.get_post(post_id, viewer_id=user.id, viewer_role=user.role))


@router.put("/community/posts/{post_id}/featured", response_model=PostResponse)
async def feature_post(post_id: ItemId, user: AuthUser = Depends(require_moderator)):
    CommunityService.set_featured(post_id, True)
    return PostResponse(**CommunityService.get_post(post_id, viewer_id=user.id, viewer_role=user.role))


@router.delete("/community/posts/{post_id}/featured", response_model=PostResponse)
async def unfeature_post(post_id: ItemId, user: AuthUser = Depends(require_moderator)):
    CommunityService.set_featured(post_id, False)
    return PostResponse(**CommunityService.get_post(post_id, viewer_id=user.id, viewer_role=user.role))


@router.get("/community/comments")
async def list_community_comments(
    page: Page = 1,
    limit: Limit = 50,
    hidden: bool | None = None,
    user: AuthUser = Depends(require_moderator),
):
    comments, total = CommunityService.list_all_comments(page, limit, hidden=hidden)
    return {
        "comments": [CommentResponse(**c) for c in comments],
        "total_count": total,
        "page": page,
        "limit": limit,
    }


@router.patch("/community/comments/{comment_id}/toggle-hidden", response_model=CommentResponse)
async def toggle_comment_hidden(comment_id: ItemId, user: AuthUser = Depends(require_moderator)):
    return CommentResponse(**CommunityService.toggle_comment_hidden(comment_id))


@router.get("/community/settings", response_model=CommunitySettings)
async def get_community_settings(admin: AuthUser = Depends(require_admin)):
    return CommunityService.get_settings()


@router.patch("/community/settings", response_model=CommunitySettings)
async def update_community_settings(
    request: CommunitySettingsUpdate,
    admin: AuthUser = Depends(require_admin),
):
    return CommunityService.update_settings(request)


@router.post("/community/recalculate", status_code=status.HTTP_202_ACCEPTED)
async def recalculate_leaderboard(admin: AuthUser = Depends(require_admin)):
    """
    Queue a full leaderboard recalculation on the workers.

    Poll GET /api/v1/tasks/{task_id} for the outcome.
    """
    try:
        from workers.tasks import recalculate_leaderboard as recalculate_task

        task = recalculate_task.delay()
    except Exception as e:
        logger.error(f"Error queueing leaderboard recalculation: {e}")
        raise HTTPException(status_code=503, detail=f"Failed to queue task. Is Redis running? Error: {e}")

    logger.info(f"Admin {admin.id} queued leaderboard recalculation (task {task.id})")
    return {"task_id": task.id, "status": "queued"}


# =============================================================================
# Reports
# =============================================================================

@router.get("/reports", response_model=ReportList)
async def list_reports(
    page: Page = 1,
    limit: Limit = 10,
    status_filter: Annotated[ReportStatus | None, Query(alias="status")] = None,
):
    """Reports, newest first, with their type, reporter and responder."""
    reports, total = ReportService.list_reports(page=page, limit=limit, status=status_filter)
    return ReportList(reports=[ReportResponse(**r) for r in reports], total_count=total, page=page, limit=limit)


@router.get("/reports/types", response_model=list[ReportTypeResponse])
async def list_all_report_types():
    """Every report type, inactive ones included."""
    return [ReportTypeResponse(**t) for t in ReportService.list_types(include_inactive=True)]


@router.post("/reports/types", response_model=ReportTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_report_type(request: ReportTypeCreate, admin: AuthUser = Depends(require_admin)):
    return ReportTypeResponse(**ReportService.create_type(request))


@router.get("/reports/{report_id}", response_model=ReportResponse)
async def get_report(report_id: ItemId):
    return ReportResponse(**ReportService.get_report(report_id))


@router.put("/reports/{report_id}", response_model=ReportResponse)
async def update_report(
    report_id: ItemId,
    request: ReportUpdate,
    user: AuthUser = Depends(require_moderator),
):
    """
    Answer a report or move it through the queue.

    The caller is recorded as the responder.
    """
    return ReportResponse(**ReportService.update_report(report_id, request, responder_id=user.id))


@router.delete("/reports/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(report_id: ItemId, user: AuthUser = Depends(require_moderator)):
    ReportService.delete_report(report_id)
