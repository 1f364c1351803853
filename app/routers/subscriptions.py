# =============================================================================
# app/routers/subscriptions.py - The Caller's Subscription
# =============================================================================

from fastapi import APIRouter, Depends

from app.auth import AuthUser, get_current_user
from core.models.subscription import SubscriptionResponse
from core.models.user import can_access_premium
from core.services.subscription_service import SubscriptionService
from core.services.user_service import UserService

router = APIRouter()


@router.get("/me")
async def get_my_subscription(user: AuthUser = Depends(get_current_user)):
    """
    Current plan and access level.

    Returns:
        role, has_premium, the plan fields stored on the account and the
        subscription row (null when the account never had one)
    """
    account = UserService.get_user(user.id)
    subscription = SubscriptionService.get_for_user(user.id)

    return {
        "role": account.get("role"),
        "has_premium": can_access_premium(user.role),
        "plan_type": account.get("plan_type"),
        "plan_source": account.get("plan_source"),
        "plan_expires_at": account.get("plan_expires_at"),
        "is_lifetime": bool(account.get("is_lifetime")),
        "subscription": SubscriptionResponse(**subscription) if subscription else None,
    }
