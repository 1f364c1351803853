# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Background jobs for payments and the community.
#
# Tasks:
# - expire_subscriptions: Downgrade accounts whose plan ran out (scheduled)
# - retry_failed_webhooks: Re-run webhook logs stuck in error (scheduled)
# - process_webhook_log: Re-run one webhook log on demand
# - recalculate_leaderboard: Rebuild points totals, levels and ranks
# =============================================================================

import logging
from typing import Any

from celery import shared_task

from app.exceptions import DesignAutoException
from core.services.community_service import CommunityService
from core.services.leaderboard_service import LeaderboardService
from core.services.subscription_service import SubscriptionService
from core.services.webhook_service import WebhookService
from lib.supabase_client import SupabaseClientError

logger = logging.getLogger(__name__)


# =============================================================================
# Subscription Tasks
# =============================================================================

@shared_task(name="workers.tasks.expire_subscriptions")
def expire_subscriptions() -> dict[str, Any]:
    """
    Expiration sweep.

    Every active or cancelled subscription whose end_date has passed is set
    to expired and its account goes back to the free level. Lifetime plans
    and staff accounts are left alone.
    """
    try:
        expired = SubscriptionService.check_expired_subscriptions()
    except SupabaseClientError as e:
        logger.exception(f"Expiration sweep failed: {e}")
        return {"success": False, "error": str(e)}

    if expired:
        logger.info(f"Expiration sweep downgraded {expired} subscriptions")
    return {"success": True, "expired": expired}


# =============================================================================
# Webhook Tasks
# =============================================================================

@shared_task(name="workers.tasks.retry_failed_webhooks")
def retry_failed_webhooks(max_retries: int | None = None) -> dict[str, Any]:
    """Reprocess error logs that still have retries left."""
    try:
        counts = WebhookService.retry_failed_webhooks(max_retries=max_retries)
    except SupabaseClientError as e:
        logger.exception(f"Webhook retry run failed: {e}")
        return {"success": False, "error": str(e)}

    return {"success": True, **counts}


@shared_task(name="workers.tasks.process_webhook_log")
def process_webhook_log(log_id: int) -> dict[str, Any]:
    """
    Re-run one logged webhook.

    Args:
        log_id: webhook_logs row id

    Returns:
        The WebhookResult as a dict
    """
    try:
        result = WebhookService.reprocess_webhook(log_id)
    except (DesignAutoException, SupabaseClientError) as e:
        logger.error(f"Could not reprocess webhook {log_id}: {e}")
        return {"success": False, "log_id": log_id, "error": str(e)}

    return result.model_dump(mode="json")


# =============================================================================
# Community Tasks
# =============================================================================

@shared_task(name="workers.tasks.recalculate_leaderboard")
def recalculate_leaderboard(user_id: int | None = None) -> dict[str, Any]:
    """
    Rebuild leaderboard rows from the points ledger.

    Args:
        user_id: Only this user when given, everyone otherwise

    Returns:
        Dict with success and the number of users recalculated
    """
    thresholds = CommunityService.get_settings().level_thresholds

    try:
        if user_id is not None:
            LeaderboardService.recalculate_user(user_id, thresholds=thresholds)
            count = 1
        else:
            count = LeaderboardService.recalculate_all(thresholds=thresholds)
    except SupabaseClientError as e:
        logger.exception(f"Leaderboard recalculation failed: {e}")
        return {"success": False, "error": str(e)}

    return {"success": True, "users": count}
