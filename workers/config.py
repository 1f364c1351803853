# =============================================================================
# workers/config.py - Celery Worker Configuration
# =============================================================================
# Queues, limits and the beat schedule for the periodic jobs.
# =============================================================================

from celery.schedules import crontab

from app.config import settings


class CeleryConfig:
    """
    Celery configuration settings.

    These are applied to the Celery app via app.config_from_object().
    """

    # -------------------------------------------------------------------------
    # Broker Settings (Redis)
    # -------------------------------------------------------------------------

    broker_url = settings.REDIS_URL
    result_backend = settings.REDIS_URL

    # -------------------------------------------------------------------------
    # Task Settings
    # -------------------------------------------------------------------------

    # Acknowledge after completion so a crashed worker doesn't lose a sweep
    task_acks_late = True
    worker_prefetch_multiplier = 1

    result_expires = 3600

    # Full leaderboard rebuilds are the longest job
    task_time_limit = 600
    task_soft_time_limit = 540

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]

    # -------------------------------------------------------------------------
    # Task Routing
    # -------------------------------------------------------------------------

    task_queues = {
        "default": {
            "exchange": "default",
            "routing_key": "default",
        },
        "webhooks": {
            "exchange": "webhooks",
            "routing_key": "webhooks",
        },
    }

    # Payment work gets its own queue so a leaderboard rebuild can't delay it
    task_routes = {
        "workers.tasks.process_webhook_log": {"queue": "webhooks"},
        "workers.tasks.retry_failed_webhooks": {"queue": "webhooks"},
        "workers.tasks.expire_subscriptions": {"queue": "webhooks"},
    }

    task_default_queue = "default"

    # -------------------------------------------------------------------------
    # Periodic Jobs (celery beat)
    # -------------------------------------------------------------------------

    beat_schedule = {
        "expire-subscriptions": {
            "task": "workers.tasks.expire_subscriptions",
            "schedule": settings.SUBSCRIPTION_CHECK_INTERVAL_MINUTES * 60.0,
        },
        "retry-failed-webhooks": {
            "task": "workers.tasks.retry_failed_webhooks",
            "schedule": 15 * 60.0,
        },
        "recalculate-leaderboard": {
            "task": "workers.tasks.recalculate_leaderboard",
            "schedule": crontab(hour=3, minute=0),
        },
    }

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    worker_send_task_events = True
    task_send_sent_event = True

    # -------------------------------------------------------------------------
    # Timezone
    # -------------------------------------------------------------------------

    timezone = "UTC"
    enable_utc = True
