# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# Scheduled and on-demand jobs: subscription expiration, webhook retries and
# leaderboard recalculation.
#
# Usage:
#   # Worker
#   celery -A workers.celery_app worker --loglevel=info -Q default,webhooks
#
#   # Scheduler for the periodic jobs
#   celery -A workers.celery_app beat --loglevel=info
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
