# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - users.py: Public profiles and follows
# - arts.py: Art catalog, views, downloads and favorites
# - taxonomies.py: Categories, formats, file types and collections
# - favorites.py: The caller's favorites
# - community.py: Posts, interactions, comments and leaderboard
# - notifications.py: The caller's notifications
# - reports.py: Filing art reports
# - uploads.py: Image upload pipeline
# - subscriptions.py: The caller's plan
# - webhooks.py: Hotmart and Doppus webhooks
# - admin.py: Staff dashboard and moderation
# - tasks.py: Background job status
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import users
from . import arts
from . import taxonomies
from . import favorites
from . import community
from . import notifications
from . import reports
from . import uploads
from . import subscriptions
from . import webhooks
from . import admin
from . import tasks

__all__ = [
    "health",
    "users",
    "arts",
    "taxonomies",
    "favorites",
    "community",
    "notifications",
    "reports",
    "uploads",
    "subscriptions",
    "webhooks",
    "admin",
    "tasks",
]
