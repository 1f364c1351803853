# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .user_service import UserService
from .taxonomy_service import CollectionService, TaxonomyService
from .art_service import ArtService
from .leaderboard_service import LeaderboardService
from .community_service import CommunityService
from .storage_service import ImageUploadResult, StorageService
from .subscription_service import SubscriptionService
from .hotmart_service import HotmartService
from .doppus_service import DoppusService
from .webhook_service import WebhookService
from .admin_service import AdminService
from .notification_service import NotificationService
from .report_service import ReportService

__all__ = [
    "UserService",
    "TaxonomyService",
    "CollectionService",
    "ArtService",
    "LeaderboardService",
    "CommunityService",
    "ImageUploadResult",
    "StorageService",
    "SubscriptionService",
    "HotmartService",
    "DoppusService",
    "WebhookService",
    "AdminService",
    "NotificationService",
    "ReportService",
]
