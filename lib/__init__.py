# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Typed Supabase wrapper for database operations
# - images.py: Pillow-based WEBP optimization for uploads
# - hotmart_client.py: Hotmart API OAuth client
# - security.py: bcrypt password hashing and JWT access tokens
# - utils.py: Shared utilities (timestamps, slugs, pagination)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.images import ImageProcessingError, OptimizedImage, optimize_image, optimize_upload
from lib.hotmart_client import HotmartClient, HotmartClientError
from lib.security import create_access_token, decode_access_token, hash_password, verify_password
from lib.utils import page_range, parse_timestamp, slugify, username_from_email, utcnow

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Images
    "ImageProcessingError",
    "OptimizedImage",
    "optimize_image",
    "optimize_upload",
    # Hotmart
    "HotmartClient",
    "HotmartClientError",
    # Security
    "create_access_token",
    "decode_access_token",
    "hash_password",
    "verify_password",
    # Utils
    "page_range",
    "parse_timestamp",
    "slugify",
    "username_from_email",
    "utcnow",
]
