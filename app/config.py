# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are accessed via the global `settings` instance.
    Optional integrations (R2, Hotmart, Doppus) are disabled when
    their credentials are left empty.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # Database (PostgREST) and primary image storage

    SUPABASE_URL: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_ANON_KEY: str = Field(
        ...,
        description="Supabase anon/public API key"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    STORAGE_BUCKET: str = Field(
        default="designauto-images",
        description="Supabase Storage bucket for uploaded images"
    )

    SUPABASE_MAX_ROWS: int = Field(
        default=1000,
        ge=1,
        description="Rows PostgREST returns per request (the project's max-rows); full reads page by this size"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (for Celery)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # -------------------------------------------------------------------------
    # Security
    # -------------------------------------------------------------------------

    SECRET_KEY: str = Field(
        default="dev-secret-key-change-in-production",
        min_length=16,
        description="Secret key for signing access tokens"
    )

    JWT_ALGORITHM: str = Field(
        default="HS256",
        description="Algorithm used to sign access tokens"
    )

    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=60 * 24 * 7,
        ge=5,
        description="Access token lifetime in minutes"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    WEBHOOK_USER_DEFAULT_PASSWORD: str = Field(
        default="auto@123",
        min_length=6,
        description="Password given to accounts created by payment webhooks"
    )

    # -------------------------------------------------------------------------
    # Image Upload Settings
    # -------------------------------------------------------------------------

    MAX_UPLOAD_SIZE_MB: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum image upload size in MB"
    )

    ALLOWED_IMAGE_TYPES: str = Field(
        default="image/jpeg,image/png,image/webp,image/gif",
        description="Allowed image content types (comma-separated)"
    )

    LOCAL_UPLOAD_DIR: str = Field(
        default="public/uploads",
        description="Directory for the local disk storage fallback"
    )

    # -------------------------------------------------------------------------
    # Cloudflare R2 (secondary image storage)
    # -------------------------------------------------------------------------

    R2_ACCOUNT_ID: str = Field(default="", description="Cloudflare account ID")
    R2_ACCESS_KEY_ID: str = Field(default="", description="R2 access key ID")
    R2_SECRET_ACCESS_KEY: str = Field(default="", description="R2 secret access key")
    R2_BUCKET_NAME: str = Field(default="designauto-images", description="R2 bucket name")
    R2_PUBLIC_URL: str = Field(
        default="",
        description="Public base URL for the bucket (presigned URLs are used when empty)"
    )

    # -------------------------------------------------------------------------
    # Payment Integrations
    # -------------------------------------------------------------------------

    HOTMART_CLIENT_ID: str = Field(default="", description="Hotmart API client ID")
    HOTMART_CLIENT_SECRET: str = Field(default="", description="Hotmart API client secret")
    HOTMART_SECRET: str = Field(
        default="",
        description="Hotmart webhook token (hottok); validation is skipped when empty"
    )
    HOTMART_SANDBOX: bool = Field(default=True, description="Use the Hotmart sandbox API")

    DOPPUS_SECRET_KEY: str = Field(
        default="",
        description="Doppus HMAC secret; signature validation is skipped when empty"
    )

    # -------------------------------------------------------------------------
    # Scheduled Jobs
    # -------------------------------------------------------------------------

    SUBSCRIPTION_CHECK_INTERVAL_MINUTES: int = Field(
        default=60,
        ge=1,
        description="How often the expiration sweep runs"
    )

    WEBHOOK_MAX_RETRIES: int = Field(
        default=3,
        ge=0,
        le=20,
        description="Retries for webhooks that failed processing"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://designauto.com.br" -> ["http://localhost:3000", "https://designauto.com.br"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def allowed_image_types_list(self) -> list[str]:
        """Parse ALLOWED_IMAGE_TYPES into a list of lower-case content types."""
        return [t.strip().lower() for t in self.ALLOWED_IMAGE_TYPES.split(",") if t.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        """Convert MB to bytes for file size validation."""
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def r2_configured(self) -> bool:
        """True when every credential needed for R2 is present."""
        return bool(
            self.R2_ACCOUNT_ID
            and self.R2_ACCESS_KEY_ID
            and self.R2_SECRET_ACCESS_KEY
            and self.R2_BUCKET_NAME
        )

    @property
    def r2_endpoint_url(self) -> str:
        return f"https://{self.R2_ACCOUNT_ID}.r2.cloudflarestorage.com"

    @property
    def hotmart_base_url(self) -> str:
        if self.HOTMART_SANDBOX:
            return "https://sandbox-api-hot-connect.hotmart.com"
        return "https://api-hot-connect.hotmart.com"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
