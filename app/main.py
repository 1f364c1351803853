# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the DesignAuto API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.config import settings
from app.exceptions import DesignAutoException, designauto_exception_handler
from app.routers import (
    admin,
    arts,
    community,
    favorites,
    health,
    notifications,
    reports,
    subscriptions,
    tasks,
    taxonomies,
    uploads,
    users,
    webhooks,
)
from app.auth import routes as auth_routes
from lib.supabase_client import SupabaseClientError

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    The periodic jobs (expiration sweep, webhook retries) run on celery beat,
    so startup only reports the configuration.
    """
    logger.info(f"Starting DesignAuto API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    if not settings.HOTMART_SECRET:
        logger.warning("HOTMART_SECRET is empty, Hotmart webhooks are accepted without a hottok")
    if not settings.DOPPUS_SECRET_KEY:
        logger.warning("DOPPUS_SECRET_KEY is empty, Doppus signatures are not checked")

    yield

    logger.info("Shutting down DesignAuto API")


# Create FastAPI application
app = FastAPI(
    title="DesignAuto API",
    description="""
## Design Arts Marketplace and Community

Designers publish ready-to-use arts; subscribers download them. Members post
their own work to the community and climb the leaderboard.

### Access Levels

| Role | Access |
|------|--------|
| **free** | Free arts, community |
| **premium** | Every art |
| **designer** | Premium, plus publishing arts |
| **designer_adm / support / admin** | Staff dashboard |

Premium comes from a Hotmart or Doppus subscription (or a manual grant) and
ends automatically when the plan expires.

### Quick Start

```bash
# 1. Register
curl -X POST http://localhost:8000/api/v1/auth/register \\
  -H "Content-Type: application/json" \\
  -d '{"email": "ana@example.com", "password": "secret123", "name": "Ana"}'

# 2. Browse arts with the returned token
curl http://localhost:8000/api/v1/arts -H "Authorization: Bearer <token>"
```
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Registration, login and the caller's profile"},
        {"name": "Users", "description": "Public profiles and follows"},
        {"name": "Arts", "description": "Browse, view, download and publish arts"},
        {"name": "Taxonomies", "description": "Categories, formats, file types and collections"},
        {"name": "Favorites", "description": "The caller's favorite arts"},
        {"name": "Community", "description": "Posts, likes, saves, comments and the leaderboard"},
        {"name": "Notifications", "description": "Follows, likes and comments on the caller's posts"},
        {"name": "Reports", "description": "Report problems with arts"},
        {"name": "Uploads", "description": "Image upload with WEBP optimization"},
        {"name": "Subscriptions", "description": "The caller's plan"},
        {"name": "Webhooks", "description": "Hotmart and Doppus payment notifications"},
        {"name": "Admin", "description": "Staff dashboard, moderation and subscription management"},
        {"name": "Tasks", "description": "Background job status"},
        {"name": "Health", "description": "API health and readiness checks"},
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(DesignAutoException)
async def handle_designauto_exception(request: Request, exc: DesignAutoException):
    """Handle custom DesignAuto exceptions."""
    return await designauto_exception_handler(request, exc)


@app.exception_handler(SupabaseClientError)
async def handle_database_error(request: Request, exc: SupabaseClientError):
    """Database errors the services didn't translate."""
    if exc.code == "UNIQUE_VIOLATION":
        return JSONResponse(
            status_code=409,
            content={"detail": exc.message, "code": exc.code},
        )
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={
            "detail": "Database temporarily unavailable",
            "code": exc.code,
            "suggestion": exc.suggestion,
        }
    )


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

app.include_router(auth_routes.router, prefix=f"{API_PREFIX}/auth", tags=["Auth"])
app.include_router(health.router, prefix=API_PREFIX, tags=["Health"])
app.include_router(users.router, prefix=f"{API_PREFIX}/users", tags=["Users"])
app.include_router(arts.router, prefix=f"{API_PREFIX}/arts", tags=["Arts"])

# Taxonomies
app.include_router(taxonomies.categories_router, prefix=f"{API_PREFIX}/categories", tags=["Taxonomies"])
app.include_router(taxonomies.formats_router, prefix=f"{API_PREFIX}/formats", tags=["Taxonomies"])
app.include_router(taxonomies.file_types_router, prefix=f"{API_PREFIX}/file-types", tags=["Taxonomies"])
app.include_router(taxonomies.collections_router, prefix=f"{API_PREFIX}/collections", tags=["Taxonomies"])

app.include_router(favorites.router, prefix=f"{API_PREFIX}/favorites", tags=["Favorites"])
app.include_router(community.router, prefix=f"{API_PREFIX}/community", tags=["Community"])
app.include_router(notifications.router, prefix=f"{API_PREFIX}/notifications", tags=["Notifications"])
app.include_router(reports.router, prefix=f"{API_PREFIX}/reports", tags=["Reports"])
app.include_router(uploads.router, prefix=f"{API_PREFIX}/uploads", tags=["Uploads"])
app.include_router(subscriptions.router, prefix=f"{API_PREFIX}/subscriptions", tags=["Subscriptions"])
app.include_router(webhooks.router, prefix=f"{API_PREFIX}/webhooks", tags=["Webhooks"])
app.include_router(admin.router, prefix=f"{API_PREFIX}/admin", tags=["Admin"])
app.include_router(tasks.router, prefix=f"{API_PREFIX}/tasks", tags=["Tasks"])

# Images stored by the local disk fallback
app.mount(
    "/uploads",
    StaticFiles(directory=settings.LOCAL_UPLOAD_DIR, check_dir=False),
    name="uploads",
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "DesignAuto API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": f"{API_PREFIX}/health",
    }
