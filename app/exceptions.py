# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Every error carries a machine-readable code and, where possible, a
# suggestion telling the client how to fix the request.
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class DesignAutoException(Exception):
    """
    Base exception for the DesignAuto API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "DESIGNAUTO_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Generic Resource Exceptions
# =============================================================================

class NotFoundError(DesignAutoException):
    """Raised when a resource ID doesn't exist (or is hidden from the caller)."""

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            message=f"{resource} not found: {resource_id}",
            code=f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            status_code=404,
            suggestion=f"Check that the {resource.lower()} id is correct",
            details={"resource": resource, "id": str(resource_id)}
        )


class ConflictError(DesignAutoException):
    """Raised when a unique value is already taken."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            code="CONFLICT",
            status_code=409,
            suggestion=f"Choose a different {field}" if field else None,
            details={"field": field} if field else None
        )


class BusinessRuleError(DesignAutoException):
    """Raised when a request is well-formed but not allowed in the current state."""

    def __init__(self, message: str, code: str = "BUSINESS_RULE", details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code=code,
            status_code=400,
            details=details
        )


# =============================================================================
# Auth Exceptions
# =============================================================================

class AuthenticationError(DesignAutoException):
    """Raised when credentials or tokens are invalid."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(
            message=message,
            code="AUTHENTICATION_FAILED",
            status_code=401,
            suggestion="Log in again to obtain a fresh access token"
        )


class PermissionDeniedError(DesignAutoException):
    """Raised when the user's access level doesn't allow the operation."""

    def __init__(self, message: str = "You don't have permission for this action", required: list[str] | None = None):
        super().__init__(
            message=message,
            code="PERMISSION_DENIED",
            status_code=403,
            suggestion="Upgrade your plan or ask an administrator for access" if required else None,
            details={"required_roles": required} if required else None
        )


# =============================================================================
# Upload Exceptions
# =============================================================================

class InvalidFileTypeError(DesignAutoException):
    """Raised when uploaded file type is not allowed."""

    def __init__(self, filename: str, allowed: list[str]):
        super().__init__(
            message=f"Invalid file type: {filename}",
            code="INVALID_FILE_TYPE",
            status_code=400,
            suggestion=f"Only these file types are supported: {', '.join(allowed)}",
            details={"filename": filename, "allowed_types": allowed}
        )


class FileTooLargeError(DesignAutoException):
    """Raised when uploaded file exceeds size limit."""

    def __init__(self, size_mb: float, max_mb: int):
        super().__init__(
            message=f"File too large: {size_mb:.1f}MB (max: {max_mb}MB)",
            code="FILE_TOO_LARGE",
            status_code=413,
            suggestion=f"Upload a file smaller than {max_mb}MB",
            details={"size_mb": size_mb, "max_mb": max_mb}
        )


class InvalidImageError(DesignAutoException):
    """Raised when an uploaded file cannot be decoded as an image."""

    def __init__(self, filename: str, error: str):
        super().__init__(
            message=f"Failed to read image: {error}",
            code="INVALID_IMAGE",
            status_code=400,
            suggestion="Check that the file is a valid JPEG, PNG, WEBP or GIF image",
            details={"filename": filename, "error": error}
        )


class StorageUploadError(DesignAutoException):
    """Raised when a storage backend rejects an upload."""

    def __init__(self, backend: str, error: str):
        super().__init__(
            message=f"Failed to upload file to {backend}: {error}",
            code="STORAGE_UPLOAD_ERROR",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
            details={"backend": backend, "error": error}
        )


# =============================================================================
# Webhook Exceptions
# =============================================================================

class WebhookSignatureError(DesignAutoException):
    """Raised when a webhook's token or signature doesn't match."""

    def __init__(self, source: str):
        super().__init__(
            message=f"Invalid {source} webhook signature",
            code="INVALID_WEBHOOK_SIGNATURE",
            status_code=401,
            suggestion=f"Check the {source} secret configured on both sides",
            details={"source": source}
        )


class WebhookPayloadError(DesignAutoException):
    """Raised when a webhook payload is missing required fields."""

    def __init__(self, source: str, error: str):
        super().__init__(
            message=f"Invalid {source} webhook payload: {error}",
            code="INVALID_WEBHOOK_PAYLOAD",
            status_code=400,
            details={"source": source, "error": error}
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def designauto_exception_handler(
    request: Request,
    exc: DesignAutoException
) -> JSONResponse:
    """
    Convert DesignAutoException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers
    )
