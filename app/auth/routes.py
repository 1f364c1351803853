# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# Registration, login and the caller's own account.
# =============================================================================

import logging

from fastapi import APIRouter, Depends, status

from app.auth.dependencies import get_current_user
from app.auth.models import AuthUser
from app.config import settings
from core.models.user import (
    PasswordChange,
    TokenResponse,
    UserLogin,
    UserRegister,
    UserResponse,
    UserUpdate,
)
from core.services.user_service import UserService
from lib.security import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter()


def _token_response(user: dict) -> TokenResponse:
    token = create_access_token(user_id=user["id"], email=user.get("email"), role=user.get("role", "free"))
    return TokenResponse(
        access_token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse(**user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(request: UserRegister) -> TokenResponse:
    """
    Create a free account and log it in.

    Raises:
        409: If the e-mail or username is already registered
    """
    user = UserService.register(request)
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(request: UserLogin) -> TokenResponse:
    """
    Exchange e-mail/username and password for an access token.

    Raises:
        401: If the credentials are wrong
        403: If the account is deactivated
    """
    user = UserService.authenticate(request.identifier, request.password)
    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    user: AuthUser = Depends(get_current_user)
) -> UserResponse:
    """Get the current authenticated user's account."""
    return UserResponse(**UserService.get_user(user.id))


@router.patch("/me", response_model=UserResponse)
async def update_current_user(
    request: UserUpdate,
    user: AuthUser = Depends(get_current_user),
) -> UserResponse:
    """Update name, bio or avatar."""
    return UserResponse(**UserService.update_profile(user.id, request))


@router.post("/me/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    request: PasswordChange,
    user: AuthUser = Depends(get_current_user),
) -> None:
    UserService.change_password(user.id, request.current_password, request.new_password)


@router.get("/verify")
async def verify_token(
    user: AuthUser = Depends(get_current_user)
) -> dict:
    """
    Verify that the current token is valid.

    Returns:
        dict: Confirmation with user_id and the current access level
    """
    return {
        "valid": True,
        "user_id": user.id,
        "email": user.email,
        "role": user.role.value,
    }
