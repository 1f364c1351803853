# =============================================================================
# app/routers/users.py - Public Profiles and Follows
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status

from app.auth import AuthUser, get_current_user, get_current_user_optional
from core.models.art import ArtList, ArtResponse
from core.models.user import UserPublic
from core.services.art_service import ArtService
from core.services.user_service import UserService

router = APIRouter()

UserId = Annotated[int, Path(ge=1, description="User id")]


@router.get("/{user_id}", response_model=UserPublic)
async def get_profile(user_id: UserId):
    """Public profile of a user or designer."""
    return UserPublic(**UserService.get_user(user_id))


@router.get("/{user_id}/arts", response_model=ArtList)
async def list_designer_arts(
    user_id: UserId,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    viewer: AuthUser | None = Depends(get_current_user_optional),
):
    """Arts published by a designer, newest first."""
    arts, total = ArtService.list_arts(
        page=page,
        limit=limit,
        designer_id=user_id,
        viewer_role=viewer.role if viewer else None,
    )
    return ArtList(
        arts=[ArtResponse(**art) for art in arts],
        total_count=total,
        page=page,
        limit=limit,
    )


@router.get("/{user_id}/followers", response_model=list[UserPublic])
async def list_followers(user_id: UserId):
    UserService.get_user(user_id)
    return [UserPublic(**u) for u in UserService.list_follows(user_id, direction="followers")]


@router.get("/{user_id}/following", response_model=list[UserPublic])
async def list_following(user_id: UserId):
    UserService.get_user(user_id)
    return [UserPublic(**u) for u in UserService.list_follows(user_id, direction="following")]


@router.get("/{user_id}/follow")
async def get_follow_status(
    user_id: UserId,
    user: AuthUser = Depends(get_current_user),
):
    """Whether the caller follows this user."""
    return {"user_id": user_id, "following": UserService.is_following(user.id, user_id)}


@router.post("/{user_id}/follow", status_code=status.HTTP_204_NO_CONTENT)
async def follow_user(
    user_id: UserId,
    user: AuthUser = Depends(get_current_user),
):
    """
    Follow a user.

    Raises:
        400: Following yourself or someone you already follow
        404: Unknown user
    """
    UserService.follow(user.id, user_id)


@router.delete("/{user_id}/follow", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow_user(
    user_id: UserId,
    user: AuthUser = Depends(get_current_user),
):
    UserService.unfollow(user.id, user_id)
