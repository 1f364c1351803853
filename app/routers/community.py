# =============================================================================
# app/routers/community.py - Community Posts, Interactions and Ranking
# =============================================================================
# Public reads use optional auth so is_liked / is_saved can be filled in.
# Moderation endpoints live in the admin router.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status

from app.auth import AuthUser, get_current_user, get_current_user_optional
from core.models.community import (
    CommentCreate,
    CommentResponse,
    InteractionResponse,
    PostCreate,
    PostList,
    PostResponse,
    RankingResponse,
    UserCommunityStats,
)
from core.models.user import is_moderator
from core.services.community_service import CommunityService
from core.services.storage_service import StorageService

router = APIRouter()

PostId = Annotated[int, Path(ge=1, description="Post id")]


# =============================================================================
# Posts
# =============================================================================

@router.get("/posts", response_model=PostList)
async def list_posts(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    user_id: Annotated[int | None, Query(ge=1, description="Only posts by this author")] = None,
    featured: bool = False,
    search: Annotated[str | None, Query(max_length=100)] = None,
    viewer: AuthUser | None = Depends(get_current_user_optional),
):
    """Approved posts, newest first."""
    posts, total = CommunityService.list_posts(
        page=page,
        limit=limit,
        user_id=user_id,
        search=search,
        featured_only=featured,
        viewer_id=viewer.id if viewer else None,
    )
    return PostList(
        posts=[PostResponse(**p) for p in posts],
        total_count=total,
        page=page,
        limit=limit,
    )


@router.get("/posts/saved", response_model=list[PostResponse])
async def list_saved_posts(user: AuthUser = Depends(get_current_user)):
    return [PostResponse(**p) for p in CommunityService.list_saved_posts(user.id)]


@router.get("/posts/mine", response_model=PostList)
async def list_my_posts(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    user: AuthUser = Depends(get_current_user),
):
    """The caller's posts in every status, so pending ones can be tracked."""
    posts, total = CommunityService.list_posts(
        page=page,
        limit=limit,
        user_id=user.id,
        status=None,
        viewer_id=user.id,
    )
    return PostList(posts=[PostResponse(**p) for p in posts], total_count=total, page=page, limit=limit)


@router.get("/posts/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: PostId,
    viewer: AuthUser | None = Depends(get_current_user_optional),
):
    post = CommunityService.get_post(
        post_id,
        viewer_id=viewer.id if viewer else None,
        viewer_role=viewer.role if viewer else None,
    )
    return PostResponse(**post)


@router.post("/posts", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    request: PostCreate,
    user: AuthUser = Depends(get_current_user),
):
    """
    Publish a post.

    Goes live immediately for moderators or when approval is disabled;
    otherwise it waits for moderation.
    """
    post = CommunityService.create_post(user.id, user.role, request)
    return PostResponse(**CommunityService.get_post(post["id"], viewer_id=user.id, viewer_role=user.role))


@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: PostId,
    user: AuthUser = Depends(get_current_user),
):
    post = CommunityService.delete_post(post_id, user.id, user.role)
    if post.get("image_url"):
        StorageService.delete_image(post["image_url"])


# =============================================================================
# Likes and Saves
# =============================================================================

@router.post("/posts/{post_id}/like", response_model=InteractionResponse)
async def like_post(post_id: PostId, user: AuthUser = Depends(get_current_user)):
    """
    Like an approved post.

    Raises:
        400: Already liked
        404: Post missing or not approved
    """
    count = CommunityService.add_interaction("like", post_id, user.id)
    return InteractionResponse(post_id=post_id, active=True, count=count)


@router.delete("/posts/{post_id}/like", response_model=InteractionResponse)
async def unlike_post(post_id: PostId, user: AuthUser = Depends(get_current_user)):
    count = CommunityService.remove_interaction("like", post_id, user.id)
    return InteractionResponse(post_id=post_id, active=False, count=count)


@router.post("/posts/{post_id}/save", response_model=InteractionResponse)
async def save_post(post_id: PostId, user: AuthUser = Depends(get_current_user)):
    count = CommunityService.add_interaction("save", post_id, user.id)
    return InteractionResponse(post_id=post_id, active=True, count=count)


@router.delete("/posts/{post_id}/save", response_model=InteractionResponse)
async def unsave_post(post_id: PostId, user: AuthUser = Depends(get_current_user)):
    count = CommunityService.remove_interaction("save", post_id, user.id)
    return InteractionResponse(post_id=post_id, active=False, count=count)


# =============================================================================
# Comments
# =============================================================================

@router.get("/posts/{post_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    post_id: PostId,
    viewer: AuthUser | None = Depends(get_current_user_optional),
):
    """Comments oldest first. Hidden comments are shown to moderators only."""
    CommunityService.get_post(
        post_id,
        viewer_id=viewer.id if viewer else None,
        viewer_role=viewer.role if viewer else None,
    )
    include_hidden = viewer is not None and is_moderator(viewer.role)
    return [CommentResponse(**c) for c in CommunityService.list_comments(post_id, include_hidden)]


@router.post(
    "/posts/{post_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    post_id: PostId,
    request: CommentCreate,
    user: AuthUser = Depends(get_current_user),
):
    return CommentResponse(**CommunityService.add_comment(post_id, user.id, request.content))


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: Annotated[int, Path(ge=1)],
    user: AuthUser = Depends(get_current_user),
):
    CommunityService.delete_comment(comment_id, user.id, user.role)


# =============================================================================
# Ranking
# =============================================================================

@router.get("/ranking", response_model=RankingResponse)
async def get_ranking(
    period: Annotated[
        str | None,
        Query(max_length=20, description="all_time, year, month, week or an explicit key like 2025-W20"),
    ] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    viewer: AuthUser | None = Depends(get_current_user_optional),
):
    """Leaderboard for a period (current month by default) with the prizes."""
    return RankingResponse(**CommunityService.get_ranking(
        period=period,
        limit=limit,
        viewer_role=viewer.role if viewer else None,
    ))


@router.get("/stats/me", response_model=UserCommunityStats)
async def get_my_stats(user: AuthUser = Depends(get_current_user)):
    return UserCommunityStats(**CommunityService.get_user_stats(user.id))


@router.get("/users/{user_id}/stats", response_model=UserCommunityStats)
async def get_user_stats(user_id: Annotated[int, Path(ge=1)]):
    return UserCommunityStats(**CommunityService.get_user_stats(user_id))
