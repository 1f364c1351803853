# =============================================================================
# app/routers/favorites.py - The Caller's Favorite Arts
# =============================================================================

from fastapi import APIRouter, Depends

from app.auth import AuthUser, get_current_user
from core.models.art import ArtResponse
from core.services.art_service import ArtService

router = APIRouter()


@router.get("", response_model=list[ArtResponse])
async def list_favorites(user: AuthUser = Depends(get_current_user)):
    """Favorited arts, most recently added first."""
    return [ArtResponse(**art) for art in ArtService.list_favorites(user.id)]
