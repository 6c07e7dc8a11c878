from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import get_current_user_id, get_optional_user_id
from conduit.schemas import ProfileResponse
from conduit.services import user_service

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])

@router.get("/{username}", response_model=ProfileResponse)
async def get_profile(
    username: str,
    viewer_id: int | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_profile(db, username, viewer_id)

@router.post("/{username}/follow", response_model=ProfileResponse)
async def follow_user(
    username: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.follow_user(db, username, user_id)

@router.delete("/{username}/follow", response_model=ProfileResponse)
async def unfollow_user(
    username: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.unfollow_user(db, username, user_id)
