"""
Profile endpoint exposing the caller's loyalty standing.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from eventbooking.db.session import get_db
from eventbooking.schemas.user import UserResponse
from eventbooking.services.user_service import get_user
from eventbooking.core.security import get_current_user_id

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def read_me(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Points, tier and discount. Tier and discount are derived from points on every read."""
    return await get_user(db, user_id)
