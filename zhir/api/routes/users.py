"""
User routes: /api/auth
"""

from fastapi import APIRouter, Depends

from zhir.api.dependencies import get_current_user
from zhir.api.models.users import UserResponse
from zhir.services.user_service import user_service

router = APIRouter(prefix="/api", tags=["Users"])


@router.get("/auth", response_model=UserResponse)
async def current_user(user_id: str = Depends(get_current_user)):
    """Return the caller's user record, creating it on first sight."""
    return user_service.ensure_user(user_id)
