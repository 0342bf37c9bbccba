"""
User preference routes read by the editor on mount.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.auth import get_current_user
from api.schemas.user import PreferencesResponse, PreferencesUpdateRequest
from infrastructure.database.connection import get_db
from infrastructure.database.models.user import User

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me/preferences", response_model=PreferencesResponse)
async def get_preferences(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me/preferences", response_model=PreferencesResponse)
async def update_preferences(
    body: PreferencesUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if body.auto_save is not None:
        current_user.auto_save = body.auto_save
    if body.auto_save_interval is not None:
        current_user.auto_save_interval = body.auto_save_interval

    await db.commit()
    await db.refresh(current_user)
    return current_user
