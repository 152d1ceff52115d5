"""
Feature Flag API (administrators)
"""
from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from defensehub.core.database import get_db
from defensehub.schemas.settings import FeatureFlags, FeatureFlagsUpdate
from defensehub.services.settings_service import settings_service

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("/features", response_model=FeatureFlags)
async def get_features(db: AsyncSession = Depends(get_db)):
    return await settings_service.get_flags(db)


@router.put("/features", response_model=FeatureFlags)
async def update_features(
    data: FeatureFlagsUpdate,
    db: AsyncSession = Depends(get_db),
    x_user_id: Optional[str] = Header(None)
):
    """Update only the flags present in the body"""
    return await settings_service.update_flags(db, data, updated_by=x_user_id)
