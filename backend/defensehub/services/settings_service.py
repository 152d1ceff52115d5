"""
Feature Flag Service

Admin-owned switches stored in the ``system_settings`` table under the
``features`` key. Missing keys fall back to the FeatureFlags defaults.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
import logging

from defensehub.models.system_setting import SystemSetting
from defensehub.schemas.settings import FeatureFlags, FeatureFlagsUpdate

logger = logging.getLogger(__name__)

FEATURES_KEY = "features"


class SettingsService:
    """Read and update feature flags"""

    async def _get_row(self, db: AsyncSession) -> Optional[SystemSetting]:
        result = await db.execute(
            select(SystemSetting).where(SystemSetting.key == FEATURES_KEY)
        )
        return result.scalar_one_or_none()

    async def get_flags(self, db: AsyncSession) -> FeatureFlags:
        row = await self._get_row(db)
        if row is None:
            return FeatureFlags()
        return FeatureFlags.model_validate(row.value or {})

    async def update_flags(
        self,
        db: AsyncSession,
        update: FeatureFlagsUpdate,
        updated_by: Optional[str] = None,
    ) -> FeatureFlags:
        row = await self._get_row(db)
        current = FeatureFlags.model_validate(row.value or {}) if row else FeatureFlags()

        changes = update.model_dump(exclude_unset=True, exclude_none=True)
        merged = current.model_copy(update=changes)

        if row is None:
            row = SystemSetting(
                key=FEATURES_KEY,
                value=merged.model_dump(),
                category="features",
                description="Submission and registration feature flags",
                updated_by=updated_by,
            )
            db.add(row)
        else:
            row.value = merged.model_dump()
            row.updated_by = updated_by

        await db.commit()
        logger.info(f"Feature flags updated: {changes}")
        return merged


settings_service = SettingsService()
