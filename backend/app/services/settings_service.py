"""Administrator-editable settings stored in ``app_settings``."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.models.setting import AppSetting

PASSING_SCORE_KEY = "PassingScore"


async def get_setting(db: AsyncSession, key: str) -> Optional[str]:
    result = await db.execute(select(AppSetting.setting_value).where(AppSetting.setting_key == key))
    return result.scalar_one_or_none()


async def set_setting(db: AsyncSession, key: str, value, updated_by: Optional[int] = None) -> AppSetting:
    result = await db.execute(select(AppSetting).where(AppSetting.setting_key == key))
    setting = result.scalar_one_or_none()
    if setting is None:
        setting = AppSetting(setting_key=key, setting_value=str(value), updated_by=updated_by)
        db.add(setting)
    else:
        setting.setting_value = str(value)
        setting.updated_by = updated_by
    await db.commit()
    await db.refresh(setting)
    return setting


async def get_passing_score(db: AsyncSession) -> float:
    """Stored threshold, or the configured default when unset or unreadable."""
    value = await get_setting(db, PASSING_SCORE_KEY)
    try:
        return float(value) if value is not None else settings.default_passing_score
    except ValueError:
        return settings.default_passing_score
