"""Repository for runtime-editable system settings."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from welfare_grid.database.models import SystemSetting
from welfare_grid.repositories.base_repository import BaseRepository


class SystemSettingRepository(BaseRepository[SystemSetting]):
    """Repository for SystemSetting entity operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, SystemSetting)

    async def get_by_key(self, key: str) -> Optional[SystemSetting]:
        result = await self.session.execute(
            select(SystemSetting).where(SystemSetting.key == key, SystemSetting.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()
