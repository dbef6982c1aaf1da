"""Repository for the append-only audit trail."""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from welfare_grid.database.models import ActivityLog
from welfare_grid.repositories.base_repository import BaseRepository


class ActivityLogRepository(BaseRepository[ActivityLog]):
    """Repository for ActivityLog entries. Entries are never updated."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ActivityLog)

    async def record(
        self,
        log_name: str,
        action: str,
        subject_type: Optional[str] = None,
        subject_id: Optional[int] = None,
        causer_id: Optional[int] = None,
        properties: Optional[dict[str, Any]] = None,
    ) -> ActivityLog:
        return await self.create(
            log_name=log_name,
            action=action,
            subject_type=subject_type,
            subject_id=subject_id,
            causer_id=causer_id,
            properties=properties,
        )

    async def for_subject(self, subject_type: str, subject_id: int) -> list[ActivityLog]:
        result = await self.session.execute(
            select(ActivityLog)
            .where(ActivityLog.subject_type == subject_type, ActivityLog.subject_id == subject_id)
            .order_by(ActivityLog.created_at, ActivityLog.id)
        )
        return list(result.scalars().all())
