"""Audit sink for structured state-change events."""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from welfare_grid.database.models import ActivityLog
from welfare_grid.repositories.activity_log_repository import ActivityLogRepository
from welfare_grid.schemas.auth import CallerContext


class AuditService:
    """Writes audit events in the caller's transaction.

    Events are only durable if the surrounding unit of work commits, so a
    rejected change never leaves an audit entry behind.
    """

    def __init__(self, session: AsyncSession):
        self.repository = ActivityLogRepository(session)

    async def record(
        self,
        log_name: str,
        action: str,
        subject: Any = None,
        caller: Optional[CallerContext] = None,
        before: Optional[dict[str, Any]] = None,
        after: Optional[dict[str, Any]] = None,
        subject_type: Optional[str] = None,
        subject_id: Optional[int] = None,
        **extra: Any,
    ) -> ActivityLog:
        """Append one event.

        Args:
            log_name: Event stream (claims, beneficiaries, whitelist, fraud_check)
            action: What happened, e.g. ``claim_approved``
            subject: ORM instance the event is about
            caller: Actor; None for system-initiated events
            before: Values prior to the change
            after: Values after the change
            subject_type: Explicit subject type when no instance is at hand
            subject_id: Explicit subject ID when no instance is at hand
            **extra: Additional properties stored with the event
        """
        properties: dict[str, Any] = dict(extra)
        if before is not None:
            properties["before"] = before
        if after is not None:
            properties["after"] = after
        if caller is not None and caller.name:
            properties["causer_name"] = caller.name

        return await self.repository.record(
            log_name=log_name,
            action=action,
            subject_type=subject_type or (type(subject).__name__ if subject is not None else None),
            subject_id=subject_id if subject_id is not None else getattr(subject, "id", None),
            causer_id=caller.user_id if caller is not None else None,
            properties=properties or None,
        )
