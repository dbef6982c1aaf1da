"""Repository for claim data access operations."""

from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from welfare_grid.core.tenancy import apply_tenant_scope
from welfare_grid.database.models import Claim, ClaimNote, utcnow
from welfare_grid.repositories.base_repository import BaseRepository
from welfare_grid.schemas.auth import CallerContext
from welfare_grid.schemas.enums import ACTIVE_CLAIM_STATUSES, ClaimStatus


class ClaimRepository(BaseRepository[Claim]):
    """Repository for Claim entity operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Claim)

    async def list_claims(
        self,
        caller: CallerContext,
        status: Optional[ClaimStatus] = None,
        beneficiary_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Claim]:
        """Claims visible to ``caller``, newest first."""
        query = apply_tenant_scope(self._live(select(Claim)), Claim.municipality_id, caller)
        if status is not None:
            query = query.where(Claim.status == ClaimStatus(status).value)
        if beneficiary_id is not None:
            query = query.where(Claim.beneficiary_id == beneficiary_id)
        query = query.order_by(Claim.created_at.desc(), Claim.id.desc()).offset(skip).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_flagged(
        self,
        caller: CallerContext,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Claim]:
        """Flagged claims still awaiting a decision, visible to ``caller``."""
        query = apply_tenant_scope(self._live(select(Claim)), Claim.municipality_id, caller)
        query = (
            query.where(
                Claim.is_flagged.is_(True),
                Claim.status.in_([ClaimStatus.PENDING.value, ClaimStatus.UNDER_REVIEW.value]),
            )
            .order_by(Claim.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_recent_claims_for_beneficiaries(
        self,
        beneficiary_ids: Iterable[int],
        since: datetime,
    ) -> list[Claim]:
        """Claim history of the given beneficiaries across ALL municipalities.

        This is the one read that deliberately skips the tenant predicate:
        fraud scoring has to see claims filed at offices the caller cannot.
        Only statuses that represent real or pending aid are returned.

        Args:
            beneficiary_ids: Beneficiaries whose history is pooled
            since: Lower bound on ``created_at``

        Returns:
            Claims newest first
        """
        ids = list(beneficiary_ids)
        if not ids:
            return []

        try:
            query = (
                self._live(select(Claim))
                .where(
                    Claim.beneficiary_id.in_(ids),
                    Claim.status.in_([s.value for s in ACTIVE_CLAIM_STATUSES]),
                    Claim.created_at >= since,
                )
                .order_by(Claim.created_at.desc(), Claim.id.desc())
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error loading cross-tenant claim history for {ids}: {str(e)}",
                exc_info=True,
            )
            raise

    async def transition(
        self,
        claim_id: int,
        allowed_from: Iterable[ClaimStatus],
        to_status: ClaimStatus,
        **values: Any,
    ) -> bool:
        """Compare-and-set status change.

        The update only matches while the claim is still in one of
        ``allowed_from``; a concurrent change makes it a no-op.

        Returns:
            True if the row was updated
        """
        allowed = [ClaimStatus(s).value for s in allowed_from]
        try:
            result = await self.session.execute(
                update(Claim)
                .where(
                    Claim.id == claim_id,
                    Claim.status.in_(allowed),
                    Claim.deleted_at.is_(None),
                )
                .values(status=to_status.value, updated_at=utcnow(), **values)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error moving claim {claim_id} to {to_status.value}: {str(e)}",
                exc_info=True,
            )
            raise
        return result.rowcount == 1

    async def update_fraud_result(
        self,
        claim_id: int,
        is_risky: bool,
        reason: Optional[str],
        risk_assessment: dict[str, Any],
    ) -> bool:
        """Write a fraud verdict back, only if the claim still awaits it.

        Applies ``PENDING_FRAUD_CHECK -> PENDING`` together with the risk fields.
        Any other current status means the claim already advanced and the
        write is skipped.

        Returns:
            True if the verdict was applied
        """
        values: dict[str, Any] = {
            "is_flagged": is_risky,
            "risk_assessment": risk_assessment,
        }
        if is_risky:
            values["flag_reason"] = reason

        return await self.transition(
            claim_id,
            [ClaimStatus.PENDING_FRAUD_CHECK],
            ClaimStatus.PENDING,
            **values,
        )

    async def add_note(self, claim_id: int, user_id: int, note: str) -> ClaimNote:
        claim_note = ClaimNote(claim_id=claim_id, user_id=user_id, note=note)
        self.session.add(claim_note)
        await self.session.flush()
        return claim_note

    async def get_notes(self, claim_id: int) -> list[ClaimNote]:
        result = await self.session.execute(
            select(ClaimNote).where(ClaimNote.claim_id == claim_id).order_by(ClaimNote.created_at, ClaimNote.id)
        )
        return list(result.scalars().all())
