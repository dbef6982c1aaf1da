"""Repository for the whitelist ledger of adjudicated beneficiary pairs.

Every read and write goes through ``BeneficiaryPair`` so the two IDs are
always in canonical (smaller, larger) order. The ledger spans
municipalities, so no tenant predicate is applied here.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from welfare_grid.core.exceptions import DuplicatePairError
from welfare_grid.database.models import VerifiedDistinctPair
from welfare_grid.repositories.base_repository import BaseRepository
from welfare_grid.schemas.enums import VerificationStatus
from welfare_grid.schemas.whitelist import BeneficiaryPair


class VerifiedPairRepository(BaseRepository[VerifiedDistinctPair]):
    """Repository for VerifiedDistinctPair entity operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, VerifiedDistinctPair)

    def _standing(self, query):
        return query.where(
            VerifiedDistinctPair.deleted_at.is_(None),
            VerifiedDistinctPair.verification_status != VerificationStatus.REVOKED.value,
        )

    async def find_pair(self, pair: BeneficiaryPair) -> Optional[VerifiedDistinctPair]:
        """Current (non-revoked) adjudication of ``pair``, if any."""
        query = self._standing(
            select(VerifiedDistinctPair).where(
                VerifiedDistinctPair.beneficiary_a_id == pair.first_id,
                VerifiedDistinctPair.beneficiary_b_id == pair.second_id,
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create_pair(
        self,
        pair: BeneficiaryPair,
        verification_status: VerificationStatus,
        verification_reason: str,
        verified_by_user_id: int,
        similarity_score: Optional[int] = None,
        levenshtein_distance: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> VerifiedDistinctPair:
        """Insert a new adjudication in canonical order.

        Raises:
            DuplicatePairError: If a standing adjudication already exists
        """
        try:
            return await self.create(
                beneficiary_a_id=pair.first_id,
                beneficiary_b_id=pair.second_id,
                verification_status=VerificationStatus(verification_status).value,
                verification_reason=verification_reason,
                notes=notes,
                similarity_score=similarity_score,
                levenshtein_distance=levenshtein_distance,
                verified_by_user_id=verified_by_user_id,
                verified_at=datetime.now(timezone.utc),
            )
        except IntegrityError as e:
            raise DuplicatePairError(
                f"Beneficiaries {pair.first_id} and {pair.second_id} already have a standing adjudication",
                context={"beneficiary_a_id": pair.first_id, "beneficiary_b_id": pair.second_id},
            ) from e

    async def pairs_for(
        self,
        beneficiary_id: int,
        status: Optional[VerificationStatus] = None,
    ) -> list[VerifiedDistinctPair]:
        """All adjudications involving ``beneficiary_id`` on either side."""
        query = select(VerifiedDistinctPair).where(
            VerifiedDistinctPair.deleted_at.is_(None),
            or_(
                VerifiedDistinctPair.beneficiary_a_id == beneficiary_id,
                VerifiedDistinctPair.beneficiary_b_id == beneficiary_id,
            ),
        )
        if status is not None:
            query = query.where(
                VerifiedDistinctPair.verification_status == VerificationStatus(status).value
            )
        result = await self.session.execute(query.order_by(VerifiedDistinctPair.verified_at.desc()))
        return list(result.scalars().all())

    async def suppressed_partner_ids(self, beneficiary_id: int) -> set[int]:
        """IDs confirmed distinct from ``beneficiary_id``.

        Only VERIFIED_DISTINCT suppresses; UNDER_REVIEW and VERIFIED_DUPLICATE
        never do.
        """
        query = select(
            VerifiedDistinctPair.beneficiary_a_id, VerifiedDistinctPair.beneficiary_b_id
        ).where(
            VerifiedDistinctPair.deleted_at.is_(None),
            VerifiedDistinctPair.verification_status == VerificationStatus.VERIFIED_DISTINCT.value,
            or_(
                VerifiedDistinctPair.beneficiary_a_id == beneficiary_id,
                VerifiedDistinctPair.beneficiary_b_id == beneficiary_id,
            ),
        )
        result = await self.session.execute(query)
        return {
            BeneficiaryPair(row.beneficiary_a_id, row.beneficiary_b_id).partner_of(beneficiary_id)
            for row in result
        }

    async def list_pairs(
        self,
        status: Optional[VerificationStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[VerifiedDistinctPair]:
        query = select(VerifiedDistinctPair).where(VerifiedDistinctPair.deleted_at.is_(None))
        if status is not None:
            query = query.where(
                VerifiedDistinctPair.verification_status == VerificationStatus(status).value
            )
        query = query.order_by(VerifiedDistinctPair.created_at.desc(), VerifiedDistinctPair.id.desc())
        result = await self.session.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all())

    async def revoke(self, pair_id: int, user_id: int, reason: str) -> bool:
        """Move a standing adjudication to REVOKED.

        Returns:
            True if the pair was revoked by this call, False if it already was
        """
        try:
            result = await self.session.execute(
                update(VerifiedDistinctPair)
                .where(
                    VerifiedDistinctPair.id == pair_id,
                    VerifiedDistinctPair.deleted_at.is_(None),
                    VerifiedDistinctPair.verification_status != VerificationStatus.REVOKED.value,
                )
                .values(
                    verification_status=VerificationStatus.REVOKED.value,
                    revoked_by_user_id=user_id,
                    revoked_at=datetime.now(timezone.utc),
                    revocation_reason=reason,
                    updated_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error revoking verified pair {pair_id}: {str(e)}", exc_info=True)
            raise
        return result.rowcount == 1
