"""Manual adjudication of beneficiary pairs.

A VERIFIED_DISTINCT adjudication stops a pair from flagging each other in
risk scoring; revoking it puts the pair back into detection. The ledger spans
municipalities, so only province-wide staff may write to it.
"""

from typing import Any, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from welfare_grid.core.exceptions import (
    BeneficiaryNotFoundError,
    DuplicatePairError,
    PairNotFoundError,
    TenantAccessError,
    ValidationError,
)
from welfare_grid.database.models import VerifiedDistinctPair
from welfare_grid.repositories.beneficiary_repository import BeneficiaryRepository
from welfare_grid.repositories.verified_pair_repository import VerifiedPairRepository
from welfare_grid.schemas.auth import CallerContext
from welfare_grid.schemas.enums import VerificationStatus
from welfare_grid.schemas.whitelist import BeneficiaryPair, PairCreate
from welfare_grid.services.audit_service import AuditService
from welfare_grid.services.base_service import BaseService
from welfare_grid.utils.name_matching import name_distance, similarity_score


def _require_provincial(caller: CallerContext, action: str) -> None:
    if not caller.is_provincial:
        raise TenantAccessError(
            f"User {caller.user_id} may not {action}; whitelist changes need province-wide access",
            municipality_id=caller.municipality_id,
        )


class WhitelistService(BaseService):
    """Create, revoke and query whitelist adjudications."""

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.pairs = VerifiedPairRepository(session)
        self.beneficiaries = BeneficiaryRepository(session)
        self.audit = AuditService(session)

    async def find_pair(self, beneficiary_id_1: int, beneficiary_id_2: int) -> Optional[VerifiedDistinctPair]:
        """Standing adjudication for two beneficiaries, in either order."""
        pair = BeneficiaryPair.of(beneficiary_id_1, beneficiary_id_2)
        return await self.execute(self.pairs.find_pair, pair)

    async def get_pair_status(self, beneficiary_id_1: int, beneficiary_id_2: int) -> Optional[VerificationStatus]:
        existing = await self.find_pair(beneficiary_id_1, beneficiary_id_2)
        if existing is None:
            return None
        return VerificationStatus(existing.verification_status)

    async def _whitelist(self, caller: CallerContext, data: PairCreate) -> VerifiedDistinctPair:
        _require_provincial(caller, "adjudicate beneficiary pairs")
        pair = data.pair

        first = await self.beneficiaries.get_by_id(pair.first_id)
        second = await self.beneficiaries.get_by_id(pair.second_id)
        missing = [i for i, b in ((pair.first_id, first), (pair.second_id, second)) if b is None]
        if missing:
            raise BeneficiaryNotFoundError(f"Beneficiaries not found: {missing}")

        existing = await self.pairs.find_pair(pair)
        if existing is not None:
            raise DuplicatePairError(
                f"Beneficiaries {pair.first_id} and {pair.second_id} are already adjudicated "
                f"as {existing.verification_status}; revoke it first",
                context={"pair_id": existing.id, "verification_status": existing.verification_status},
            )

        # Similarity snapshot at verification time
        distance = name_distance(first.first_name, first.last_name, second.first_name, second.last_name)
        record = await self.pairs.create_pair(
            pair,
            verification_status=data.verification_status,
            verification_reason=data.verification_reason,
            verified_by_user_id=caller.user_id,
            similarity_score=similarity_score(distance),
            levenshtein_distance=distance,
            notes=data.notes,
        )
        await self.audit.record(
            "whitelist",
            "pair_adjudicated",
            subject=record,
            caller=caller,
            after={
                "beneficiary_a_id": record.beneficiary_a_id,
                "beneficiary_b_id": record.beneficiary_b_id,
                "verification_status": record.verification_status,
                "similarity_score": record.similarity_score,
            },
            reason=data.verification_reason,
        )
        return record

    async def whitelist_pair(
        self,
        caller: CallerContext,
        data: Union[PairCreate, dict[str, Any]],
    ) -> VerifiedDistinctPair:
        """Record a manual adjudication of two beneficiaries.

        Raises:
            TenantAccessError: If the caller is tenant-scoped
            BeneficiaryNotFoundError: If either beneficiary is missing
            DuplicatePairError: If the pair already has a standing adjudication
        """
        payload = self.parse(PairCreate, data)
        record = await self.execute(self._whitelist, caller, payload, commit=True)
        self.logger.info(
            f"Pair ({record.beneficiary_a_id}, {record.beneficiary_b_id}) adjudicated "
            f"{record.verification_status} by user {caller.user_id}"
        )
        return record

    async def _revoke(self, caller: CallerContext, pair_id: int, reason: str) -> bool:
        _require_provincial(caller, "revoke beneficiary pairs")
        if not reason or not reason.strip():
            raise ValidationError("A revocation reason is required")

        record = await self.pairs.get_by_id(pair_id)
        if record is None:
            raise PairNotFoundError(f"Verified pair {pair_id} not found")

        previous_status = record.verification_status
        revoked = await self.pairs.revoke(pair_id, caller.user_id, reason.strip())
        if not revoked:
            self.logger.warning(f"Verified pair {pair_id} is already revoked")
            return False

        await self.session.refresh(record)
        await self.audit.record(
            "whitelist",
            "pair_revoked",
            subject=record,
            caller=caller,
            before={"verification_status": previous_status},
            after={"verification_status": VerificationStatus.REVOKED.value},
            reason=reason.strip(),
        )
        return True

    async def revoke_pair(self, caller: CallerContext, pair_id: int, reason: str) -> bool:
        """Revoke an adjudication so the pair re-enters fraud detection.

        Returns:
            True if revoked now, False if it was already revoked
        """
        revoked = await self.execute(self._revoke, caller, pair_id, reason, commit=True)
        if revoked:
            self.logger.info(f"Verified pair {pair_id} revoked by user {caller.user_id}")
        return revoked

    async def pairs_for(
        self,
        beneficiary_id: int,
        status: Optional[VerificationStatus] = None,
    ) -> list[VerifiedDistinctPair]:
        return await self.execute(self.pairs.pairs_for, beneficiary_id, status)

    async def list_pairs(
        self,
        status: Optional[VerificationStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[VerifiedDistinctPair]:
        return await self.execute(self.pairs.list_pairs, status, skip, limit)
