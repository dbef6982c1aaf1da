"""Claim lifecycle state machine.

PENDING_FRAUD_CHECK -> PENDING -> UNDER_REVIEW -> APPROVED -> DISBURSED, with
REJECTED and CANCELLED as terminal side exits. Every status change is a
compare-and-set on the current status, so a concurrent change turns the
second writer into a conflict (manual transitions) or a no-op (fraud
write-back) instead of an overwrite.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from welfare_grid.core.exceptions import ClaimNotFoundError, InvalidTransitionError, ValidationError
from welfare_grid.core.tenancy import ensure_tenant_access
from welfare_grid.database.models import Claim, ClaimNote
from welfare_grid.repositories.claim_repository import ClaimRepository
from welfare_grid.repositories.municipality_repository import MunicipalityRepository
from welfare_grid.schemas.auth import CallerContext
from welfare_grid.schemas.enums import ClaimStatus
from welfare_grid.services.audit_service import AuditService
from welfare_grid.services.base_service import BaseService

# action -> (statuses it may start from, resulting status)
TRANSITIONS: dict[str, tuple[tuple[ClaimStatus, ...], ClaimStatus]] = {
    "mark_under_review": (
        (ClaimStatus.PENDING, ClaimStatus.PENDING_FRAUD_CHECK),
        ClaimStatus.UNDER_REVIEW,
    ),
    "approve": (
        (ClaimStatus.PENDING, ClaimStatus.UNDER_REVIEW),
        ClaimStatus.APPROVED,
    ),
    "reject": (
        (
            ClaimStatus.PENDING_FRAUD_CHECK,
            ClaimStatus.PENDING,
            ClaimStatus.UNDER_REVIEW,
            ClaimStatus.APPROVED,
        ),
        ClaimStatus.REJECTED,
    ),
    "cancel": (
        (ClaimStatus.PENDING, ClaimStatus.UNDER_REVIEW),
        ClaimStatus.CANCELLED,
    ),
    "disburse": (
        (ClaimStatus.APPROVED,),
        ClaimStatus.DISBURSED,
    ),
}


def allowed_actions(status: ClaimStatus) -> list[str]:
    """Manual actions available from ``status``."""
    return [action for action, (sources, _) in TRANSITIONS.items() if ClaimStatus(status) in sources]


class ClaimService(BaseService):
    """Reads, manual transitions and the fraud-check write-back for claims."""

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.claims = ClaimRepository(session)
        self.municipalities = MunicipalityRepository(session)
        self.audit = AuditService(session)

    async def _load(self, caller: Optional[CallerContext], claim_id: int) -> Claim:
        claim = await self.claims.get_by_id(claim_id)
        if claim is None:
            raise ClaimNotFoundError(f"Claim {claim_id} not found")
        ensure_tenant_access(caller, claim.municipality_id)
        return claim

    async def get_claim(self, caller: CallerContext, claim_id: int) -> Claim:
        return await self.execute(self._load, caller, claim_id)

    async def list_claims(
        self,
        caller: CallerContext,
        status: Optional[ClaimStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Claim]:
        """Claims of the caller's municipality, or all for province-wide staff."""
        return await self.execute(self.claims.list_claims, caller, status, None, skip, limit)

    async def list_flagged_claims(self, caller: CallerContext, skip: int = 0, limit: int = 50) -> list[Claim]:
        return await self.execute(self.claims.list_flagged, caller, skip, limit)

    async def _transition(
        self,
        caller: CallerContext,
        claim_id: int,
        action: str,
        values: Optional[dict[str, Any]] = None,
        **audit_extra: Any,
    ) -> Claim:
        sources, target = TRANSITIONS[action]
        claim = await self._load(caller, claim_id)
        previous = claim.status
        if ClaimStatus(previous) not in sources:
            raise InvalidTransitionError(claim_id, previous, action)

        values = dict(values or {})
        values.setdefault("processed_by_user_id", caller.user_id)
        applied = await self.claims.transition(claim_id, sources, target, **values)
        await self.session.refresh(claim)
        if not applied:
            # Lost a race with another writer
            raise InvalidTransitionError(claim_id, claim.status, action)

        await self.audit.record(
            "claims",
            f"claim_{action}",
            subject=claim,
            caller=caller,
            before={"status": previous},
            after={"status": claim.status},
            **audit_extra,
        )
        return claim

    async def _run_transition(self, caller: CallerContext, claim_id: int, action: str, **kwargs) -> Claim:
        claim = await self.execute(self._transition, caller, claim_id, action, commit=True, **kwargs)
        self.logger.info(f"Claim {claim_id}: {action} -> {claim.status} by user {caller.user_id}")
        return claim

    async def mark_under_review(
        self,
        caller: CallerContext,
        claim_id: int,
        assignee_user_id: Optional[int] = None,
    ) -> Claim:
        """Pull a claim into investigation, optionally assigning a reviewer.

        Also the manual way out for a claim stuck in PENDING_FRAUD_CHECK.
        """
        return await self._run_transition(
            caller,
            claim_id,
            "mark_under_review",
            values={
                "under_review_at": datetime.now(timezone.utc),
                "processed_by_user_id": assignee_user_id or caller.user_id,
            },
        )

    async def approve(self, caller: CallerContext, claim_id: int, notes: Optional[str] = None) -> Claim:
        values: dict[str, Any] = {"approved_at": datetime.now(timezone.utc)}
        if notes:
            values["notes"] = notes
        return await self._run_transition(caller, claim_id, "approve", values=values)

    async def reject(self, caller: CallerContext, claim_id: int, reason: str) -> Claim:
        """Reject a claim that has not reached a terminal state.

        Raises:
            ValidationError: If no reason is given
        """
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required")
        return await self._run_transition(
            caller,
            claim_id,
            "reject",
            values={"rejected_at": datetime.now(timezone.utc), "rejection_reason": reason.strip()},
            reason=reason.strip(),
        )

    async def cancel(self, caller: CallerContext, claim_id: int, reason: Optional[str] = None) -> Claim:
        values: dict[str, Any] = {}
        if reason:
            values["notes"] = reason
        return await self._run_transition(caller, claim_id, "cancel", values=values, reason=reason)

    async def _disburse(
        self,
        caller: CallerContext,
        claim_id: int,
        proof_reference: Optional[str],
    ) -> Claim:
        claim = await self._transition(
            caller,
            claim_id,
            "disburse",
            values={"disbursed_at": datetime.now(timezone.utc)},
            proof_reference=proof_reference,
        )
        municipality = await self.municipalities.debit_budget(claim.municipality_id, claim.amount)
        if municipality.is_over_budget:
            self.logger.warning(
                f"Municipality {municipality.id} is over budget by {-municipality.remaining_budget}"
            )
        return claim

    async def disburse(
        self,
        caller: CallerContext,
        claim_id: int,
        proof_reference: Optional[str] = None,
    ) -> Claim:
        """Mark an approved claim disbursed and debit its municipality's budget.

        Both effects commit together or not at all.

        Args:
            caller: Acting user
            claim_id: Claim to disburse
            proof_reference: Identifier of the externally stored proof

        Returns:
            The disbursed claim
        """
        claim = await self.execute(self._disburse, caller, claim_id, proof_reference, commit=True)
        self.logger.info(
            f"Claim {claim_id} disbursed: {claim.amount} debited from municipality {claim.municipality_id}"
        )
        return claim

    async def _update_fraud_result(
        self,
        claim_id: int,
        is_risky: bool,
        reason: Optional[str],
        risk_assessment: dict[str, Any],
    ) -> bool:
        claim = await self.claims.get_by_id(claim_id)
        if claim is None:
            raise ClaimNotFoundError(f"Claim {claim_id} not found")

        applied = await self.claims.update_fraud_result(claim_id, is_risky, reason, risk_assessment)
        if not applied:
            return False

        await self.session.refresh(claim)
        await self.audit.record(
            "fraud_check",
            "fraud_check_completed",
            subject=claim,
            before={"status": ClaimStatus.PENDING_FRAUD_CHECK.value},
            after={"status": claim.status, "is_flagged": claim.is_flagged},
            risk_level=risk_assessment.get("level"),
        )
        return True

    async def update_fraud_result(
        self,
        claim_id: int,
        is_risky: bool,
        reason: Optional[str],
        risk_assessment: dict[str, Any],
    ) -> bool:
        """Apply an asynchronous fraud verdict if the claim still awaits it.

        A claim that has already moved on (for example, a reviewer took it
        under review) is left untouched, which makes repeated deliveries of
        the same verdict harmless.

        Returns:
            True if applied, False if the claim had already advanced
        """
        applied = await self.execute(
            self._update_fraud_result, claim_id, is_risky, reason, risk_assessment, commit=True
        )
        if applied:
            self.logger.info(f"Fraud result applied to claim {claim_id}: risky={is_risky}")
        else:
            self.logger.warning(
                f"Fraud result for claim {claim_id} skipped; claim is no longer PENDING_FRAUD_CHECK"
            )
        return applied

    async def _add_note(self, caller: CallerContext, claim_id: int, note: str) -> ClaimNote:
        claim = await self._load(caller, claim_id)
        claim_note = await self.claims.add_note(claim.id, caller.user_id, note)
        await self.audit.record("claims", "claim_note_added", subject=claim, caller=caller, note_id=claim_note.id)
        return claim_note

    async def add_note(self, caller: CallerContext, claim_id: int, note: str) -> ClaimNote:
        """Attach an investigation note. Notes cannot be edited afterwards."""
        if not note or not note.strip():
            raise ValidationError("Note text is required")
        return await self.execute(self._add_note, caller, claim_id, note.strip(), commit=True)

    async def get_notes(self, caller: CallerContext, claim_id: int) -> list[ClaimNote]:
        await self.get_claim(caller, claim_id)
        return await self.execute(self.claims.get_notes, claim_id)
