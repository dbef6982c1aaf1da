"""Claim intake: resolve the person, score the request, open the claim."""

from datetime import date
from typing import Any, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from welfare_grid.core.config import settings
from welfare_grid.core.tenancy import ensure_tenant_access
from welfare_grid.database.models import Claim
from welfare_grid.repositories.claim_repository import ClaimRepository
from welfare_grid.schemas.auth import CallerContext
from welfare_grid.schemas.beneficiary import BeneficiaryCreate
from welfare_grid.schemas.claim import ClaimIntake
from welfare_grid.schemas.enums import AssistanceType, ClaimStatus
from welfare_grid.schemas.fraud_check import FraudCheckJob
from welfare_grid.schemas.risk import DuplicateCheckResult, RiskVerdict
from welfare_grid.services.audit_service import AuditService
from welfare_grid.services.base_service import BaseService
from welfare_grid.services.configuration_service import ConfigurationService
from welfare_grid.services.identity_service import IdentityResolutionService
from welfare_grid.services.risk_scoring_service import RiskScoringService


class IntakeService(BaseService):
    """Entry point for new assistance requests.

    In synchronous mode the verdict is computed before the claim is written
    and the claim opens as PENDING. In asynchronous mode the claim opens as
    PENDING_FRAUD_CHECK and a fraud-check job is enqueued after commit.
    """

    def __init__(
        self,
        session: AsyncSession,
        config: ConfigurationService,
        dispatcher=None,
        async_fraud_check: Optional[bool] = None,
    ):
        """Initialize intake service.

        Args:
            session: Unit-of-work session
            config: Shared configuration service
            dispatcher: Object with ``async dispatch(FraudCheckJob)``; defaults
                to the Temporal dispatcher
            async_fraud_check: Defer scoring to the worker; defaults to the
                ASYNC_FRAUD_CHECK setting
        """
        super().__init__(session)
        self.identity = IdentityResolutionService(session, config)
        self.risk = RiskScoringService(session, config, identity=self.identity)
        self.claims = ClaimRepository(session)
        self.audit = AuditService(session)
        self.async_fraud_check = (
            settings.fraud.async_fraud_check if async_fraud_check is None else async_fraud_check
        )
        if dispatcher is None and self.async_fraud_check:
            from welfare_grid.temporal.dispatcher import TemporalFraudCheckDispatcher

            dispatcher = TemporalFraudCheckDispatcher()
        self.dispatcher = dispatcher

    async def assess_risk(
        self,
        first_name: str,
        last_name: str,
        birthdate: date,
        assistance_type: Optional[Union[AssistanceType, str]] = None,
    ) -> RiskVerdict:
        """Read-only risk preview for an applicant."""
        return await self.risk.assess_risk(first_name, last_name, birthdate, assistance_type)

    async def check_duplicate(
        self,
        first_name: str,
        last_name: str,
        birthdate: date,
        exclude_beneficiary_id: Optional[int] = None,
    ) -> DuplicateCheckResult:
        """Read-only duplicate report for an applicant."""
        return await self.identity.check_duplicates(first_name, last_name, birthdate, exclude_beneficiary_id)

    async def _submit(self, caller: CallerContext, intake: ClaimIntake) -> Claim:
        ensure_tenant_access(caller, intake.municipality_id)

        verdict: Optional[RiskVerdict] = None
        if not self.async_fraud_check:
            # Scored before the identity lock is taken so the lock stays short
            verdict = await self.risk.assess_risk(
                intake.first_name, intake.last_name, intake.birthdate, intake.assistance_type
            )

        beneficiary, _ = await self.identity.find_or_create_in_transaction(
            caller,
            BeneficiaryCreate(
                first_name=intake.first_name,
                last_name=intake.last_name,
                middle_name=intake.middle_name,
                suffix=intake.suffix,
                birthdate=intake.birthdate,
                gender=intake.gender,
                contact_number=intake.contact_number,
                address=intake.address,
                barangay=intake.barangay,
                home_municipality_id=intake.municipality_id,
            ),
        )

        values: dict[str, Any] = {
            "beneficiary_id": beneficiary.id,
            "municipality_id": intake.municipality_id,
            "processed_by_user_id": caller.user_id,
            "assistance_type": intake.assistance_type.value,
            "amount": intake.amount,
            "purpose": intake.purpose,
            "notes": intake.notes,
        }
        if verdict is None:
            values["status"] = ClaimStatus.PENDING_FRAUD_CHECK.value
        else:
            values.update(
                status=ClaimStatus.PENDING.value,
                is_flagged=verdict.is_risky,
                flag_reason=verdict.explanation if verdict.is_risky else None,
                risk_assessment=verdict.to_snapshot(),
            )

        claim = await self.claims.create(**values)
        await self.audit.record(
            "claims",
            "claim_created",
            subject=claim,
            caller=caller,
            after={"status": claim.status, "amount": str(claim.amount), "assistance_type": claim.assistance_type},
        )
        return claim

    async def submit_claim(
        self,
        caller: CallerContext,
        data: Union[ClaimIntake, dict[str, Any]],
    ) -> Claim:
        """Register (or reuse) the beneficiary and open a claim.

        Args:
            caller: Intake officer
            data: Applicant identity and request details

        Returns:
            The created claim
        """
        intake = self.parse(ClaimIntake, data)
        claim = await self.execute(self._submit, caller, intake, commit=True)
        self.logger.info(
            f"Claim {claim.id} created for beneficiary {claim.beneficiary_id} "
            f"at municipality {claim.municipality_id} with status {claim.status}"
        )

        if claim.status == ClaimStatus.PENDING_FRAUD_CHECK.value:
            await self._enqueue(claim, intake)
        return claim

    async def _enqueue(self, claim: Claim, intake: ClaimIntake) -> None:
        job = FraudCheckJob(
            claim_id=claim.id,
            first_name=intake.first_name,
            last_name=intake.last_name,
            birthdate=intake.birthdate.isoformat(),
            assistance_type=intake.assistance_type.value,
        )
        try:
            await self.dispatcher.dispatch(job)
        except Exception:
            # The claim stays visibly in PENDING_FRAUD_CHECK for manual follow-up
            self.logger.error(f"Failed to enqueue fraud check for claim {claim.id}", exc_info=True)
