"""Fraud-check activities that wrap the scoring and claim services.

These activities provide Temporal-compatible wrappers around:
- welfare_grid/services/risk_scoring_service.py
- welfare_grid/services/claim_service.py

Failures propagate so Temporal can retry them; the write-back is guarded on
the claim still being PENDING_FRAUD_CHECK, so a retried or duplicated
delivery cannot overwrite a claim that has moved on.
"""

from datetime import date
from typing import Optional

from temporalio import activity

from welfare_grid.schemas.enums import ClaimStatus
from welfare_grid.schemas.fraud_check import FraudCheckJob, FraudCheckOutcome, FraudCheckStatus

_configuration = None


def _configuration_service(session_factory):
    """Worker-wide configuration service so the settings cache is shared."""
    global _configuration
    from welfare_grid.services.configuration_service import ConfigurationService

    if _configuration is None or _configuration.session_factory is not session_factory:
        _configuration = ConfigurationService(session_factory=session_factory)
    return _configuration


@activity.defn
async def run_fraud_check(job: FraudCheckJob) -> FraudCheckOutcome:
    """
    Re-run risk scoring for a deferred claim and write the verdict back.

    Args:
        job: Claim ID plus the identity and category to score

    Returns:
        FraudCheckOutcome COMPLETED when the verdict was applied, SKIPPED when
        the claim had already left PENDING_FRAUD_CHECK
    """
    activity.logger.info(
        f"Starting fraud check for claim {job.claim_id} "
        f"(attempt {activity.info().attempt})"
    )

    # Import inside function to avoid sandbox issues
    from welfare_grid.database.base import async_session_maker
    from welfare_grid.core.exceptions import ClaimNotFoundError
    from welfare_grid.repositories.claim_repository import ClaimRepository
    from welfare_grid.services.claim_service import ClaimService
    from welfare_grid.services.risk_scoring_service import RiskScoringService

    config = _configuration_service(async_session_maker)

    async with async_session_maker() as session:
        claim = await ClaimRepository(session).get_by_id(job.claim_id)
        if claim is None:
            raise ClaimNotFoundError(f"Claim {job.claim_id} not found")
        if claim.status != ClaimStatus.PENDING_FRAUD_CHECK.value:
            activity.logger.info(
                f"Claim {job.claim_id} is already {claim.status}; skipping fraud check"
            )
            return FraudCheckOutcome(claim_id=job.claim_id, status=FraudCheckStatus.SKIPPED)

        verdict = await RiskScoringService(session, config).assess_risk(
            job.first_name,
            job.last_name,
            date.fromisoformat(job.birthdate),
            job.assistance_type,
        )

        applied = await ClaimService(session).update_fraud_result(
            job.claim_id,
            verdict.is_risky,
            verdict.explanation if verdict.is_risky else None,
            verdict.to_snapshot(),
        )

    activity.logger.info(
        f"Fraud check for claim {job.claim_id} finished: level={verdict.level.value}, applied={applied}"
    )
    return FraudCheckOutcome(
        claim_id=job.claim_id,
        status=FraudCheckStatus.COMPLETED if applied else FraudCheckStatus.SKIPPED,
        is_risky=verdict.is_risky,
        risk_level=verdict.level.value,
    )


@activity.defn
async def record_fraud_check_failure(claim_id: int, error: Optional[str] = None) -> None:
    """
    Record that a claim's fraud check exhausted its retries.

    The claim itself is not touched; it stays in PENDING_FRAUD_CHECK until a
    reviewer acts on it.
    """
    from welfare_grid.database.base import async_session_maker
    from welfare_grid.database.session import session_scope
    from welfare_grid.services.audit_service import AuditService

    async with session_scope(async_session_maker) as session:
        await AuditService(session).record(
            "fraud_check",
            "fraud_check_failed",
            subject_type="Claim",
            subject_id=claim_id,
            error=error,
        )

    activity.logger.error(
        f"Fraud check for claim {claim_id} permanently failed; claim left in PENDING_FRAUD_CHECK: {error}"
    )
