"""Unit tests for fraud-check activities.

Activities open their own sessions from ``welfare_grid.database.base``; the
tests point that factory at the per-test SQLite database.
"""

import pytest
from temporalio.testing import ActivityEnvironment

from welfare_grid.core.exceptions import ClaimNotFoundError
from welfare_grid.database.models import Claim
from welfare_grid.repositories.activity_log_repository import ActivityLogRepository
from welfare_grid.schemas.enums import AssistanceType, ClaimStatus
from welfare_grid.schemas.fraud_check import FraudCheckJob, FraudCheckStatus
from welfare_grid.temporal.activities.fraud_check_activities import (
    record_fraud_check_failure,
    run_fraud_check,
)


@pytest.fixture(autouse=True)
def activity_sessions(monkeypatch, session_factory):
    monkeypatch.setattr("welfare_grid.database.base.async_session_maker", session_factory)


@pytest.fixture
def activity_env() -> ActivityEnvironment:
    return ActivityEnvironment()


@pytest.fixture
def deferred_claim(session, make_municipality, make_beneficiary, make_claim):
    """A committed claim awaiting its fraud check, with the matching job."""

    async def _make(status=ClaimStatus.PENDING_FRAUD_CHECK):
        municipality = await make_municipality(name="Tarlac City")
        beneficiary = await make_beneficiary(municipality)
        claim = await make_claim(beneficiary, municipality, AssistanceType.MEDICAL, status=status)
        await session.commit()
        job = FraudCheckJob(
            claim_id=claim.id,
            first_name="Juan",
            last_name="Dela Cruz",
            birthdate="1980-05-15",
            assistance_type="Medical",
        )
        return claim, job

    return _make


class TestRunFraudCheck:
    @pytest.mark.asyncio
    async def test_verdict_is_written_back(self, activity_env, session_factory, deferred_claim):
        claim, job = await deferred_claim()

        outcome = await activity_env.run(run_fraud_check, job)

        assert outcome.status == FraudCheckStatus.COMPLETED
        assert outcome.is_risky is False
        assert outcome.risk_level == "LOW"
        async with session_factory() as reader:
            stored = await reader.get(Claim, claim.id)
            assert stored.status == ClaimStatus.PENDING.value
            assert stored.risk_assessment["level"] == "LOW"

    @pytest.mark.asyncio
    async def test_risky_history_flags_the_claim(
        self, activity_env, session, session_factory, deferred_claim, make_municipality, make_beneficiary, make_claim
    ):
        claim, job = await deferred_claim()
        capas = await make_municipality(name="Capas")
        alias = await make_beneficiary(capas, last_name="De La Cruz")
        await make_claim(alias, capas, AssistanceType.MEDICAL, days_ago=6)
        await session.commit()

        outcome = await activity_env.run(run_fraud_check, job)

        assert outcome.status == FraudCheckStatus.COMPLETED
        assert outcome.is_risky is True
        async with session_factory() as reader:
            stored = await reader.get(Claim, claim.id)
            assert stored.is_flagged is True
            assert stored.flag_reason == "Received Medical assistance 6 days ago from Capas"

    @pytest.mark.asyncio
    async def test_claim_that_moved_on_is_skipped(self, activity_env, session_factory, deferred_claim):
        claim, job = await deferred_claim(status=ClaimStatus.UNDER_REVIEW)

        outcome = await activity_env.run(run_fraud_check, job)

        assert outcome.status == FraudCheckStatus.SKIPPED
        async with session_factory() as reader:
            stored = await reader.get(Claim, claim.id)
            assert stored.status == ClaimStatus.UNDER_REVIEW.value
            assert stored.risk_assessment is None

    @pytest.mark.asyncio
    async def test_redelivery_after_success_is_skipped(self, activity_env, deferred_claim):
        _, job = await deferred_claim()

        first = await activity_env.run(run_fraud_check, job)
        second = await activity_env.run(run_fraud_check, job)

        assert first.status == FraudCheckStatus.COMPLETED
        assert second.status == FraudCheckStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_missing_claim_fails(self, activity_env):
        job = FraudCheckJob(claim_id=404, first_name="Juan", last_name="Dela Cruz", birthdate="1980-05-15")

        with pytest.raises(ClaimNotFoundError):
            await activity_env.run(run_fraud_check, job)


class TestRecordFraudCheckFailure:
    @pytest.mark.asyncio
    async def test_failure_is_audited_and_claim_left_stuck(self, activity_env, session_factory, deferred_claim):
        claim, _ = await deferred_claim()

        await activity_env.run(record_fraud_check_failure, claim.id, "scoring timed out")

        async with session_factory() as reader:
            events = await ActivityLogRepository(reader).for_subject("Claim", claim.id)
            stored = await reader.get(Claim, claim.id)
        assert [e.action for e in events] == ["fraud_check_failed"]
        assert events[0].properties == {"error": "scoring timed out"}
        assert stored.status == ClaimStatus.PENDING_FRAUD_CHECK.value
