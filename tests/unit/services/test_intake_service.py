"""Unit tests for claim intake in synchronous and asynchronous modes."""

from datetime import date
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from welfare_grid.core.exceptions import TenantAccessError, ValidationError
from welfare_grid.database.models import Beneficiary, Claim
from welfare_grid.schemas.enums import AssistanceType, ClaimStatus, RiskLevel
from welfare_grid.schemas.fraud_check import FraudCheckJob
from welfare_grid.services.intake_service import IntakeService


def intake(municipality_id: int, **overrides) -> dict:
    data = {
        "first_name": "Juan",
        "last_name": "Dela Cruz",
        "birthdate": date(1980, 5, 15),
        "gender": "Male",
        "municipality_id": municipality_id,
        "assistance_type": "Medical",
        "amount": "2500.00",
        "purpose": "Hospital bill",
    }
    data.update(overrides)
    return data


@pytest.fixture
def sync_intake(session, config) -> IntakeService:
    return IntakeService(session, config, async_fraud_check=False)


@pytest.fixture
def dispatcher() -> AsyncMock:
    mock = AsyncMock()
    mock.dispatch.return_value = "run-id"
    return mock


@pytest.fixture
def async_intake(session, config, dispatcher) -> IntakeService:
    return IntakeService(session, config, dispatcher=dispatcher, async_fraud_check=True)


class TestSynchronousIntake:
    """Scored before the claim is written."""

    @pytest.mark.asyncio
    async def test_new_applicant_opens_clean_pending_claim(
        self, sync_intake, session, make_municipality, make_caller
    ):
        municipality = await make_municipality()
        await session.commit()

        claim = await sync_intake.submit_claim(make_caller(municipality.id), intake(municipality.id))

        assert claim.status == ClaimStatus.PENDING.value
        assert claim.is_flagged is False
        assert claim.risk_assessment["level"] == RiskLevel.LOW.value
        beneficiary = await session.get(Beneficiary, claim.beneficiary_id)
        assert beneficiary.last_name_phonetic == "D426"

    @pytest.mark.asyncio
    async def test_recent_claim_elsewhere_flags_the_new_claim(
        self, sync_intake, session, make_municipality, make_beneficiary, make_claim, make_caller
    ):
        here = await make_municipality(name="Capas")
        there = await make_municipality(name="Tarlac City")
        beneficiary = await make_beneficiary(there)
        await make_claim(beneficiary, there, AssistanceType.MEDICAL, days_ago=10)
        await session.commit()

        claim = await sync_intake.submit_claim(make_caller(here.id), intake(here.id))

        assert claim.is_flagged is True
        assert claim.flag_reason == "Received Medical assistance 10 days ago from Tarlac City"
        assert claim.risk_assessment["level"] == RiskLevel.MEDIUM.value

    @pytest.mark.asyncio
    async def test_returning_applicant_reuses_the_golden_record(
        self, sync_intake, session, make_municipality, make_caller
    ):
        municipality = await make_municipality()
        await session.commit()
        caller = make_caller(municipality.id)

        first = await sync_intake.submit_claim(caller, intake(municipality.id))
        second = await sync_intake.submit_claim(
            caller, intake(municipality.id, first_name="JUAN", assistance_type="Food")
        )

        assert second.beneficiary_id == first.beneficiary_id
        assert await session.scalar(select(func.count()).select_from(Beneficiary)) == 1

    @pytest.mark.asyncio
    async def test_tenant_caller_cannot_file_for_another_office(
        self, sync_intake, session, make_municipality, make_caller
    ):
        home = await make_municipality()
        other = await make_municipality()
        await session.commit()

        with pytest.raises(TenantAccessError):
            await sync_intake.submit_claim(make_caller(home.id), intake(other.id))

        assert await session.scalar(select(func.count()).select_from(Claim)) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [{"amount": "0"}, {"amount": "1000000.00"}, {"assistance_type": "Lottery"}, {"first_name": "   "}],
    )
    async def test_invalid_intake_is_rejected(self, sync_intake, make_caller, overrides):
        with pytest.raises(ValidationError):
            await sync_intake.submit_claim(make_caller(1), intake(1, **overrides))


class TestAsynchronousIntake:
    """Claim opens as PENDING_FRAUD_CHECK and a job is enqueued."""

    @pytest.mark.asyncio
    async def test_claim_waits_for_fraud_check(
        self, async_intake, dispatcher, session, make_municipality, make_caller
    ):
        municipality = await make_municipality()
        await session.commit()

        claim = await async_intake.submit_claim(make_caller(municipality.id), intake(municipality.id))

        assert claim.status == ClaimStatus.PENDING_FRAUD_CHECK.value
        assert claim.risk_assessment is None
        dispatcher.dispatch.assert_awaited_once()
        job = dispatcher.dispatch.await_args.args[0]
        assert job == FraudCheckJob(
            claim_id=claim.id,
            first_name="Juan",
            last_name="Dela Cruz",
            birthdate="1980-05-15",
            assistance_type="Medical",
        )
        assert job.workflow_id == f"fraud-check-claim-{claim.id}"

    @pytest.mark.asyncio
    async def test_dispatch_failure_leaves_claim_visible(
        self, async_intake, dispatcher, session_factory, session, make_municipality, make_caller
    ):
        municipality = await make_municipality()
        await session.commit()
        dispatcher.dispatch.side_effect = ConnectionError("temporal unavailable")

        claim = await async_intake.submit_claim(make_caller(municipality.id), intake(municipality.id))

        async with session_factory() as reader:
            stored = await reader.get(Claim, claim.id)
            assert stored.status == ClaimStatus.PENDING_FRAUD_CHECK.value

    @pytest.mark.asyncio
    async def test_nothing_is_enqueued_when_intake_fails(
        self, async_intake, dispatcher, session, make_municipality, make_caller
    ):
        home = await make_municipality()
        other = await make_municipality()
        await session.commit()

        with pytest.raises(TenantAccessError):
            await async_intake.submit_claim(make_caller(home.id), intake(other.id))

        dispatcher.dispatch.assert_not_awaited()


class TestPreviews:
    @pytest.mark.asyncio
    async def test_assess_and_duplicate_check_are_read_only(
        self, sync_intake, session, make_municipality, make_beneficiary
    ):
        municipality = await make_municipality()
        await make_beneficiary(municipality, last_name="De La Cruz")
        await session.commit()

        verdict = await sync_intake.assess_risk("Juan", "Dela Cruz", date(1980, 5, 15), AssistanceType.CASH)
        report = await sync_intake.check_duplicate("Juan", "Dela Cruz", date(1980, 5, 15))

        assert verdict.match_count == 1
        assert report.has_duplicates is True
        assert await session.scalar(select(func.count()).select_from(Claim)) == 0
