"""Integration tests for FraudCheckWorkflow retry and dead-letter behavior.

These run against Temporal's time-skipping test server, which the SDK
downloads on first use, so they are opt-in via WELFARE_GRID_TEMPORAL_TESTS=1.
Activities are replaced by stand-ins registered under the same names.
"""

import os
import uuid

import pytest
from temporalio import activity
from temporalio.exceptions import ApplicationError
from temporalio.testing import WorkflowEnvironment
from temporalio.worker import Worker

from welfare_grid.schemas.fraud_check import FraudCheckJob, FraudCheckOutcome, FraudCheckStatus
from welfare_grid.temporal.workflows.fraud_check import FraudCheckWorkflow

pytestmark = [
    pytest.mark.temporal,
    pytest.mark.skipif(
        os.getenv("WELFARE_GRID_TEMPORAL_TESTS") != "1",
        reason="Requires the Temporal test server",
    ),
]

TASK_QUEUE = "fraud-check-test-queue"


def make_job(claim_id: int = 42) -> FraudCheckJob:
    return FraudCheckJob(
        claim_id=claim_id,
        first_name="Juan",
        last_name="Dela Cruz",
        birthdate="1980-05-15",
        assistance_type="Medical",
    )


class TestFraudCheckWorkflow:
    """Workflow outcome for healthy and persistently failing scoring."""

    @pytest.mark.asyncio
    async def test_successful_check_completes(self):
        @activity.defn(name="run_fraud_check")
        async def run_fraud_check(job: FraudCheckJob) -> FraudCheckOutcome:
            return FraudCheckOutcome(
                claim_id=job.claim_id, status=FraudCheckStatus.COMPLETED, is_risky=False, risk_level="LOW"
            )

        @activity.defn(name="record_fraud_check_failure")
        async def record_fraud_check_failure(claim_id: int, error: str = None) -> None:
            raise AssertionError("should not be called")

        async with await WorkflowEnvironment.start_time_skipping() as env:
            async with Worker(
                env.client,
                task_queue=TASK_QUEUE,
                workflows=[FraudCheckWorkflow],
                activities=[run_fraud_check, record_fraud_check_failure],
            ):
                outcome = await env.client.execute_workflow(
                    FraudCheckWorkflow.run,
                    make_job(),
                    id=f"fraud-check-test-{uuid.uuid4()}",
                    task_queue=TASK_QUEUE,
                )

        assert outcome.status == FraudCheckStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_exhausted_retries_end_dead(self):
        attempts = []
        failures = []

        @activity.defn(name="run_fraud_check")
        async def run_fraud_check(job: FraudCheckJob) -> FraudCheckOutcome:
            attempts.append(activity.info().attempt)
            raise ApplicationError("database unavailable")

        @activity.defn(name="record_fraud_check_failure")
        async def record_fraud_check_failure(claim_id: int, error: str = None) -> None:
            failures.append((claim_id, error))

        async with await WorkflowEnvironment.start_time_skipping() as env:
            async with Worker(
                env.client,
                task_queue=TASK_QUEUE,
                workflows=[FraudCheckWorkflow],
                activities=[run_fraud_check, record_fraud_check_failure],
            ):
                outcome = await env.client.execute_workflow(
                    FraudCheckWorkflow.run,
                    make_job(claim_id=7),
                    id=f"fraud-check-test-{uuid.uuid4()}",
                    task_queue=TASK_QUEUE,
                )

        assert outcome.status == FraudCheckStatus.DEAD
        assert attempts == [1, 2, 3]
        assert len(failures) == 1
        assert failures[0][0] == 7
        assert "database unavailable" in failures[0][1]
