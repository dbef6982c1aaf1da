"""Asynchronous fraud-check workflow.

This workflow orchestrates scoring using activity string names to avoid
importing database and service modules into the workflow sandbox.
"""

from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

with workflow.unsafe.imports_passed_through():
    from welfare_grid.schemas.fraud_check import FraudCheckJob, FraudCheckOutcome, FraudCheckStatus

# Three attempts in total: retries after 10s, then 30s
FRAUD_CHECK_RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=10),
    backoff_coefficient=3.0,
    maximum_interval=timedelta(seconds=30),
    maximum_attempts=3,
    non_retryable_error_types=["ClaimNotFoundError"],
)


@workflow.defn
class FraudCheckWorkflow:
    """Re-scores a deferred claim and writes the verdict back.

    When every attempt fails the claim is deliberately left in
    PENDING_FRAUD_CHECK; the workflow records the failure and ends DEAD
    instead of defaulting the claim to clean.
    """

    @workflow.run
    async def run(self, job: FraudCheckJob) -> FraudCheckOutcome:
        try:
            return await workflow.execute_activity(
                "run_fraud_check",
                job,
                start_to_close_timeout=timedelta(minutes=2),
                retry_policy=FRAUD_CHECK_RETRY_POLICY,
                result_type=FraudCheckOutcome,
            )
        except ActivityError as e:
            cause = e.cause or e
            workflow.logger.error(
                f"Fraud check for claim {job.claim_id} failed permanently: {cause}"
            )
            await workflow.execute_activity(
                "record_fraud_check_failure",
                args=[job.claim_id, str(cause)],
                start_to_close_timeout=timedelta(seconds=30),
                retry_policy=RetryPolicy(initial_interval=timedelta(seconds=5), maximum_attempts=5),
            )
            return FraudCheckOutcome(
                claim_id=job.claim_id,
                status=FraudCheckStatus.DEAD,
                error=str(cause),
            )
