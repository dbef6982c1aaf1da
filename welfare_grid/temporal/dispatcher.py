"""Enqueues fraud-check jobs on the Temporal task queue."""

from typing import Optional

from temporalio.exceptions import WorkflowAlreadyStartedError

from welfare_grid.core.config import settings
from welfare_grid.schemas.fraud_check import FraudCheckJob
from welfare_grid.temporal.client import get_temporal_client
from welfare_grid.temporal.workflows.fraud_check import FraudCheckWorkflow
from welfare_grid.utils.logging import get_logger

LOGGER = get_logger(__name__)


class TemporalFraudCheckDispatcher:
    """Starts one FraudCheckWorkflow per claim.

    The workflow ID is derived from the claim ID, so dispatching a job for a
    claim whose check is still running does not start a second one.
    """

    def __init__(self, task_queue: Optional[str] = None):
        self.task_queue = task_queue or settings.temporal_task_queue

    async def dispatch(self, job: FraudCheckJob) -> Optional[str]:
        """Start the fraud check for ``job``.

        Returns:
            The workflow run ID, or None if a check is already running
        """
        client = await get_temporal_client()
        try:
            handle = await client.start_workflow(
                FraudCheckWorkflow.run,
                job,
                id=job.workflow_id,
                task_queue=self.task_queue,
            )
        except WorkflowAlreadyStartedError:
            LOGGER.info(f"Fraud check for claim {job.claim_id} is already running")
            return None

        LOGGER.info(f"Fraud check workflow {job.workflow_id} started for claim {job.claim_id}")
        return handle.result_run_id
