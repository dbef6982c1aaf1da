"""Temporal worker service for asynchronous fraud checks.

This worker:
- Connects to the configured Temporal server
- Registers the fraud-check workflow and activities
- Polls the fraud-check task queue
- Handles concurrent execution with configured limits
"""

import asyncio

from temporalio.client import Client
from temporalio.worker import Worker

from welfare_grid.core.config import settings
from welfare_grid.database.base import close_database, init_database
from welfare_grid.temporal.activities.fraud_check_activities import (
    record_fraud_check_failure,
    run_fraud_check,
)
from welfare_grid.temporal.client import close_temporal_client, get_temporal_client
from welfare_grid.temporal.workflows.fraud_check import FraudCheckWorkflow
from welfare_grid.utils.logging import get_logger

logger = get_logger(__name__)


def build_worker(client: Client) -> Worker:
    """Create the worker with every fraud-check workflow and activity registered."""
    return Worker(
        client,
        task_queue=settings.temporal_task_queue,
        workflows=[FraudCheckWorkflow],
        activities=[run_fraud_check, record_fraud_check_failure],
        max_concurrent_activities=settings.temporal.max_concurrent_activities,
    )


async def main():
    """Start the Temporal worker."""
    temporal_host = f"{settings.temporal_host}:{settings.temporal_port}"

    # Activities open their own sessions; fail fast if the database is down
    await init_database()

    logger.info(f"Connecting to Temporal server at {temporal_host}")

    client = await get_temporal_client()

    logger.info("Successfully connected to Temporal server")

    worker = build_worker(client)

    logger.info("=" * 60)
    logger.info("Fraud Check Worker Started Successfully")
    logger.info("=" * 60)
    logger.info(f"Connected to: {temporal_host}")
    logger.info(f"Task Queue: {settings.temporal_task_queue}")
    logger.info(f"Max Concurrent Activities: {settings.temporal.max_concurrent_activities}")
    logger.info("=" * 60)
    logger.info("Worker is now polling for tasks...")

    try:
        await worker.run()
    finally:
        close_temporal_client()
        await close_database()


def run() -> None:
    """Console entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Worker stopped by user")
    except Exception as e:
        logger.error(f"Worker failed: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    run()
