"""Payloads exchanged with the asynchronous fraud-check workflow.

These are plain dataclasses so Temporal's default data converter can
serialize them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FraudCheckStatus(str, Enum):
    COMPLETED = "COMPLETED"  # verdict written back
    SKIPPED = "SKIPPED"  # claim already advanced; nothing written
    DEAD = "DEAD"  # retries exhausted; claim left in PENDING_FRAUD_CHECK


@dataclass
class FraudCheckJob:
    """Everything needed to re-run scoring for a deferred claim."""

    claim_id: int
    first_name: str
    last_name: str
    birthdate: str  # ISO date
    assistance_type: Optional[str] = None

    @property
    def workflow_id(self) -> str:
        return f"fraud-check-claim-{self.claim_id}"


@dataclass
class FraudCheckOutcome:
    claim_id: int
    status: FraudCheckStatus
    is_risky: Optional[bool] = None
    risk_level: Optional[str] = None
    error: Optional[str] = None
