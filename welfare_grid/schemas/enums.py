"""Enumerations shared by models, schemas and services."""

from enum import Enum


class ClaimStatus(str, Enum):
    """Claim lifecycle states."""

    PENDING_FRAUD_CHECK = "PENDING_FRAUD_CHECK"
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    DISBURSED = "DISBURSED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


# Statuses that count towards a beneficiary's claim history during scoring
ACTIVE_CLAIM_STATUSES = (
    ClaimStatus.APPROVED,
    ClaimStatus.DISBURSED,
    ClaimStatus.PENDING,
    ClaimStatus.UNDER_REVIEW,
)


class AssistanceType(str, Enum):
    """Assistance categories offered by the program."""

    MEDICAL = "Medical"
    CASH = "Cash"
    BURIAL = "Burial"
    EDUCATIONAL = "Educational"
    FOOD = "Food"
    DISASTER_RELIEF = "Disaster Relief"


class VerificationStatus(str, Enum):
    """Adjudication outcome for a beneficiary pair."""

    VERIFIED_DISTINCT = "VERIFIED_DISTINCT"
    VERIFIED_DUPLICATE = "VERIFIED_DUPLICATE"
    UNDER_REVIEW = "UNDER_REVIEW"
    REVOKED = "REVOKED"


class RiskLevel(str, Enum):
    """Fraud risk level attached to a verdict."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class MunicipalityStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"
