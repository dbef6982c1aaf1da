from .auth import CallerContext
from .enums import (
    AssistanceType,
    ClaimStatus,
    Gender,
    MunicipalityStatus,
    RiskLevel,
    VerificationStatus,
)
from .fraud_check import FraudCheckJob, FraudCheckOutcome, FraudCheckStatus
from .risk import DuplicateCheckResult, DuplicateMatch, RiskReport, RiskThresholds, RiskVerdict
from .whitelist import BeneficiaryPair, PairCreate

__all__ = [
    "CallerContext",
    "AssistanceType",
    "ClaimStatus",
    "Gender",
    "MunicipalityStatus",
    "RiskLevel",
    "VerificationStatus",
    "FraudCheckJob",
    "FraudCheckOutcome",
    "FraudCheckStatus",
    "DuplicateCheckResult",
    "DuplicateMatch",
    "RiskReport",
    "RiskThresholds",
    "RiskVerdict",
    "BeneficiaryPair",
    "PairCreate",
]
