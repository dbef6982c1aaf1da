"""Repository layer modules."""

from welfare_grid.repositories.activity_log_repository import ActivityLogRepository
from welfare_grid.repositories.beneficiary_repository import BeneficiaryRepository
from welfare_grid.repositories.claim_repository import ClaimRepository
from welfare_grid.repositories.municipality_repository import MunicipalityRepository
from welfare_grid.repositories.system_setting_repository import SystemSettingRepository
from welfare_grid.repositories.verified_pair_repository import VerifiedPairRepository

__all__ = [
    "ActivityLogRepository",
    "BeneficiaryRepository",
    "ClaimRepository",
    "MunicipalityRepository",
    "SystemSettingRepository",
    "VerifiedPairRepository",
]
