"""Application services."""

from welfare_grid.services.audit_service import AuditService
from welfare_grid.services.claim_service import ClaimService
from welfare_grid.services.configuration_service import ConfigurationService
from welfare_grid.services.identity_service import IdentityResolutionService
from welfare_grid.services.intake_service import IntakeService
from welfare_grid.services.risk_scoring_service import RiskScoringService
from welfare_grid.services.whitelist_service import WhitelistService

__all__ = [
    "AuditService",
    "ClaimService",
    "ConfigurationService",
    "IdentityResolutionService",
    "IntakeService",
    "RiskScoringService",
    "WhitelistService",
]
