"""Risk verdict, duplicate report and threshold schemas."""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field

from welfare_grid.schemas.enums import RiskLevel

NO_MATCHES_EXPLANATION = "No matching beneficiaries found in the Provincial Grid."
NO_RISK_EXPLANATION = "No fraud risk detected."
FLAG_SEPARATOR = " | "


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RiskThresholds(BaseModel):
    """Snapshot of the runtime-editable detection thresholds."""

    risk_threshold_days: int = Field(default=90, ge=1, description="Claim history lookback window")
    same_type_threshold_days: int = Field(default=30, ge=1, description="Double-dipping window")
    high_frequency_threshold: int = Field(default=3, ge=1, description="Pooled claims that count as high frequency")
    levenshtein_distance_threshold: int = Field(
        default=3, ge=0, description="Search keeps candidates strictly below this distance"
    )
    duplicate_report_distance_threshold: int = Field(
        default=5, ge=0, description="Duplicate report keeps matches strictly below this distance"
    )

    model_config = {"frozen": True}


class RiskVerdict(BaseModel):
    """Outcome of scoring one applicant against the provincial pool."""

    is_risky: bool = False
    level: RiskLevel = RiskLevel.LOW
    explanation: str = NO_RISK_EXPLANATION
    flags: list[str] = Field(default_factory=list)
    match_count: int = 0
    claim_count: int = 0
    whitelisted_count: int = 0
    matched_beneficiary_ids: list[int] = Field(default_factory=list)
    assessed_at: datetime = Field(default_factory=_utcnow)

    def to_snapshot(self) -> dict[str, Any]:
        """JSON-safe copy stored on the claim at scoring time."""
        return self.model_dump(mode="json")


class DuplicateMatch(BaseModel):
    """One probable duplicate in a duplicate-check report."""

    beneficiary_id: int
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    birthdate: date
    home_municipality_id: int
    home_municipality_name: Optional[str] = None
    levenshtein_distance: int
    similarity_score: int


class DuplicateCheckResult(BaseModel):
    """Detail report of probable duplicates for a name/birthdate."""

    has_duplicates: bool = False
    matches: list[DuplicateMatch] = Field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.LOW

    @property
    def top_score(self) -> int:
        return self.matches[0].similarity_score if self.matches else 0


class RecentClaim(BaseModel):
    """Claim line in a per-beneficiary risk report."""

    claim_id: int
    municipality_id: int
    municipality_name: Optional[str] = None
    assistance_type: str
    amount: Decimal
    status: str
    created_at: datetime
    days_ago: int


class RiskReport(BaseModel):
    """Summary of one beneficiary's recent cross-municipality activity."""

    beneficiary_id: int
    lookback_days: int
    claim_count: int = 0
    municipality_count: int = 0
    municipalities: list[str] = Field(default_factory=list)
    assistance_types: list[str] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    risk_level: RiskLevel = RiskLevel.LOW
    flags: list[str] = Field(default_factory=list)
    recent_claims: list[RecentClaim] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=_utcnow)
