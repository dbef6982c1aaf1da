"""Cross-municipality fraud risk scoring.

Scoring pools the recent claim history of every probable match of an
applicant, across all municipalities, and raises flags for multi-office
claiming, double-dipping and high claim frequency. Pairs adjudicated as
verified distinct are removed before any history is read.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from welfare_grid.core.exceptions import BeneficiaryNotFoundError, ValidationError
from welfare_grid.database.models import Claim, as_utc
from welfare_grid.repositories.beneficiary_repository import BeneficiaryRepository
from welfare_grid.repositories.claim_repository import ClaimRepository
from welfare_grid.repositories.municipality_repository import MunicipalityRepository
from welfare_grid.repositories.verified_pair_repository import VerifiedPairRepository
from welfare_grid.schemas.enums import AssistanceType, RiskLevel
from welfare_grid.schemas.risk import (
    FLAG_SEPARATOR,
    NO_MATCHES_EXPLANATION,
    NO_RISK_EXPLANATION,
    RecentClaim,
    RiskReport,
    RiskThresholds,
    RiskVerdict,
)
from welfare_grid.services.base_service import BaseService
from welfare_grid.services.configuration_service import ConfigurationService
from welfare_grid.services.identity_service import IdentityResolutionService

UNKNOWN_MUNICIPALITY = "Unknown"


def calculate_risk_level(flag_count: int, claim_count: int) -> RiskLevel:
    """LOW without flags; HIGH on 3+ flags or 5+ pooled claims; else MEDIUM."""
    if flag_count == 0:
        return RiskLevel.LOW
    if flag_count >= 3 or claim_count >= 5:
        return RiskLevel.HIGH
    return RiskLevel.MEDIUM


def days_between(earlier: datetime, now: datetime) -> int:
    return max(0, (now - as_utc(earlier)).days)


class RiskScoringService(BaseService):
    """Scores applicants against the provincial claim history."""

    def __init__(
        self,
        session: AsyncSession,
        config: ConfigurationService,
        identity: Optional[IdentityResolutionService] = None,
    ):
        super().__init__(session)
        self.config = config
        self.identity = identity or IdentityResolutionService(session, config)
        self.beneficiaries = BeneficiaryRepository(session)
        self.claims = ClaimRepository(session)
        self.municipalities = MunicipalityRepository(session)
        self.pairs = VerifiedPairRepository(session)

    async def _municipality_name(self, claim: Claim) -> str:
        # Looked up by ID; the relationship may be unloaded on identity-mapped rows
        names = await self.municipalities.get_names([claim.municipality_id])
        return names.get(claim.municipality_id, UNKNOWN_MUNICIPALITY)

    async def _assess(
        self,
        first_name: str,
        last_name: str,
        birthdate: date,
        assistance_type: Optional[str],
        now: datetime,
    ) -> RiskVerdict:
        first_name = first_name.strip()
        last_name = last_name.strip()
        thresholds: RiskThresholds = await self.config.get_thresholds()

        candidates = await self.identity.search_similar_ranked(
            first_name, last_name, birthdate, thresholds=thresholds
        )
        if not candidates:
            return RiskVerdict(
                is_risky=False,
                level=RiskLevel.LOW,
                explanation=NO_MATCHES_EXPLANATION,
                assessed_at=now,
            )

        # Whitelist suppression needs an existing anchor record
        target = await self.beneficiaries.find_exact(first_name, last_name, birthdate)
        suppressed: set[int] = set()
        if target is not None:
            suppressed = await self.pairs.suppressed_partner_ids(target.id)

        surviving = [c for c in candidates if c.beneficiary_id not in suppressed]
        whitelisted_count = len(candidates) - len(surviving)
        if not surviving:
            self.logger.info(
                f"All {whitelisted_count} matches for {first_name} {last_name} are whitelisted as distinct"
            )
            return RiskVerdict(
                is_risky=False,
                level=RiskLevel.LOW,
                explanation=(
                    f"All {whitelisted_count} matching beneficiaries are whitelisted as verified distinct."
                ),
                whitelisted_count=whitelisted_count,
                assessed_at=now,
            )

        matched_ids = [c.beneficiary_id for c in surviving]
        since = now - timedelta(days=thresholds.risk_threshold_days)
        pooled = await self.claims.get_recent_claims_for_beneficiaries(matched_ids, since)

        flags: list[str] = []

        municipality_count = len({claim.municipality_id for claim in pooled})
        if municipality_count > 1:
            flags.append(f"Claimed assistance from {municipality_count} different municipalities")

        if assistance_type:
            category = assistance_type
            window_start = now - timedelta(days=thresholds.same_type_threshold_days)
            same_type = [
                claim
                for claim in pooled
                if claim.assistance_type == category and as_utc(claim.created_at) >= window_start
            ]
            if same_type:
                last_claim = same_type[0]
                days_ago = days_between(last_claim.created_at, now)
                municipality = await self._municipality_name(last_claim)
                flags.append(f"Received {category} assistance {days_ago} days ago from {municipality}")

        if len(pooled) >= thresholds.high_frequency_threshold:
            flags.append(
                f"High frequency: {len(pooled)} claims in the last {thresholds.risk_threshold_days} days"
            )

        level = calculate_risk_level(len(flags), len(pooled))
        return RiskVerdict(
            is_risky=bool(flags),
            level=level,
            explanation=FLAG_SEPARATOR.join(flags) if flags else NO_RISK_EXPLANATION,
            flags=flags,
            match_count=len(surviving),
            claim_count=len(pooled),
            whitelisted_count=whitelisted_count,
            matched_beneficiary_ids=matched_ids,
            assessed_at=now,
        )

    async def assess_risk(
        self,
        first_name: str,
        last_name: str,
        birthdate: date,
        assistance_type: Optional[Union[AssistanceType, str]] = None,
    ) -> RiskVerdict:
        """Score an applicant.

        Args:
            first_name: Given name as entered at intake
            last_name: Family name as entered at intake
            birthdate: Date of birth
            assistance_type: Category being requested; enables the
                double-dipping check

        Returns:
            RiskVerdict with level, flags and pooled counts
        """
        if assistance_type is not None:
            try:
                assistance_type = AssistanceType(assistance_type).value
            except ValueError as e:
                raise ValidationError(f"Unknown assistance type {assistance_type!r}", original_error=e) from e
        verdict = await self.execute(
            self._assess,
            first_name,
            last_name,
            birthdate,
            assistance_type,
            datetime.now(timezone.utc),
        )
        self.logger.info(
            f"Risk for {first_name} {last_name} ({birthdate}): {verdict.level.value}, "
            f"{verdict.match_count} matches, {verdict.claim_count} claims"
        )
        return verdict

    async def _report(self, beneficiary_id: int, now: datetime) -> RiskReport:
        beneficiary = await self.beneficiaries.get_by_id(beneficiary_id)
        if beneficiary is None:
            raise BeneficiaryNotFoundError(f"Beneficiary {beneficiary_id} not found")

        thresholds = await self.config.get_thresholds()
        since = now - timedelta(days=thresholds.risk_threshold_days)
        claims = await self.claims.get_recent_claims_for_beneficiaries([beneficiary_id], since)

        names = await self.municipalities.get_names(sorted({c.municipality_id for c in claims}))
        municipalities = list(dict.fromkeys(names.get(c.municipality_id, UNKNOWN_MUNICIPALITY) for c in claims))
        assistance_types = list(dict.fromkeys(c.assistance_type for c in claims))

        flags = []
        if len(municipalities) > 1:
            flags.append(f"Claimed assistance from {len(municipalities)} different municipalities")

        return RiskReport(
            beneficiary_id=beneficiary_id,
            lookback_days=thresholds.risk_threshold_days,
            claim_count=len(claims),
            municipality_count=len(municipalities),
            municipalities=municipalities,
            assistance_types=assistance_types,
            total_amount=sum((Decimal(c.amount) for c in claims), Decimal("0")),
            # Spread across municipalities weighs like two flags
            risk_level=calculate_risk_level(2 if len(municipalities) > 1 else 0, len(claims)),
            flags=flags,
            recent_claims=[
                RecentClaim(
                    claim_id=c.id,
                    municipality_id=c.municipality_id,
                    municipality_name=names.get(c.municipality_id, UNKNOWN_MUNICIPALITY),
                    assistance_type=c.assistance_type,
                    amount=c.amount,
                    status=c.status,
                    created_at=as_utc(c.created_at),
                    days_ago=days_between(c.created_at, now),
                )
                for c in claims
            ],
            generated_at=now,
        )

    async def generate_risk_report(self, beneficiary_id: int) -> RiskReport:
        """Summary of one beneficiary's claims in the lookback window."""
        return await self.execute(self._report, beneficiary_id, datetime.now(timezone.utc))
