"""Identity resolution over the provincial beneficiary pool.

Search is two-layer: the indexed Soundex key of the family name narrows the
pool, then Levenshtein distance over the normalized full name ranks it. The
phonetic pre-filter is never skipped.
"""

from datetime import date
from typing import Any, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from welfare_grid.core.exceptions import (
    BeneficiaryNotFoundError,
    ConflictError,
    MunicipalityNotFoundError,
    TenantAccessError,
)
from welfare_grid.core.tenancy import ensure_tenant_access
from welfare_grid.database.models import Beneficiary
from welfare_grid.repositories.beneficiary_repository import BeneficiaryRepository
from welfare_grid.repositories.municipality_repository import MunicipalityRepository
from welfare_grid.schemas.auth import CallerContext
from welfare_grid.schemas.beneficiary import BeneficiaryCreate, BeneficiaryUpdate, CandidateMatch
from welfare_grid.schemas.enums import RiskLevel
from welfare_grid.schemas.risk import DuplicateCheckResult, DuplicateMatch, RiskThresholds
from welfare_grid.services.audit_service import AuditService
from welfare_grid.services.base_service import BaseService
from welfare_grid.services.configuration_service import ConfigurationService
from welfare_grid.utils.name_matching import name_distance, similarity_score, soundex


def duplicate_risk_level(matches: list[DuplicateMatch]) -> RiskLevel:
    """Risk that a registration duplicates an existing record."""
    if not matches:
        return RiskLevel.LOW
    top_score = matches[0].similarity_score
    if top_score >= 90 or len(matches) >= 3:
        return RiskLevel.HIGH
    if top_score >= 70 or len(matches) >= 2:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


class IdentityResolutionService(BaseService):
    """Fuzzy search, duplicate reports and Golden Record registration."""

    def __init__(self, session: AsyncSession, config: ConfigurationService):
        super().__init__(session)
        self.config = config
        self.beneficiaries = BeneficiaryRepository(session)
        self.municipalities = MunicipalityRepository(session)
        self.audit = AuditService(session)

    async def _rank(
        self,
        first_name: str,
        last_name: str,
        birthdate: Optional[date],
        max_distance: int,
        exclude_beneficiary_id: Optional[int] = None,
    ) -> list[CandidateMatch]:
        phonetic_key = soundex(last_name)
        if phonetic_key is None:
            return []

        pool = await self.beneficiaries.search_by_phonetic(phonetic_key, birthdate)
        ranked = []
        for beneficiary in pool:
            if beneficiary.id == exclude_beneficiary_id:
                continue
            distance = name_distance(first_name, last_name, beneficiary.first_name, beneficiary.last_name)
            if distance < max_distance:
                ranked.append(CandidateMatch(beneficiary=beneficiary, distance=distance))

        ranked.sort(key=lambda match: (match.distance, match.beneficiary.id))
        return ranked

    async def search_similar_ranked(
        self,
        first_name: str,
        last_name: str,
        birthdate: Optional[date] = None,
        thresholds: Optional[RiskThresholds] = None,
    ) -> list[CandidateMatch]:
        """Candidates below the configured distance threshold, closest first.

        Args:
            first_name: Given name as entered
            last_name: Family name as entered
            birthdate: Optional exact birthdate filter
            thresholds: Threshold snapshot; read from configuration when omitted

        Returns:
            Matches with their edit distances, ascending
        """
        if thresholds is None:
            thresholds = await self.config.get_thresholds()
        return await self.execute(
            self._rank,
            first_name,
            last_name,
            birthdate,
            thresholds.levenshtein_distance_threshold,
        )

    async def search_similar(
        self,
        first_name: str,
        last_name: str,
        birthdate: Optional[date] = None,
    ) -> list[Beneficiary]:
        """Beneficiaries that probably are the named person, closest first."""
        matches = await self.search_similar_ranked(first_name, last_name, birthdate)
        return [match.beneficiary for match in matches]

    async def check_duplicates(
        self,
        first_name: str,
        last_name: str,
        birthdate: date,
        exclude_beneficiary_id: Optional[int] = None,
    ) -> DuplicateCheckResult:
        """Detail report of probable duplicates for a registration.

        Uses its own, wider distance threshold than ``search_similar`` and
        reports similarity percentages, highest first.
        """
        thresholds = await self.config.get_thresholds()
        ranked = await self.execute(
            self._rank,
            first_name,
            last_name,
            birthdate,
            thresholds.duplicate_report_distance_threshold,
            exclude_beneficiary_id,
        )

        names = await self.municipalities.get_names(
            sorted({m.beneficiary.home_municipality_id for m in ranked})
        )
        matches = [
            DuplicateMatch(
                beneficiary_id=m.beneficiary.id,
                first_name=m.beneficiary.first_name,
                last_name=m.beneficiary.last_name,
                middle_name=m.beneficiary.middle_name,
                birthdate=m.beneficiary.birthdate,
                home_municipality_id=m.beneficiary.home_municipality_id,
                home_municipality_name=names.get(m.beneficiary.home_municipality_id),
                levenshtein_distance=m.distance,
                similarity_score=similarity_score(m.distance),
            )
            for m in ranked
        ]
        matches.sort(key=lambda match: match.similarity_score, reverse=True)

        return DuplicateCheckResult(
            has_duplicates=bool(matches),
            matches=matches,
            risk_level=duplicate_risk_level(matches),
        )

    async def find_or_create_in_transaction(
        self,
        caller: CallerContext,
        data: BeneficiaryCreate,
    ) -> tuple[Beneficiary, bool]:
        """Golden Record lookup/insert without committing.

        For callers composing registration into a larger unit of work.
        """
        ensure_tenant_access(caller, data.home_municipality_id)
        if await self.municipalities.get_by_id(data.home_municipality_id) is None:
            raise MunicipalityNotFoundError(f"Municipality {data.home_municipality_id} not found")

        attributes = data.model_dump()
        attributes["gender"] = data.gender.value
        beneficiary, created = await self.beneficiaries.find_or_create(attributes, created_by=caller.user_id)
        if created:
            await self.audit.record(
                "beneficiaries",
                "beneficiary_created",
                subject=beneficiary,
                caller=caller,
                after=_identity_snapshot(beneficiary),
            )
        return beneficiary, created

    async def find_or_create(
        self,
        caller: CallerContext,
        data: Union[BeneficiaryCreate, dict[str, Any]],
    ) -> Beneficiary:
        """Return the single stored record for this person, creating it if needed."""
        payload = self.parse(BeneficiaryCreate, data)
        beneficiary, _ = await self.execute(
            self.find_or_create_in_transaction, caller, payload, commit=True
        )
        return beneficiary

    async def register_beneficiary(
        self,
        caller: CallerContext,
        data: Union[BeneficiaryCreate, dict[str, Any]],
        skip_duplicate_check: bool = False,
    ) -> Beneficiary:
        """Register a person outside of claim intake.

        Raises:
            ConflictError: If probable duplicates exist and the caller did not
                opt out; ``context["matches"]`` lists them
        """
        payload = self.parse(BeneficiaryCreate, data)
        if not skip_duplicate_check:
            report = await self.check_duplicates(payload.first_name, payload.last_name, payload.birthdate)
            if report.has_duplicates:
                raise ConflictError(
                    f"Possible duplicates found for {payload.first_name} {payload.last_name}",
                    context={
                        "risk_level": report.risk_level.value,
                        "matches": [m.model_dump(mode="json") for m in report.matches],
                    },
                )
        return await self.find_or_create(caller, payload)

    async def get_beneficiary(self, beneficiary_id: int) -> Beneficiary:
        """Beneficiaries are province-wide identities, visible to every office."""
        beneficiary = await self.execute(self.beneficiaries.get_by_id, beneficiary_id)
        if beneficiary is None:
            raise BeneficiaryNotFoundError(f"Beneficiary {beneficiary_id} not found")
        return beneficiary

    async def list_by_municipality(
        self,
        caller: CallerContext,
        municipality_id: int,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Beneficiary]:
        ensure_tenant_access(caller, municipality_id)
        return await self.execute(self.beneficiaries.get_by_municipality, municipality_id, skip, limit)

    async def _update(
        self,
        caller: CallerContext,
        beneficiary_id: int,
        changes: BeneficiaryUpdate,
    ) -> Beneficiary:
        beneficiary = await self.get_beneficiary(beneficiary_id)
        ensure_tenant_access(caller, beneficiary.home_municipality_id)

        values = changes.model_dump(exclude_unset=True)
        if "gender" in values and values["gender"] is not None:
            values["gender"] = changes.gender.value
        before = {key: _jsonable(getattr(beneficiary, key)) for key in values}

        for key, value in values.items():
            if key in ("first_name", "last_name") and value:
                value = " ".join(value.split())
            # Assigning last_name recomputes the phonetic key on the model
            setattr(beneficiary, key, value)
        beneficiary.updated_by = caller.user_id
        await self.session.flush()

        after = {key: _jsonable(getattr(beneficiary, key)) for key in values}
        await self.audit.record(
            "beneficiaries", "beneficiary_updated", subject=beneficiary, caller=caller, before=before, after=after
        )
        return beneficiary

    async def update_beneficiary(
        self,
        caller: CallerContext,
        beneficiary_id: int,
        changes: Union[BeneficiaryUpdate, dict[str, Any]],
    ) -> Beneficiary:
        """Edit a beneficiary owned by the caller's municipality."""
        payload = self.parse(BeneficiaryUpdate, changes)
        beneficiary = await self.execute(self._update, caller, beneficiary_id, payload, commit=True)
        self.logger.info(f"Beneficiary {beneficiary_id} updated by user {caller.user_id}")
        return beneficiary

    async def _deactivate(self, caller: CallerContext, beneficiary_id: int) -> None:
        if not (caller.is_provincial and caller.is_admin):
            raise TenantAccessError(f"User {caller.user_id} may not delete beneficiaries")
        beneficiary = await self.get_beneficiary(beneficiary_id)
        beneficiary.is_active = False
        beneficiary.updated_by = caller.user_id
        await self.beneficiaries.soft_delete(beneficiary_id)
        await self.audit.record("beneficiaries", "beneficiary_deleted", subject=beneficiary, caller=caller)

    async def deactivate_beneficiary(self, caller: CallerContext, beneficiary_id: int) -> None:
        """Tombstone a beneficiary. Province-wide administrators only."""
        await self.execute(self._deactivate, caller, beneficiary_id, commit=True)
        self.logger.info(f"Beneficiary {beneficiary_id} deleted by user {caller.user_id}")


def _jsonable(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


def _identity_snapshot(beneficiary: Beneficiary) -> dict[str, Any]:
    return {
        "first_name": beneficiary.first_name,
        "last_name": beneficiary.last_name,
        "birthdate": beneficiary.birthdate.isoformat(),
        "home_municipality_id": beneficiary.home_municipality_id,
        "last_name_phonetic": beneficiary.last_name_phonetic,
    }
