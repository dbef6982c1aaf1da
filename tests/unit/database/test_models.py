"""Unit tests for model defaults and table constraints."""

import uuid
from datetime import date, datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from welfare_grid.database.models import Beneficiary


class TestPublicIdentifiers:
    @pytest.mark.asyncio
    async def test_rows_get_a_public_uuid(self, make_municipality, make_beneficiary):
        municipality = await make_municipality()
        beneficiary = await make_beneficiary(municipality)

        assert isinstance(municipality.uuid, uuid.UUID)
        assert isinstance(beneficiary.uuid, uuid.UUID)
        assert municipality.uuid != beneficiary.uuid


class TestBeneficiaryIdentityIndex:
    """One live record per name, birthdate and home office."""

    @staticmethod
    def _same_person(municipality_id: int) -> Beneficiary:
        return Beneficiary(
            home_municipality_id=municipality_id,
            first_name="Juan",
            last_name="Dela Cruz",
            birthdate=date(1980, 5, 15),
            gender="Male",
        )

    @pytest.mark.asyncio
    async def test_live_duplicate_is_rejected(self, session, make_municipality, make_beneficiary):
        municipality = await make_municipality()
        await make_beneficiary(municipality)

        session.add(self._same_person(municipality.id))
        with pytest.raises(IntegrityError):
            await session.flush()

    @pytest.mark.asyncio
    async def test_tombstoned_record_frees_the_identity(self, session, make_municipality, make_beneficiary):
        municipality = await make_municipality()
        retired = await make_beneficiary(municipality)
        retired.is_active = False
        retired.deleted_at = datetime.now(timezone.utc)
        await session.flush()

        replacement = self._same_person(municipality.id)
        session.add(replacement)
        await session.flush()

        assert replacement.id != retired.id

    @pytest.mark.asyncio
    async def test_renaming_recomputes_the_phonetic_key(self, make_municipality, make_beneficiary):
        beneficiary = await make_beneficiary(await make_municipality())

        beneficiary.last_name = "Santos"

        assert beneficiary.last_name_phonetic == "S532"
