"""Unit tests for the whitelist ledger."""

import pytest

from welfare_grid.core.exceptions import (
    BeneficiaryNotFoundError,
    DuplicatePairError,
    PairNotFoundError,
    TenantAccessError,
    ValidationError,
)
from welfare_grid.schemas.enums import VerificationStatus
from welfare_grid.schemas.whitelist import BeneficiaryPair
from welfare_grid.services.whitelist_service import WhitelistService

REASON = "Different parents and barangay records on file"


@pytest.fixture
def whitelist(session) -> WhitelistService:
    return WhitelistService(session)


@pytest.fixture
def namesakes(session, make_municipality, make_beneficiary):
    """Two stored beneficiaries that look like the same person."""

    async def _make():
        home = await make_municipality()
        other = await make_municipality()
        first = await make_beneficiary(home, last_name="Dela Cruz")
        second = await make_beneficiary(other, last_name="De La Cruz")
        await session.commit()
        return first, second

    return _make


class TestBeneficiaryPair:
    """Canonical ordering of the unordered pair."""

    def test_of_normalizes_order(self):
        assert BeneficiaryPair.of(10, 5) == BeneficiaryPair.of(5, 10)
        assert BeneficiaryPair.of(10, 5).first_id == 5

    def test_direct_construction_must_be_normalized(self):
        with pytest.raises(ValidationError):
            BeneficiaryPair(10, 5)

    def test_self_pair_is_rejected(self):
        with pytest.raises(ValidationError):
            BeneficiaryPair.of(7, 7)

    def test_partner_of(self):
        pair = BeneficiaryPair.of(9, 3)
        assert pair.partner_of(9) == 3
        assert pair.partner_of(3) == 9
        with pytest.raises(ValidationError):
            pair.partner_of(4)


class TestWhitelistPair:
    """Adjudication writes."""

    @pytest.mark.asyncio
    async def test_pair_is_stored_in_canonical_order(self, whitelist, namesakes, provincial_admin):
        first, second = await namesakes()

        record = await whitelist.whitelist_pair(
            provincial_admin,
            {"beneficiary_id_1": second.id, "beneficiary_id_2": first.id, "verification_reason": REASON},
        )

        assert record.beneficiary_a_id == min(first.id, second.id)
        assert record.beneficiary_b_id == max(first.id, second.id)
        assert record.verification_status == VerificationStatus.VERIFIED_DISTINCT.value
        assert record.levenshtein_distance == 1
        assert record.similarity_score == 90
        assert record.verified_by_user_id == provincial_admin.user_id

    @pytest.mark.asyncio
    async def test_lookup_is_symmetric(self, whitelist, namesakes, provincial_admin):
        first, second = await namesakes()
        record = await whitelist.whitelist_pair(
            provincial_admin,
            {"beneficiary_id_1": first.id, "beneficiary_id_2": second.id, "verification_reason": REASON},
        )

        forward = await whitelist.find_pair(first.id, second.id)
        backward = await whitelist.find_pair(second.id, first.id)

        assert forward.id == backward.id == record.id
        assert await whitelist.get_pair_status(second.id, first.id) == VerificationStatus.VERIFIED_DISTINCT

    @pytest.mark.asyncio
    async def test_suppressed_partner_is_found_from_either_side(self, whitelist, namesakes, provincial_admin):
        first, second = await namesakes()
        await whitelist.whitelist_pair(
            provincial_admin,
            {"beneficiary_id_1": second.id, "beneficiary_id_2": first.id, "verification_reason": REASON},
        )

        assert await whitelist.pairs.suppressed_partner_ids(first.id) == {second.id}
        assert await whitelist.pairs.suppressed_partner_ids(second.id) == {first.id}

    @pytest.mark.asyncio
    async def test_second_standing_adjudication_conflicts(self, whitelist, namesakes, provincial_admin):
        first, second = await namesakes()
        await whitelist.whitelist_pair(
            provincial_admin,
            {"beneficiary_id_1": first.id, "beneficiary_id_2": second.id, "verification_reason": REASON},
        )

        with pytest.raises(DuplicatePairError):
            await whitelist.whitelist_pair(
                provincial_admin,
                {
                    "beneficiary_id_1": second.id,
                    "beneficiary_id_2": first.id,
                    "verification_status": "VERIFIED_DUPLICATE",
                    "verification_reason": REASON,
                },
            )

    @pytest.mark.asyncio
    async def test_tenant_caller_cannot_adjudicate(self, whitelist, namesakes, make_caller):
        first, second = await namesakes()

        with pytest.raises(TenantAccessError):
            await whitelist.whitelist_pair(
                make_caller(first.home_municipality_id),
                {"beneficiary_id_1": first.id, "beneficiary_id_2": second.id, "verification_reason": REASON},
            )

    @pytest.mark.asyncio
    async def test_missing_beneficiary(self, whitelist, namesakes, provincial_admin):
        first, _ = await namesakes()

        with pytest.raises(BeneficiaryNotFoundError):
            await whitelist.whitelist_pair(
                provincial_admin,
                {"beneficiary_id_1": first.id, "beneficiary_id_2": 9999, "verification_reason": REASON},
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"verification_reason": "too short"},
            {"verification_reason": REASON, "verification_status": "REVOKED"},
            {"verification_reason": REASON, "beneficiary_id_2": None},
        ],
    )
    async def test_invalid_requests(self, whitelist, namesakes, provincial_admin, payload):
        first, second = await namesakes()
        request = {"beneficiary_id_1": first.id, "beneficiary_id_2": second.id, **payload}
        if request["beneficiary_id_2"] is None:
            request["beneficiary_id_2"] = first.id

        with pytest.raises(ValidationError):
            await whitelist.whitelist_pair(provincial_admin, request)


class TestRevokePair:
    """Revocation puts a pair back into detection."""

    @pytest.mark.asyncio
    async def test_revoke_then_readjudicate(self, whitelist, namesakes, provincial_admin):
        first, second = await namesakes()
        record = await whitelist.whitelist_pair(
            provincial_admin,
            {"beneficiary_id_1": first.id, "beneficiary_id_2": second.id, "verification_reason": REASON},
        )

        assert await whitelist.revoke_pair(provincial_admin, record.id, "New evidence from the barangay") is True
        assert await whitelist.find_pair(first.id, second.id) is None
        assert await whitelist.revoke_pair(provincial_admin, record.id, "Clicked twice") is False

        again = await whitelist.whitelist_pair(
            provincial_admin,
            {
                "beneficiary_id_1": first.id,
                "beneficiary_id_2": second.id,
                "verification_status": "VERIFIED_DUPLICATE",
                "verification_reason": "Same person registered twice",
            },
        )

        assert again.id != record.id
        history = await whitelist.pairs_for(first.id)
        assert {p.verification_status for p in history} == {"REVOKED", "VERIFIED_DUPLICATE"}

    @pytest.mark.asyncio
    async def test_revoke_requires_reason(self, whitelist, namesakes, provincial_admin):
        first, second = await namesakes()
        record = await whitelist.whitelist_pair(
            provincial_admin,
            {"beneficiary_id_1": first.id, "beneficiary_id_2": second.id, "verification_reason": REASON},
        )

        with pytest.raises(ValidationError):
            await whitelist.revoke_pair(provincial_admin, record.id, "  ")

    @pytest.mark.asyncio
    async def test_revoke_unknown_pair(self, whitelist, provincial_admin):
        with pytest.raises(PairNotFoundError):
            await whitelist.revoke_pair(provincial_admin, 404, "No such adjudication")
