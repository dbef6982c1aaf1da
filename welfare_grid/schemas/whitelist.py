"""Whitelist pair value type and request schemas."""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from welfare_grid.core.exceptions import ValidationError
from welfare_grid.schemas.enums import VerificationStatus

MIN_REASON_LENGTH = 10


@dataclass(frozen=True)
class BeneficiaryPair:
    """An unordered pair of beneficiary IDs in canonical form.

    Build it with ``BeneficiaryPair.of(a, b)``; the smaller ID is always
    ``first_id``, so ``of(5, 10) == of(10, 5)``.
    """

    first_id: int
    second_id: int

    def __post_init__(self):
        if self.first_id >= self.second_id:
            raise ValidationError(
                f"Pair ({self.first_id}, {self.second_id}) is not normalized; use BeneficiaryPair.of()"
            )

    @classmethod
    def of(cls, beneficiary_id_1: int, beneficiary_id_2: int) -> "BeneficiaryPair":
        if beneficiary_id_1 == beneficiary_id_2:
            raise ValidationError(f"Beneficiary {beneficiary_id_1} cannot be paired with itself")
        return cls(min(beneficiary_id_1, beneficiary_id_2), max(beneficiary_id_1, beneficiary_id_2))

    def partner_of(self, beneficiary_id: int) -> int:
        """The other member of the pair."""
        if beneficiary_id == self.first_id:
            return self.second_id
        if beneficiary_id == self.second_id:
            return self.first_id
        raise ValidationError(f"Beneficiary {beneficiary_id} is not part of pair {self.first_id}-{self.second_id}")


class PairCreate(BaseModel):
    """Manual adjudication of two beneficiaries, in either order."""

    beneficiary_id_1: int = Field(..., gt=0)
    beneficiary_id_2: int = Field(..., gt=0)
    verification_status: VerificationStatus = VerificationStatus.VERIFIED_DISTINCT
    verification_reason: str = Field(..., min_length=MIN_REASON_LENGTH, max_length=1000)
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("verification_status")
    @classmethod
    def not_revoked(cls, value: VerificationStatus) -> VerificationStatus:
        if value == VerificationStatus.REVOKED:
            raise ValueError("a new adjudication cannot start as REVOKED")
        return value

    @field_validator("verification_reason")
    @classmethod
    def reason_not_blank(cls, value: str) -> str:
        value = value.strip()
        if len(value) < MIN_REASON_LENGTH:
            raise ValueError(f"verification reason must be at least {MIN_REASON_LENGTH} characters")
        return value

    @model_validator(mode="after")
    def distinct_ids(self) -> "PairCreate":
        if self.beneficiary_id_1 == self.beneficiary_id_2:
            raise ValueError("cannot pair a beneficiary with itself")
        return self

    @property
    def pair(self) -> BeneficiaryPair:
        return BeneficiaryPair.of(self.beneficiary_id_1, self.beneficiary_id_2)
