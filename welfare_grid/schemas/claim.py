"""Claim intake schemas."""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from welfare_grid.schemas.enums import AssistanceType, Gender

MIN_CLAIM_AMOUNT = Decimal("0.01")
MAX_CLAIM_AMOUNT = Decimal("999999.99")


class ClaimIntake(BaseModel):
    """Everything intake needs to resolve the person and open a claim."""

    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    middle_name: Optional[str] = Field(None, max_length=50)
    suffix: Optional[str] = Field(None, max_length=10)
    birthdate: date
    gender: Gender
    contact_number: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    barangay: Optional[str] = Field(None, max_length=100)

    municipality_id: int = Field(..., description="Processing municipality")
    assistance_type: AssistanceType
    amount: Decimal = Field(..., ge=MIN_CLAIM_AMOUNT, le=MAX_CLAIM_AMOUNT, decimal_places=2)
    purpose: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, value: str) -> str:
        value = " ".join(value.split())
        if not value:
            raise ValueError("name must not be blank")
        return value

    @field_validator("birthdate")
    @classmethod
    def birthdate_in_past(cls, value: date) -> date:
        if value >= date.today():
            raise ValueError("birthdate must be in the past")
        return value
