"""Beneficiary schemas.

Plain data structures for registering and editing Golden Records.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from welfare_grid.database.models import Beneficiary
from welfare_grid.schemas.enums import Gender


class BeneficiaryBase(BaseModel):
    """Identity fields shared by the create and update models."""

    first_name: str = Field(..., min_length=1, max_length=50, description="Given name")
    last_name: str = Field(..., min_length=1, max_length=50, description="Family name")
    middle_name: Optional[str] = Field(None, max_length=50)
    suffix: Optional[str] = Field(None, max_length=10, description="Jr., Sr., III")
    birthdate: date = Field(..., description="Date of birth")
    gender: Gender = Field(...)

    @field_validator("first_name", "last_name", "middle_name", "suffix")
    @classmethod
    def strip_names(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = " ".join(value.split())
        return value

    @field_validator("birthdate")
    @classmethod
    def birthdate_in_past(cls, value: date) -> date:
        if value >= date.today():
            raise ValueError("birthdate must be in the past")
        return value


class BeneficiaryCreate(BeneficiaryBase):
    """Beneficiary registration model."""

    home_municipality_id: int = Field(..., description="Registering municipality")
    contact_number: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    barangay: Optional[str] = Field(None, max_length=100)
    id_type: Optional[str] = Field(None, max_length=50)
    id_number: Optional[str] = Field(None, max_length=100)


class BeneficiaryUpdate(BaseModel):
    """Beneficiary update model with optional fields."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    middle_name: Optional[str] = Field(None, max_length=50)
    suffix: Optional[str] = Field(None, max_length=10)
    birthdate: Optional[date] = None
    gender: Optional[Gender] = None
    contact_number: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    barangay: Optional[str] = Field(None, max_length=100)
    id_type: Optional[str] = Field(None, max_length=50)
    id_number: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None


@dataclass
class CandidateMatch:
    """A fuzzy-search hit with its edit distance to the query name."""

    beneficiary: Beneficiary
    distance: int

    @property
    def beneficiary_id(self) -> int:
        return self.beneficiary.id
