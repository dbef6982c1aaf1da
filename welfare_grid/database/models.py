"""SQLAlchemy models for all database tables."""

import uuid as uuid_pkg
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from welfare_grid.database.base import Base
from welfare_grid.schemas.enums import ClaimStatus, MunicipalityStatus, VerificationStatus
from welfare_grid.utils.name_matching import soundex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps read back from backends without time zones."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class TimestampMixin:
    """created_at / updated_at audit columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


class SoftDeleteMixin:
    """Tombstone column; rows are never hard-deleted."""

    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Municipality(TimestampMixin, SoftDeleteMixin, Base):
    """A municipal office (tenant) with its budget ledger."""

    __tablename__ = "municipalities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[uuid_pkg.UUID] = mapped_column(Uuid, unique=True, default=uuid_pkg.uuid4, nullable=False)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MunicipalityStatus.ACTIVE.value
    )  # ACTIVE | SUSPENDED | INACTIVE
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allocated_budget: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0"), comment="Annual assistance budget"
    )
    used_budget: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0"), comment="Total disbursed"
    )

    __table_args__ = (Index("ix_municipalities_status_active", "status", "is_active"),)

    @property
    def remaining_budget(self) -> Decimal:
        return Decimal(self.allocated_budget or 0) - Decimal(self.used_budget or 0)

    @property
    def is_over_budget(self) -> bool:
        """Overruns are allowed and reported, never rejected."""
        return self.remaining_budget < 0


class Beneficiary(TimestampMixin, SoftDeleteMixin, Base):
    """A person record; the Golden Record for one real-world individual."""

    __tablename__ = "beneficiaries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[uuid_pkg.UUID] = mapped_column(Uuid, unique=True, default=uuid_pkg.uuid4, nullable=False)
    home_municipality_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("municipalities.id", ondelete="RESTRICT"), nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name_phonetic: Mapped[Optional[str]] = mapped_column(
        String(10), nullable=True, comment="SOUNDEX of last_name"
    )
    middle_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    suffix: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    birthdate: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[str] = mapped_column(String(10), nullable=False)  # Male | Female | Other

    # Sensitive contact data; masked by the presentation layer across tenants
    contact_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    barangay: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    id_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    id_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    home_municipality: Mapped["Municipality"] = relationship("Municipality", lazy="selectin")

    __table_args__ = (
        # Only live records hold the identity; a deactivated person can be registered again
        Index(
            "unique_beneficiary",
            "first_name",
            "last_name",
            "birthdate",
            "home_municipality_id",
            unique=True,
            postgresql_where=text("deleted_at IS NULL AND is_active"),
            sqlite_where=text("deleted_at IS NULL AND is_active"),
        ),
        Index("ix_beneficiaries_last_name_birthdate", "last_name", "birthdate"),
        Index("ix_beneficiaries_phonetic", "last_name_phonetic"),
        Index("ix_beneficiaries_first_last", "first_name", "last_name"),
        Index("ix_beneficiaries_home_active", "home_municipality_id", "is_active"),
    )

    @validates("last_name")
    def _recompute_phonetic(self, key: str, value: str) -> str:
        self.last_name_phonetic = soundex(value)
        return value


class Claim(TimestampMixin, SoftDeleteMixin, Base):
    """A single assistance request."""

    __tablename__ = "claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[uuid_pkg.UUID] = mapped_column(Uuid, unique=True, default=uuid_pkg.uuid4, nullable=False)
    beneficiary_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("beneficiaries.id", ondelete="RESTRICT"), nullable=False
    )
    municipality_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("municipalities.id", ondelete="RESTRICT"),
        nullable=False,
        comment="Processing municipality",
    )
    assistance_type: Mapped[str] = mapped_column(String(30), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    purpose: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ClaimStatus.PENDING_FRAUD_CHECK.value
    )
    processed_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    under_review_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    disbursed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Fraud detection
    is_flagged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    flag_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    risk_assessment: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON, nullable=True, comment="Verdict snapshot taken at scoring time"
    )

    beneficiary: Mapped["Beneficiary"] = relationship("Beneficiary", lazy="selectin")
    municipality: Mapped["Municipality"] = relationship("Municipality", lazy="selectin")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_claims_amount_positive"),
        Index("ix_claims_beneficiary_created_status", "beneficiary_id", "created_at", "status"),
        Index("ix_claims_municipality_status_created", "municipality_id", "status", "created_at"),
        Index("ix_claims_status_created", "status", "created_at"),
        Index("ix_claims_flagged_status", "is_flagged", "status"),
        Index("ix_claims_type_created", "assistance_type", "created_at"),
    )


class ClaimNote(Base):
    """Immutable investigation note attached to a claim."""

    __tablename__ = "claim_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[uuid_pkg.UUID] = mapped_column(Uuid, unique=True, default=uuid_pkg.uuid4, nullable=False)
    claim_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("claims.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class VerifiedDistinctPair(TimestampMixin, SoftDeleteMixin, Base):
    """A manually adjudicated relationship between exactly two beneficiaries.

    Rows are always stored with ``beneficiary_a_id < beneficiary_b_id`` so the
    unordered pair has one canonical, uniquely-indexable form. Only one
    non-revoked adjudication may exist per pair.
    """

    __tablename__ = "verified_distinct_pairs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[uuid_pkg.UUID] = mapped_column(Uuid, unique=True, default=uuid_pkg.uuid4, nullable=False)
    beneficiary_a_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("beneficiaries.id", ondelete="RESTRICT"),
        nullable=False,
        comment="Smaller beneficiary ID of the pair",
    )
    beneficiary_b_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("beneficiaries.id", ondelete="RESTRICT"),
        nullable=False,
        comment="Larger beneficiary ID of the pair",
    )
    verification_status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=VerificationStatus.VERIFIED_DISTINCT.value
    )

    # Similarity snapshot at verification time
    similarity_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    levenshtein_distance: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    verification_reason: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    verified_by_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    verified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    revoked_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    revocation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    beneficiary_a: Mapped["Beneficiary"] = relationship(
        "Beneficiary", foreign_keys=[beneficiary_a_id], lazy="selectin"
    )
    beneficiary_b: Mapped["Beneficiary"] = relationship(
        "Beneficiary", foreign_keys=[beneficiary_b_id], lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint("beneficiary_a_id < beneficiary_b_id", name="ck_vdp_normalized_order"),
        Index("vdp_pair_ab", "beneficiary_a_id", "beneficiary_b_id", "verification_status"),
        Index("vdp_pair_ba", "beneficiary_b_id", "beneficiary_a_id", "verification_status"),
        Index(
            "vdp_pair_unique_standing",
            "beneficiary_a_id",
            "beneficiary_b_id",
            unique=True,
            postgresql_where=text("verification_status <> 'REVOKED' AND deleted_at IS NULL"),
            sqlite_where=text("verification_status <> 'REVOKED' AND deleted_at IS NULL"),
        ),
        Index("vdp_verified_by_at", "verified_by_user_id", "verified_at"),
        Index("vdp_status_created", "verification_status", "created_at"),
    )


class SystemSetting(TimestampMixin, SoftDeleteMixin, Base):
    """Runtime-editable configuration value."""

    __tablename__ = "system_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[uuid_pkg.UUID] = mapped_column(Uuid, unique=True, default=uuid_pkg.uuid4, nullable=False)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    data_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="string"
    )  # integer | float | boolean | json | string
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    min_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 4), nullable=True)
    max_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 4), nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="system")
    is_editable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class ActivityLog(Base):
    """Append-only audit trail of state changes."""

    __tablename__ = "activity_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    log_name: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    subject_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    subject_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    causer_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    properties: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON, nullable=True, comment="before/after values"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("ix_activity_log_subject", "subject_type", "subject_id"),)
