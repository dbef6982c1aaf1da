"""Repository for beneficiary (Golden Record) data access.

Besides plain lookups this owns the lock-protected find-or-create path that
keeps one stored record per real-world person.
"""

from datetime import date
from typing import Any, Optional

from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from welfare_grid.core.exceptions import GoldenRecordViolationError
from welfare_grid.database.models import Beneficiary
from welfare_grid.repositories.base_repository import BaseRepository
from welfare_grid.utils.logging import get_logger

LOGGER = get_logger(__name__)


def identity_lock_key(first_name: str, last_name: str, birthdate: date) -> str:
    """Key naming the exact-match range guarded during registration."""
    return f"beneficiary:{first_name.strip().lower()}|{last_name.strip().lower()}|{birthdate.isoformat()}"


class BeneficiaryRepository(BaseRepository[Beneficiary]):
    """Repository for Beneficiary entity operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Beneficiary)

    def _active(self, query):
        return query.where(
            Beneficiary.deleted_at.is_(None),
            Beneficiary.is_active.is_(True),
        )

    async def search_by_phonetic(
        self,
        phonetic_key: str,
        birthdate: Optional[date] = None,
    ) -> list[Beneficiary]:
        """Indexed pre-filter: all active beneficiaries sharing a phonetic key.

        Args:
            phonetic_key: Soundex code of the family name
            birthdate: Optional exact birthdate filter

        Returns:
            Unranked candidate list
        """
        try:
            query = self._active(
                select(Beneficiary).where(Beneficiary.last_name_phonetic == phonetic_key)
            )
            if birthdate is not None:
                query = query.where(Beneficiary.birthdate == birthdate)
            result = await self.session.execute(query.order_by(Beneficiary.id))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error searching beneficiaries by phonetic key {phonetic_key}: {str(e)}",
                exc_info=True,
            )
            raise

    async def find_exact(
        self,
        first_name: str,
        last_name: str,
        birthdate: date,
        for_update: bool = False,
    ) -> Optional[Beneficiary]:
        """Exact, case-insensitive match on (first name, last name, birthdate).

        Args:
            first_name: Given name
            last_name: Family name
            birthdate: Date of birth
            for_update: Take a row lock on the matched range

        Returns:
            The oldest matching active beneficiary, if any
        """
        query = self._active(
            select(Beneficiary).where(
                func.lower(Beneficiary.first_name) == first_name.strip().lower(),
                func.lower(Beneficiary.last_name) == last_name.strip().lower(),
                Beneficiary.birthdate == birthdate,
            )
        ).order_by(Beneficiary.id).limit(1)
        if for_update:
            query = query.with_for_update()

        try:
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error finding exact beneficiary match for {first_name} {last_name}: {str(e)}",
                exc_info=True,
            )
            raise

    async def _lock_identity(self, first_name: str, last_name: str, birthdate: date) -> None:
        """Serialize registrations of the same identity for this transaction.

        ``SELECT ... FOR UPDATE`` on PostgreSQL locks only rows that exist, so an
        empty result would not stop a concurrent insert. A transaction-scoped
        advisory lock on the identity key closes that gap. Other backends rely
        on their own transaction isolation.
        """
        if self.session.get_bind().dialect.name != "postgresql":
            return
        await self.session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": identity_lock_key(first_name, last_name, birthdate)},
        )

    async def find_or_create(
        self,
        attributes: dict[str, Any],
        created_by: Optional[int] = None,
    ) -> tuple[Beneficiary, bool]:
        """Return the Golden Record for a person, creating it when absent.

        Must run inside the caller's transaction; the lock is released on
        commit or rollback.

        Args:
            attributes: Beneficiary column values; ``first_name``, ``last_name``,
                ``birthdate`` and ``home_municipality_id`` are required
            created_by: User ID recorded as creator

        Returns:
            Tuple of (beneficiary, created)

        Raises:
            GoldenRecordViolationError: If the insert collides despite the lock
        """
        first_name = attributes["first_name"].strip()
        last_name = attributes["last_name"].strip()
        birthdate = attributes["birthdate"]

        await self._lock_identity(first_name, last_name, birthdate)
        existing = await self.find_exact(first_name, last_name, birthdate, for_update=True)
        if existing is not None:
            self.logger.info(
                f"Golden Record hit for {first_name} {last_name} ({birthdate}): beneficiary {existing.id}"
            )
            return existing, False

        values = {**attributes, "first_name": first_name, "last_name": last_name}
        values.setdefault("created_by", created_by)
        values.setdefault("updated_by", created_by)
        try:
            beneficiary = Beneficiary(**values)
            self.session.add(beneficiary)
            await self.session.flush()
        except IntegrityError as e:
            self.logger.error(
                f"Duplicate Golden Record insert for {first_name} {last_name} ({birthdate}) under identity lock",
                exc_info=True,
            )
            raise GoldenRecordViolationError(
                f"Beneficiary {first_name} {last_name} ({birthdate}) already exists; identity lock was bypassed",
                original_error=e,
            ) from e

        self.logger.info(f"Created beneficiary {beneficiary.id} ({first_name} {last_name})")
        return beneficiary, True

    async def get_by_municipality(
        self,
        municipality_id: int,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Beneficiary]:
        """Active beneficiaries whose home is ``municipality_id``."""
        query = (
            self._active(select(Beneficiary))
            .where(Beneficiary.home_municipality_id == municipality_id)
            .order_by(Beneficiary.last_name, Beneficiary.first_name)
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
