"""Repository for municipalities and their budget ledger."""

from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from welfare_grid.core.exceptions import MunicipalityNotFoundError
from welfare_grid.database.models import Municipality
from welfare_grid.repositories.base_repository import BaseRepository


class MunicipalityRepository(BaseRepository[Municipality]):
    """Repository for Municipality entity operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Municipality)

    async def get_names(self, ids: list[int]) -> dict[int, str]:
        """Map municipality IDs to display names."""
        if not ids:
            return {}
        result = await self.session.execute(
            select(Municipality.id, Municipality.name).where(Municipality.id.in_(ids))
        )
        return {row.id: row.name for row in result}

    async def lock(self, municipality_id: int) -> Municipality:
        """Take a row lock on the municipality for the current transaction."""
        result = await self.session.execute(
            select(Municipality).where(Municipality.id == municipality_id).with_for_update()
        )
        municipality = result.scalar_one_or_none()
        if municipality is None:
            raise MunicipalityNotFoundError(f"Municipality {municipality_id} not found")
        return municipality

    async def debit_budget(self, municipality_id: int, amount: Decimal) -> Municipality:
        """Add ``amount`` to the municipality's used budget.

        The increment is a single SQL expression evaluated by the database, so
        concurrent debits never read a stale ``used_budget``. Overruns are
        allowed; callers report them.

        Args:
            municipality_id: Municipality to debit
            amount: Disbursed amount

        Returns:
            The refreshed municipality row
        """
        try:
            municipality = await self.lock(municipality_id)
            await self.session.execute(
                update(Municipality)
                .where(Municipality.id == municipality_id)
                .values(used_budget=Municipality.used_budget + amount)
                .execution_options(synchronize_session=False)
            )
            await self.session.refresh(municipality)
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error debiting {amount} from municipality {municipality_id}: {str(e)}",
                exc_info=True,
            )
            raise

        self.logger.info(
            f"Debited {amount} from municipality {municipality_id}; used budget now {municipality.used_budget}"
        )
        return municipality
