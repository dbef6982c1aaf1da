from typing import Generic, TypeVar, Type, Optional
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from welfare_grid.utils.logging import get_logger

# Define a generic type for SQLAlchemy models
ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Base repository implementing common CRUD operations.

    Repositories only flush; the calling service owns the transaction and
    decides when to commit. Rows with a ``deleted_at`` column are tombstoned
    rather than removed and are hidden from reads by default.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session
            model: The SQLAlchemy model class this repository manages
        """
        self.session = session
        self.model = model
        self.logger = LOGGER

    @property
    def _soft_deletes(self) -> bool:
        return hasattr(self.model, "deleted_at")

    def _live(self, query):
        if self._soft_deletes:
            query = query.where(self.model.deleted_at.is_(None))
        return query

    async def get_by_id(self, id: int, include_deleted: bool = False) -> Optional[ModelType]:
        """Get a record by its internal ID.

        Args:
            id: The integer primary key of the record
            include_deleted: Whether tombstoned rows are returned

        Returns:
            The record if found, None otherwise
        """
        try:
            query = select(self.model).where(self.model.id == id)
            if not include_deleted:
                query = self._live(query)
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving {self.model.__name__} by ID {id}: {str(e)}",
                exc_info=True
            )
            raise

    async def create(self, **kwargs) -> ModelType:
        """Create a new record.

        Args:
            **kwargs: Fields and values for the new record

        Returns:
            The created record, flushed so its ID is populated
        """
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.flush()
            return instance
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error creating {self.model.__name__}: {str(e)}",
                exc_info=True
            )
            raise

    async def soft_delete(self, id: int) -> bool:
        """Tombstone a record by ID.

        Args:
            id: The ID of the record to tombstone

        Returns:
            True if tombstoned, False if not found or already deleted
        """
        try:
            instance = await self.get_by_id(id)
            if not instance:
                return False

            instance.deleted_at = datetime.now(timezone.utc)
            await self.session.flush()
            return True
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error deleting {self.model.__name__} {id}: {str(e)}",
                exc_info=True
            )
            raise

