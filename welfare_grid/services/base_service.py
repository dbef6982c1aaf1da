from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from welfare_grid.core.exceptions import AppError, DatabaseError, ValidationError
from welfare_grid.utils.logging import get_logger

LOGGER = get_logger(__name__)

SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseService:
    """Base class for application services.

    Provides a standardized execution flow with validation, transaction
    handling and error translation. A service works on one session; public
    operations that change state commit it, and any failure rolls it back.
    """

    def __init__(self, session: Optional[AsyncSession] = None):
        """Initialize the service.

        Args:
            session: Unit-of-work session the service operates on
        """
        self.session = session
        self.logger = LOGGER

    async def execute(
        self,
        operation: Callable[..., Awaitable[Any]],
        *args,
        commit: bool = False,
        **kwargs,
    ) -> Any:
        """Execute one service operation.

        This template method handles:
        1. Core logic execution
        2. Commit on success when the operation changes state
        3. Rollback and standardized error handling on failure

        Args:
            operation: Coroutine function implementing the operation
            commit: Whether to commit the session on success
            *args: Positional arguments for the operation
            **kwargs: Keyword arguments for the operation

        Returns:
            Result of the operation

        Raises:
            AppError: If execution fails
        """
        try:
            result = await operation(*args, **kwargs)
            if commit and self.session is not None:
                await self.session.commit()
            return result

        except AppError:
            await self._rollback()
            raise

        except PydanticValidationError as e:
            await self._rollback()
            raise ValidationError(f"Invalid input: {e}", original_error=e) from e

        except SQLAlchemyError as e:
            await self._rollback()
            self.logger.error(
                f"Database error in {operation.__name__}: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__}
            )
            raise DatabaseError(f"Database operation failed: {str(e)}", original_error=e) from e

        except Exception as e:
            await self._rollback()
            self.logger.error(
                f"Service execution failed: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__}
            )
            raise AppError(f"Service execution failed: {str(e)}", original_error=e) from e

    async def _rollback(self) -> None:
        if self.session is not None and self.session.in_transaction():
            await self.session.rollback()

    @staticmethod
    def parse(schema: Type[SchemaType], data: Any) -> SchemaType:
        """Build ``schema`` from a model or mapping.

        Raises:
            ValidationError: If the data does not fit the schema
        """
        if isinstance(data, schema):
            return data
        try:
            if isinstance(data, BaseModel):
                data = data.model_dump()
            return schema.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid {schema.__name__}: {e}", original_error=e) from e
