"""Transactional session helpers."""

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from welfare_grid.database.base import async_session_maker


@asynccontextmanager
async def session_scope(
    session_factory: Optional[async_sessionmaker] = None,
) -> AsyncIterator[AsyncSession]:
    """Open a session and commit on success, roll back on error.

    Args:
        session_factory: Session factory to use; defaults to the global one

    Yields:
        AsyncSession: Database session with an open transaction
    """
    factory = session_factory or async_session_maker
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
