"""Database module for SQLAlchemy models and session management."""

from welfare_grid.database.base import (
    Base,
    DatabaseClient,
    async_session_maker,
    close_database,
    db_client,
    engine,
    init_database,
)
from welfare_grid.database.models import (
    ActivityLog,
    Beneficiary,
    Claim,
    ClaimNote,
    Municipality,
    SystemSetting,
    VerifiedDistinctPair,
)
from welfare_grid.database.session import session_scope

__all__ = [
    "Base",
    "engine",
    "async_session_maker",
    "session_scope",
    "DatabaseClient",
    "db_client",
    "init_database",
    "close_database",
    "Municipality",
    "Beneficiary",
    "Claim",
    "ClaimNote",
    "VerifiedDistinctPair",
    "SystemSetting",
    "ActivityLog",
]
