"""Pytest configuration and shared fixtures.

Tests run against a throwaway SQLite file per test through aiosqlite, so
several sessions (and the worker activities) can share one database the way
they share PostgreSQL in production.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from welfare_grid.database.base import DatabaseClient
from welfare_grid.database.models import Beneficiary, Claim, Municipality, SystemSetting
from welfare_grid.schemas.auth import ROLE_ADMIN, ROLE_STAFF, CallerContext
from welfare_grid.schemas.enums import AssistanceType, ClaimStatus
from welfare_grid.services.configuration_service import ConfigurationService

THRESHOLD_SEED = [
    ("RISK_THRESHOLD_DAYS", "90", 1, 365),
    ("SAME_TYPE_THRESHOLD_DAYS", "30", 1, 365),
    ("HIGH_FREQUENCY_THRESHOLD", "3", 1, 50),
    ("LEVENSHTEIN_DISTANCE_THRESHOLD", "3", 0, 10),
    ("DUPLICATE_REPORT_DISTANCE_THRESHOLD", "5", 0, 10),
]


@pytest.fixture
def database_url(tmp_path) -> str:
    """SQLite file shared by every engine in a test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'grid.db'}"


@pytest_asyncio.fixture
async def engine(database_url):
    """Engine with the schema created and the fraud thresholds seeded."""
    engine = create_async_engine(database_url)
    await DatabaseClient(engine).create_tables()

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        for key, value, min_value, max_value in THRESHOLD_SEED:
            session.add(
                SystemSetting(
                    key=key,
                    value=value,
                    data_type="integer",
                    min_value=Decimal(min_value),
                    max_value=Decimal(max_value),
                    category="fraud_detection",
                    is_editable=True,
                )
            )
        await session.commit()

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    """Session used by the test body and the services under test."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def serialized_session_factory(engine, database_url):
    """Session factory whose transactions take the SQLite write lock up front.

    SQLite has no row locks, so the concurrency tests rely on
    ``BEGIN IMMEDIATE`` to serialize whole transactions instead.
    """
    serialized = create_async_engine(database_url)

    @event.listens_for(serialized.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(serialized.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    yield async_sessionmaker(serialized, class_=AsyncSession, expire_on_commit=False)
    await serialized.dispose()


@pytest.fixture
def config(session_factory) -> ConfigurationService:
    """Configuration service reading the seeded thresholds."""
    return ConfigurationService(session_factory=session_factory, cache_ttl=60)


@pytest.fixture
def provincial_admin() -> CallerContext:
    return CallerContext(user_id=1, municipality_id=None, role=ROLE_ADMIN, name="Provincial Admin")


@pytest.fixture
def make_caller():
    """Build a tenant-scoped staff caller for a municipality."""

    def _make(municipality_id: int, user_id: int = 100) -> CallerContext:
        return CallerContext(user_id=user_id, municipality_id=municipality_id, role=ROLE_STAFF)

    return _make


@pytest.fixture
def make_municipality(session):
    """Insert a municipality and flush it."""
    counter = {"n": 0}

    async def _make(name: str = None, allocated_budget="1000000", used_budget="0") -> Municipality:
        counter["n"] += 1
        municipality = Municipality(
            name=name or f"Municipality {counter['n']}",
            code=f"MUN-{counter['n']:03d}",
            allocated_budget=Decimal(allocated_budget),
            used_budget=Decimal(used_budget),
        )
        session.add(municipality)
        await session.flush()
        return municipality

    return _make


@pytest.fixture
def make_beneficiary(session):
    """Insert a beneficiary and flush it."""

    async def _make(
        municipality: Municipality,
        first_name: str = "Juan",
        last_name: str = "Dela Cruz",
        birthdate: date = date(1980, 5, 15),
        gender: str = "Male",
    ) -> Beneficiary:
        beneficiary = Beneficiary(
            home_municipality_id=municipality.id,
            first_name=first_name,
            last_name=last_name,
            birthdate=birthdate,
            gender=gender,
        )
        session.add(beneficiary)
        await session.flush()
        return beneficiary

    return _make


@pytest.fixture
def make_claim(session):
    """Insert a claim filed ``days_ago`` days ago and flush it."""

    async def _make(
        beneficiary: Beneficiary,
        municipality: Municipality,
        assistance_type: AssistanceType = AssistanceType.MEDICAL,
        amount: str = "5000.00",
        status: ClaimStatus = ClaimStatus.PENDING,
        days_ago: int = 0,
    ) -> Claim:
        created_at = datetime.now(timezone.utc) - timedelta(days=days_ago)
        claim = Claim(
            beneficiary_id=beneficiary.id,
            municipality_id=municipality.id,
            assistance_type=assistance_type.value,
            amount=Decimal(amount),
            status=status.value,
            created_at=created_at,
            updated_at=created_at,
        )
        session.add(claim)
        await session.flush()
        return claim

    return _make
