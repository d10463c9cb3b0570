"""
E2E test fixtures for the ratecard backend.

Provides:
- An in-process FastAPI test app with all routes registered
- httpx AsyncClient wired via ASGI transport (no network needed)
- An async SQLite database session (in-memory) for isolation
- Pre-populated seed data: suppliers, coverage, priority cities, rates and
  exclusions

Seeded pricing catalog (``EUC`` is the L1_EUC service code):

  supplier 1  Metro IT        OOH   New York city rates 100 / 80 / 60 $/h
  supplier 2  Coastal Tech    -     US country rates 90 / 70 / - $/h, Smart Hands 80 $/h
  supplier 3  Field Force     OOH   US scheduled 50 $/h
  supplier 4  Dormant Svcs    OOH   inactive; US same-day 110 $/h
  supplier 5  Boston Only     OOH   US coverage explicitly excluded; Boston city rate
  supplier 10 Completion Co   -     GB + IE + London; L1_NETWORK in GB, Smart Hands in IE
"""

from __future__ import annotations

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ratecard.models import (
    Base,
    ServiceLevel,
    Supplier,
    SupplierCoverageCountry,
    SupplierPriorityCity,
    SupplierRate,
    SupplierResponseTimeExclusion,
    SupplierServiceExclusion,
)

# ---------------------------------------------------------------------------
# Test IDs (stable across tests so cross-references work)
# ---------------------------------------------------------------------------

METRO_IT_ID = 1
COASTAL_TECH_ID = 2
FIELD_FORCE_ID = 3
DORMANT_ID = 4
BOSTON_ONLY_ID = 5
COMPLETION_CO_ID = 10

METRO_NEW_YORK_CITY_ID = 101
BOSTON_CITY_ID = 105
COMPLETION_LONDON_CITY_ID = 110

EUC = "L1_EUC"
NETWORK = "L1_NETWORK"
SMART_HANDS = "SMART_HANDS"

SAME = ServiceLevel.SAME_BUSINESS_DAY
NEXT = ServiceLevel.NEXT_BUSINESS_DAY
SCHEDULED = ServiceLevel.SCHEDULED

# 2025-01-15 is a Wednesday, 2025-01-18 a Saturday.
WEEKDAY_10AM = "2025-01-15T10:00:00"
WEEKDAY_6PM = "2025-01-15T18:00:00"
SATURDAY_10AM = "2025-01-18T10:00:00"


# ---------------------------------------------------------------------------
# Async engine + session (in-memory SQLite)
# ---------------------------------------------------------------------------

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def _test_engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)

    # SQLite does not enforce foreign keys by default
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_fk(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(_test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session inside one transaction that is rolled back afterwards."""
    session_factory = async_sessionmaker(
        bind=_test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        await session.begin()
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

def _rate(
    supplier_id: int,
    service_type: str,
    level: ServiceLevel,
    cents: Optional[int],
    country_code: Optional[str] = None,
    city_id: Optional[int] = None,
    is_serviceable: bool = True,
) -> SupplierRate:
    scope_key = f"city:{city_id}" if city_id is not None else f"country:{country_code}"
    return SupplierRate(
        supplier_id=supplier_id,
        country_code=country_code,
        city_id=city_id,
        scope_key=scope_key,
        service_type=service_type,
        service_level=level,
        rate_usd_cents=cents,
        is_serviceable=is_serviceable,
    )


def _supplier(supplier_id: int, name: str, ooh: bool, active: bool = True) -> Supplier:
    return Supplier(
        id=supplier_id,
        company_name=name,
        country="US",
        offers_out_of_hours=ooh,
        is_active=active,
        is_verified=True,
    )


async def _seed_data(db: AsyncSession) -> None:
    db.add_all(
        [
            _supplier(METRO_IT_ID, "Metro IT", ooh=True),
            _supplier(COASTAL_TECH_ID, "Coastal Tech", ooh=False),
            _supplier(FIELD_FORCE_ID, "Field Force", ooh=True),
            _supplier(DORMANT_ID, "Dormant Services", ooh=True, active=False),
            _supplier(BOSTON_ONLY_ID, "Boston Only", ooh=True),
            _supplier(COMPLETION_CO_ID, "Completion Co", ooh=False),
        ]
    )
    await db.flush()

    db.add_all(
        [
            SupplierCoverageCountry(supplier_id=METRO_IT_ID, country_code="US", is_excluded=False),
            SupplierCoverageCountry(supplier_id=COASTAL_TECH_ID, country_code="US", is_excluded=False),
            SupplierCoverageCountry(supplier_id=FIELD_FORCE_ID, country_code="US", is_excluded=False),
            SupplierCoverageCountry(supplier_id=DORMANT_ID, country_code="US", is_excluded=False),
            SupplierCoverageCountry(supplier_id=BOSTON_ONLY_ID, country_code="US", is_excluded=True),
            SupplierCoverageCountry(supplier_id=COMPLETION_CO_ID, country_code="GB", is_excluded=False),
            SupplierCoverageCountry(supplier_id=COMPLETION_CO_ID, country_code="IE", is_excluded=False),
            SupplierPriorityCity(
                id=METRO_NEW_YORK_CITY_ID,
                supplier_id=METRO_IT_ID,
                country_code="US",
                city_name="New York",
                timezone="America/New_York",
            ),
            SupplierPriorityCity(
                id=BOSTON_CITY_ID,
                supplier_id=BOSTON_ONLY_ID,
                country_code="US",
                city_name="Boston",
                timezone="America/New_York",
            ),
            SupplierPriorityCity(
                id=COMPLETION_LONDON_CITY_ID,
                supplier_id=COMPLETION_CO_ID,
                country_code="GB",
                city_name="London",
                timezone="Europe/London",
            ),
        ]
    )
    await db.flush()

    db.add_all(
        [
            # Metro IT: New York city rates only
            _rate(METRO_IT_ID, EUC, SAME, 10000, city_id=METRO_NEW_YORK_CITY_ID),
            _rate(METRO_IT_ID, EUC, NEXT, 8000, city_id=METRO_NEW_YORK_CITY_ID),
            _rate(METRO_IT_ID, EUC, SCHEDULED, 6000, city_id=METRO_NEW_YORK_CITY_ID),
            # Coastal Tech: country-wide
            _rate(COASTAL_TECH_ID, EUC, SAME, 9000, country_code="US"),
            _rate(COASTAL_TECH_ID, EUC, NEXT, 7000, country_code="US"),
            _rate(COASTAL_TECH_ID, SMART_HANDS, SAME, 8000, country_code="US"),
            # Field Force: scheduled only
            _rate(FIELD_FORCE_ID, EUC, SCHEDULED, 5000, country_code="US"),
            # Inactive supplier must never be quoted
            _rate(DORMANT_ID, EUC, SAME, 11000, country_code="US"),
            # City rate of a supplier whose US coverage is excluded
            _rate(BOSTON_ONLY_ID, EUC, SAME, 2000, city_id=BOSTON_CITY_ID),
            # Completion Co
            _rate(COMPLETION_CO_ID, NETWORK, SAME, 15000, country_code="GB"),
            _rate(COMPLETION_CO_ID, NETWORK, NEXT, 12000, country_code="GB"),
            _rate(COMPLETION_CO_ID, NETWORK, SCHEDULED, 9000, country_code="GB"),
            _rate(COMPLETION_CO_ID, SMART_HANDS, SAME, 14000, country_code="IE"),
            _rate(COMPLETION_CO_ID, SMART_HANDS, NEXT, 11000, country_code="IE"),
            SupplierServiceExclusion(
                supplier_id=COMPLETION_CO_ID,
                country_code="GB",
                scope_key="country:GB",
                service_type=EUC,
            ),
            SupplierResponseTimeExclusion(
                supplier_id=COMPLETION_CO_ID,
                country_code="IE",
                scope_key="country:IE",
                service_type=NETWORK,
                service_level=SCHEDULED,
            ),
        ]
    )
    await db.flush()


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    await _seed_data(db_session)
    return db_session


# ---------------------------------------------------------------------------
# Test app + HTTP client
# ---------------------------------------------------------------------------

def _create_test_app(db_session_override: AsyncSession):
    """Build a FastAPI app with all routes registered and the DB dependency
    overridden to use the test session."""
    from fastapi import FastAPI

    from ratecard.api.deps import get_db
    from ratecard.api.routes.analytics import router as analytics_router
    from ratecard.api.routes.exclusions import router as exclusions_router
    from ratecard.api.routes.pricing import router as pricing_router
    from ratecard.api.routes.rates import router as rates_router
    from ratecard.core.storage import StorageUnavailableError
    from ratecard.main import storage_unavailable_handler

    app = FastAPI(title="Ratecard Test")

    async def _override_get_db():
        yield db_session_override

    app.dependency_overrides[get_db] = _override_get_db
    app.add_exception_handler(StorageUnavailableError, storage_unavailable_handler)

    app.include_router(pricing_router, prefix="/api/v1")
    app.include_router(rates_router, prefix="/api/v1")
    app.include_router(exclusions_router, prefix="/api/v1")
    app.include_router(analytics_router, prefix="/api/v1")

    return app


@pytest_asyncio.fixture
async def client(seeded_db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient connected to the test app via ASGI transport."""
    app = _create_test_app(seeded_db)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def quote_body():
    """Factory for price quote request bodies (defaults: scenario 1)."""

    def _make(**overrides):
        body = {
            "serviceType": EUC,
            "serviceLevel": "same_day",
            "durationMinutes": 240,
            "city": "New York",
            "country": "US",
            "scheduledDateTime": WEEKDAY_10AM,
            "timezone": "America/New_York",
        }
        body.update(overrides)
        return body

    return _make
