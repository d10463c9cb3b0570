"""
Shared pytest fixtures for ratecard unit tests.

Provides mock database sessions and factories for domain objects that mirror
production ORM models without requiring a live database connection.
"""

from typing import Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from ratecard.models import (
    CityScope,
    CountryScope,
    ServiceLevel,
    Supplier,
    SupplierPriorityCity,
    SupplierRate,
    SupplierResponseTimeExclusion,
    SupplierServiceExclusion,
)


# ---------------------------------------------------------------------------
# Database session mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db() -> AsyncMock:
    """Async mock of ``AsyncSession``.

    Provides a mock that supports ``db.execute()``, ``db.add()``,
    ``db.flush()``, and ``db.commit()`` out of the box.  Individual tests
    can configure ``mock_db.execute.return_value`` to control query results.
    """
    session = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


def _scope_attrs(obj, country_code: Optional[str], city_id: Optional[int]) -> None:
    obj.country_code = country_code
    obj.city_id = city_id
    if city_id is not None:
        obj.scope_key = f"city:{city_id}"
        obj.scope = CityScope(city_id)
    else:
        obj.scope_key = f"country:{country_code}"
        obj.scope = CountryScope(country_code)


# ---------------------------------------------------------------------------
# Supplier fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_supplier() -> Callable[..., Supplier]:
    """Factory for active, verified suppliers."""

    def _make(
        supplier_id: int,
        offers_out_of_hours: bool = False,
        is_active: bool = True,
        is_verified: bool = True,
    ) -> Supplier:
        supplier = MagicMock(spec=Supplier)
        supplier.id = supplier_id
        supplier.company_name = f"Supplier {supplier_id}"
        supplier.country = "US"
        supplier.offers_out_of_hours = offers_out_of_hours
        supplier.is_active = is_active
        supplier.is_verified = is_verified
        return supplier

    return _make


@pytest.fixture
def make_city() -> Callable[..., SupplierPriorityCity]:
    def _make(
        city_id: int,
        supplier_id: int,
        city_name: str = "New York",
        country_code: str = "US",
    ) -> SupplierPriorityCity:
        city = MagicMock(spec=SupplierPriorityCity)
        city.id = city_id
        city.supplier_id = supplier_id
        city.city_name = city_name
        city.country_code = country_code
        city.timezone = "America/New_York"
        return city

    return _make


# ---------------------------------------------------------------------------
# Rate & exclusion fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_rate() -> Callable[..., SupplierRate]:
    """Factory for rate rows.  Pass ``city_id`` for a city-scoped row."""
    counter = iter(range(1, 10_000))

    def _make(
        supplier_id: int,
        service_level: ServiceLevel,
        rate_usd_cents: Optional[int],
        service_type: str = "L1_EUC",
        country_code: Optional[str] = "US",
        city_id: Optional[int] = None,
        is_serviceable: bool = True,
    ) -> SupplierRate:
        rate = MagicMock(spec=SupplierRate)
        rate.id = next(counter)
        rate.supplier_id = supplier_id
        rate.service_type = service_type
        rate.service_level = service_level
        rate.rate_usd_cents = rate_usd_cents
        rate.is_serviceable = is_serviceable
        _scope_attrs(rate, None if city_id is not None else country_code, city_id)
        return rate

    return _make


@pytest.fixture
def make_service_exclusion() -> Callable[..., SupplierServiceExclusion]:
    def _make(
        supplier_id: int,
        service_type: str,
        country_code: Optional[str] = "US",
        city_id: Optional[int] = None,
    ) -> SupplierServiceExclusion:
        exclusion = MagicMock(spec=SupplierServiceExclusion)
        exclusion.supplier_id = supplier_id
        exclusion.service_type = service_type
        _scope_attrs(exclusion, None if city_id is not None else country_code, city_id)
        return exclusion

    return _make


@pytest.fixture
def make_response_exclusion() -> Callable[..., SupplierResponseTimeExclusion]:
    def _make(
        supplier_id: int,
        service_type: str,
        service_level: ServiceLevel,
        country_code: Optional[str] = "US",
        city_id: Optional[int] = None,
    ) -> SupplierResponseTimeExclusion:
        exclusion = MagicMock(spec=SupplierResponseTimeExclusion)
        exclusion.supplier_id = supplier_id
        exclusion.service_type = service_type
        exclusion.service_level = service_level
        _scope_attrs(exclusion, None if city_id is not None else country_code, city_id)
        return exclusion

    return _make
