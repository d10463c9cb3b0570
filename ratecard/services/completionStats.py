"""
Rate completion statistics for one supplier.

A *slot* is one (location, service type, service level) combination.  The
supplier's locations are its non-excluded covered countries plus every
priority city; each location contributes 3 service types x 3 levels.

Excluded slots (a service exclusion removes all three levels, a
response-time exclusion removes one) leave the denominator entirely, so they
never show up as ``missing``.  A slot covered by both kinds of exclusion is
removed once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ratecard.core.storage import execute
from ratecard.models import (
    SERVICE_TYPES,
    CityScope,
    CountryScope,
    LocationScope,
    ServiceLevel,
    SupplierCoverageCountry,
    SupplierPriorityCity,
    SupplierRate,
)
from ratecard.services.exclusionRegistry import (
    ExclusionIndex,
    get_response_time_exclusions,
    get_service_exclusions,
)
from ratecard.services.rateCatalog import get_supplier_rates

LOCATION_TYPE_COUNTRIES = "countries"
LOCATION_TYPE_CITIES = "cities"


@dataclass
class CompletionGroup:
    key: str
    configured: int = 0
    missing: int = 0
    total: int = 0


@dataclass
class CompletionStats:
    total: int
    configured: int
    missing: int
    excluded: int
    percentage: float
    by_service_type: list[CompletionGroup] = field(default_factory=list)
    by_location_type: list[CompletionGroup] = field(default_factory=list)


def completion_percentage(configured: int, total: int) -> float:
    if total == 0:
        return 0.0
    value = Decimal(configured) * Decimal(100) / Decimal(total)
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def compute_completion(
    supplier_id: int,
    locations: Sequence[LocationScope],
    rates: Iterable[SupplierRate],
    exclusions: ExclusionIndex,
    service_types: Sequence[str] = tuple(SERVICE_TYPES),
) -> CompletionStats:
    """Pure slot accounting over a snapshot of one supplier's records."""
    priced: set[tuple[str, str, ServiceLevel]] = {
        (r.scope_key, r.service_type, ServiceLevel(r.service_level))
        for r in rates
        if r.rate_usd_cents is not None
    }

    by_type = {t: CompletionGroup(key=t) for t in service_types}
    by_location = {
        LOCATION_TYPE_COUNTRIES: CompletionGroup(key=LOCATION_TYPE_COUNTRIES),
        LOCATION_TYPE_CITIES: CompletionGroup(key=LOCATION_TYPE_CITIES),
    }
    excluded = 0

    for scope in dict.fromkeys(locations):
        location_group = by_location[
            LOCATION_TYPE_CITIES if isinstance(scope, CityScope) else LOCATION_TYPE_COUNTRIES
        ]
        for service_type in service_types:
            for level in ServiceLevel:
                if exclusions.is_excluded(supplier_id, scope, service_type, level):
                    excluded += 1
                    continue
                is_configured = (scope.key, service_type, level) in priced
                for group in (by_type[service_type], location_group):
                    group.total += 1
                    if is_configured:
                        group.configured += 1
                    else:
                        group.missing += 1

    total = sum(g.total for g in by_type.values())
    configured = sum(g.configured for g in by_type.values())
    return CompletionStats(
        total=total,
        configured=configured,
        missing=total - configured,
        excluded=excluded,
        percentage=completion_percentage(configured, total),
        by_service_type=list(by_type.values()),
        by_location_type=list(by_location.values()),
    )


async def get_supplier_locations(db: AsyncSession, supplier_id: int) -> list[LocationScope]:
    """Non-excluded covered countries followed by all priority cities."""
    coverage = await execute(
        db,
        select(SupplierCoverageCountry.country_code)
        .where(
            SupplierCoverageCountry.supplier_id == supplier_id,
            SupplierCoverageCountry.is_excluded.is_(False),
        )
        .order_by(SupplierCoverageCountry.country_code),
    )
    cities = await execute(
        db,
        select(SupplierPriorityCity.id, SupplierPriorityCity.country_code)
        .where(SupplierPriorityCity.supplier_id == supplier_id)
        .order_by(SupplierPriorityCity.id),
    )
    locations: list[LocationScope] = [CountryScope(code) for code in coverage.scalars().all()]
    locations.extend(CityScope(row.id, row.country_code) for row in cities.all())
    return locations


async def get_rate_completion_stats(db: AsyncSession, supplier_id: int) -> CompletionStats:
    locations = await get_supplier_locations(db, supplier_id)
    rates = await get_supplier_rates(db, supplier_id)
    exclusions = ExclusionIndex.from_records(
        await get_service_exclusions(db, supplier_id),
        await get_response_time_exclusions(db, supplier_id),
    )
    return compute_completion(supplier_id, locations, rates, exclusions)
