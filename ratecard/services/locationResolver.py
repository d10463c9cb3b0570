"""
Location Resolver.

Finds every supplier covering a target location and resolves, per supplier,
the single rate that applies to a request:

1. Coverage: an active, verified supplier covers country ``C`` when it has a
   non-excluded coverage row for ``C``, or when it declares a priority city in
   ``C`` and has not explicitly excluded ``C``.
2. City match: the target city name is matched case-insensitively against
   the supplier's own priority cities in ``C``.
3. Fallback: a city-scoped rate with an amount wins for that supplier only;
   otherwise its country-scoped rate is used.  A slot excluded at city scope
   blocks the supplier for that city outright.

Suppliers are never merged: each contributes at most one rate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ratecard.core.storage import execute
from ratecard.models import (
    CityScope,
    CountryScope,
    LocationScope,
    ServiceLevel,
    Supplier,
    SupplierCoverageCountry,
    SupplierPriorityCity,
    SupplierRate,
)
from ratecard.services.exclusionRegistry import ExclusionIndex


@dataclass
class CoveringSupplier:
    supplier: Supplier
    country_code: str
    # The supplier's own declaration of the target city, when it has one.
    city: Optional[SupplierPriorityCity] = None

    @property
    def scopes(self) -> list[LocationScope]:
        """Applicable scopes, most specific first."""
        scopes: list[LocationScope] = []
        if self.city is not None:
            scopes.append(CityScope(self.city.id, self.country_code))
        scopes.append(CountryScope(self.country_code))
        return scopes


@dataclass
class ResolvedRate:
    supplier_id: int
    offers_out_of_hours: bool
    scope: LocationScope
    rate_usd_cents: int


@dataclass
class Resolution:
    resolved: list[ResolvedRate] = field(default_factory=list)
    # Any candidate priced the service type at an applicable scope, at any level.
    has_service_rates: bool = False


def normalize_city_name(name: str) -> str:
    return " ".join(name.split()).casefold()


async def find_covering_suppliers(
    db: AsyncSession, country_code: str, city_name: Optional[str] = None
) -> list[CoveringSupplier]:
    country_code = country_code.upper()

    coverage_result = await execute(
        db,
        select(SupplierCoverageCountry).where(
            SupplierCoverageCountry.country_code == country_code
        ),
    )
    city_result = await execute(
        db,
        select(SupplierPriorityCity).where(
            SupplierPriorityCity.country_code == country_code
        ),
    )

    covered: set[int] = set()
    excluded: set[int] = set()
    for row in coverage_result.scalars().all():
        (excluded if row.is_excluded else covered).add(row.supplier_id)

    target = normalize_city_name(city_name) if city_name else None
    matched_city: dict[int, SupplierPriorityCity] = {}
    for city in city_result.scalars().all():
        if city.supplier_id not in excluded:
            covered.add(city.supplier_id)
        if target and normalize_city_name(city.city_name) == target:
            matched_city.setdefault(city.supplier_id, city)

    if not covered:
        return []

    supplier_result = await execute(
        db,
        select(Supplier)
        .where(
            Supplier.id.in_(sorted(covered)),
            Supplier.is_active.is_(True),
            Supplier.is_verified.is_(True),
        )
        .order_by(Supplier.id),
    )
    return [
        CoveringSupplier(
            supplier=supplier,
            country_code=country_code,
            city=matched_city.get(supplier.id),
        )
        for supplier in supplier_result.scalars().all()
    ]


def resolve_rates(
    candidates: Sequence[CoveringSupplier],
    rates: Sequence[SupplierRate],
    exclusions: ExclusionIndex,
    service_type: str,
    service_level: ServiceLevel,
) -> Resolution:
    """Pick at most one rate per candidate.  Pure; callers supply the snapshot."""
    by_slot: dict[tuple[int, str, str, ServiceLevel], SupplierRate] = {
        (r.supplier_id, r.scope_key, r.service_type, ServiceLevel(r.service_level)): r
        for r in rates
    }
    resolution = Resolution()

    for candidate in candidates:
        supplier = candidate.supplier
        scopes = candidate.scopes

        if not resolution.has_service_rates:
            resolution.has_service_rates = _has_priced_slot(
                by_slot, exclusions, supplier.id, scopes, service_type
            )

        for scope in scopes:
            if exclusions.is_excluded(supplier.id, scope, service_type, service_level):
                break
            rate = by_slot.get((supplier.id, scope.key, service_type, service_level))
            if rate is not None and rate.rate_usd_cents is not None:
                resolution.resolved.append(
                    ResolvedRate(
                        supplier_id=supplier.id,
                        offers_out_of_hours=bool(supplier.offers_out_of_hours),
                        scope=scope,
                        rate_usd_cents=rate.rate_usd_cents,
                    )
                )
                break

    return resolution


def _has_priced_slot(
    by_slot: dict[tuple[int, str, str, ServiceLevel], SupplierRate],
    exclusions: ExclusionIndex,
    supplier_id: int,
    scopes: Sequence[LocationScope],
    service_type: str,
) -> bool:
    """Whether the supplier has a priced, non-excluded slot of any level."""
    for scope in scopes:
        for level in ServiceLevel:
            if exclusions.is_excluded(supplier_id, scope, service_type, level):
                continue
            rate = by_slot.get((supplier_id, scope.key, service_type, level))
            if rate is not None and rate.rate_usd_cents is not None:
                return True
    return False
