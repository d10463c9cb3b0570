"""
Rate Catalog Accessor.

Typed read/write access to ``supplier_rates`` keyed by
(supplier, location scope, service type, service level).

Writes are single atomic ``INSERT ... ON CONFLICT DO UPDATE`` statements on
the natural key, so concurrent edits of the same slot cannot interleave a
read and a write.  The ``is_serviceable`` projection is computed from the
supplier's current exclusions as part of the same statement.

Rates are removed only through ``delete_rate``; nothing in pricing or
analytics deletes rows as a side effect.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ratecard.core.storage import dialect_insert, execute
from ratecard.models import (
    MAX_RATE_USD_CENTS,
    CityScope,
    LocationScope,
    ServiceLevel,
    Supplier,
    SupplierPriorityCity,
    SupplierRate,
    parse_service_type,
    scope_columns,
)
from ratecard.services.exclusionRegistry import ExclusionIndex, load_exclusion_index

logger = logging.getLogger(__name__)

_SLOT_KEY = ["supplier_id", "scope_key", "service_type", "service_level"]


class RateNotFoundError(Exception):
    """Raised when a rate does not exist for the requesting supplier."""

    def __init__(self, rate_id: int, supplier_id: int) -> None:
        self.rate_id = rate_id
        self.supplier_id = supplier_id
        super().__init__(f"Rate {rate_id} not found for supplier {supplier_id}")


class SupplierNotFoundError(Exception):
    """Raised when the supplier id does not exist."""

    def __init__(self, supplier_id: int) -> None:
        self.supplier_id = supplier_id
        super().__init__(f"Supplier {supplier_id} not found")


class UnknownCityError(ValueError):
    """Raised when a city-scoped write names a city the supplier has not declared."""

    def __init__(self, city_ids: Sequence[int], supplier_id: int) -> None:
        self.city_ids = list(city_ids)
        super().__init__(
            f"Supplier {supplier_id} has no priority city with id(s) "
            f"{', '.join(str(c) for c in self.city_ids)}"
        )


@dataclass
class RateInput:
    """One rate slot as submitted by a supplier.  ``None`` clears the price."""

    scope: LocationScope
    service_type: str
    service_level: ServiceLevel
    rate_usd_cents: Optional[int]

    def __post_init__(self) -> None:
        self.service_type = parse_service_type(self.service_type)
        if self.rate_usd_cents is not None and not 0 <= self.rate_usd_cents <= MAX_RATE_USD_CENTS:
            raise ValueError(
                f"rate_usd_cents must be between 0 and {MAX_RATE_USD_CENTS}"
            )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_supplier(db: AsyncSession, supplier_id: int) -> Supplier:
    result = await execute(db, select(Supplier).where(Supplier.id == supplier_id))
    supplier = result.scalar_one_or_none()
    if supplier is None:
        raise SupplierNotFoundError(supplier_id)
    return supplier


async def get_supplier_rates(db: AsyncSession, supplier_id: int) -> list[SupplierRate]:
    stmt = (
        select(SupplierRate)
        .where(SupplierRate.supplier_id == supplier_id)
        .order_by(SupplierRate.id)
        .execution_options(populate_existing=True)
    )
    result = await execute(db, stmt)
    return list(result.scalars().all())


async def get_rates_for_service(
    db: AsyncSession, supplier_ids: Sequence[int], service_type: str
) -> list[SupplierRate]:
    """Every level of ``service_type`` for the given suppliers, at any scope."""
    if not supplier_ids:
        return []
    stmt = (
        select(SupplierRate)
        .where(
            SupplierRate.supplier_id.in_(list(supplier_ids)),
            SupplierRate.service_type == service_type,
        )
        .execution_options(populate_existing=True)
    )
    result = await execute(db, stmt)
    return list(result.scalars().all())


async def get_market_rates(
    db: AsyncSession,
    service_type: str,
    service_level: ServiceLevel,
    country_code: Optional[str] = None,
) -> list[int]:
    """Non-null amounts across all suppliers for one (type, level[, country])."""
    stmt = select(SupplierRate.rate_usd_cents).where(
        SupplierRate.service_type == service_type,
        SupplierRate.service_level == service_level,
        SupplierRate.rate_usd_cents.is_not(None),
    )
    if country_code is not None:
        stmt = stmt.where(SupplierRate.country_code == country_code)
    result = await execute(db, stmt)
    return [amount for amount in result.scalars().all()]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def upsert_rate(db: AsyncSession, supplier_id: int, rate: RateInput) -> SupplierRate:
    """Insert or update one rate slot atomically and return the stored row."""
    await _ensure_cities_owned(db, supplier_id, [rate])
    index = await load_exclusion_index(db, [supplier_id])

    stmt = _upsert_statement(db, [_row_values(supplier_id, rate, index)])
    stmt = stmt.returning(SupplierRate).execution_options(populate_existing=True)
    result = await execute(db, stmt)
    stored = result.scalar_one()

    logger.info(
        "Upserted rate %s for supplier %s (%s %s/%s = %s)",
        stored.id,
        supplier_id,
        rate.scope.key,
        rate.service_type,
        rate.service_level.value,
        rate.rate_usd_cents,
    )
    return stored


async def bulk_upsert_rates(
    db: AsyncSession, supplier_id: int, rates: Sequence[RateInput]
) -> int:
    """Upsert many slots for one supplier in a single statement.

    When the same slot appears more than once the last entry wins.  Returns the
    number of distinct slots written.
    """
    if not rates:
        return 0
    await _ensure_cities_owned(db, supplier_id, rates)
    index = await load_exclusion_index(db, [supplier_id])

    by_slot: dict[tuple[str, str, ServiceLevel], dict] = {}
    for rate in rates:
        by_slot[(rate.scope.key, rate.service_type, rate.service_level)] = _row_values(
            supplier_id, rate, index
        )

    await execute(db, _upsert_statement(db, list(by_slot.values())))
    logger.info("Bulk upserted %d rates for supplier %s", len(by_slot), supplier_id)
    return len(by_slot)


async def delete_rate(db: AsyncSession, rate_id: int, supplier_id: int) -> None:
    """Explicit opt-out: remove one rate row owned by ``supplier_id``."""
    stmt = delete(SupplierRate).where(
        SupplierRate.id == rate_id, SupplierRate.supplier_id == supplier_id
    )
    result = await execute(db, stmt)
    if result.rowcount == 0:
        raise RateNotFoundError(rate_id, supplier_id)
    logger.info("Deleted rate %s for supplier %s", rate_id, supplier_id)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_values(supplier_id: int, rate: RateInput, index: ExclusionIndex) -> dict:
    return {
        "supplier_id": supplier_id,
        "service_type": rate.service_type,
        "service_level": rate.service_level,
        "rate_usd_cents": rate.rate_usd_cents,
        "is_serviceable": not index.is_excluded(
            supplier_id, rate.scope, rate.service_type, rate.service_level
        ),
        **scope_columns(rate.scope),
    }


def _upsert_statement(db: AsyncSession, values: list[dict]):
    stmt = dialect_insert(db, SupplierRate).values(values)
    return stmt.on_conflict_do_update(
        index_elements=_SLOT_KEY,
        set_={
            "rate_usd_cents": stmt.excluded.rate_usd_cents,
            "is_serviceable": stmt.excluded.is_serviceable,
            "updated_at": func.now(),
        },
    )


async def _ensure_cities_owned(
    db: AsyncSession, supplier_id: int, rates: Sequence[RateInput]
) -> None:
    city_ids = {r.scope.id for r in rates if isinstance(r.scope, CityScope)}
    if not city_ids:
        return
    result = await execute(
        db,
        select(SupplierPriorityCity.id).where(
            SupplierPriorityCity.supplier_id == supplier_id,
            SupplierPriorityCity.id.in_(city_ids),
        ),
    )
    unknown = city_ids - set(result.scalars().all())
    if unknown:
        raise UnknownCityError(sorted(unknown), supplier_id)
