"""
Bulk percentage adjustment of a supplier's rates.

``preview_bulk_adjustment`` selects the supplier's priced rows matching the
filters and computes the new amounts without touching storage.
``apply_bulk_adjustment`` recomputes the same selection and writes every new
amount in one batched ``UPDATE`` whose WHERE clause repeats the supplier id,
so a malformed filter can never reach another supplier's rows.

Filter semantics: service types and service levels narrow the selection; the
location filters (country codes, city ids) are alternatives and are OR-ed
with each other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import bindparam, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ratecard.core.storage import execute
from ratecard.models import MAX_RATE_USD_CENTS, ServiceLevel, SupplierRate, parse_service_type

logger = logging.getLogger(__name__)

MIN_ADJUSTMENT_PERCENT = Decimal("-100")
MAX_ADJUSTMENT_PERCENT = Decimal("1000")


class AdjustmentOutOfRangeError(ValueError):
    """An adjusted amount would not fit the rate column."""

    def __init__(self, rate_id: int, amount: int) -> None:
        self.rate_id = rate_id
        self.amount = amount
        super().__init__(
            f"Adjusted rate {rate_id} would be {amount} cents, "
            f"above the maximum of {MAX_RATE_USD_CENTS}"
        )


@dataclass
class BulkAdjustmentFilters:
    supplier_id: int
    adjustment_percent: Decimal
    service_types: list[str] = field(default_factory=list)
    service_levels: list[ServiceLevel] = field(default_factory=list)
    country_codes: list[str] = field(default_factory=list)
    city_ids: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.adjustment_percent = Decimal(str(self.adjustment_percent))
        if self.adjustment_percent < MIN_ADJUSTMENT_PERCENT:
            raise ValueError("adjustmentPercent cannot be lower than -100")
        if self.adjustment_percent > MAX_ADJUSTMENT_PERCENT:
            raise ValueError("adjustmentPercent cannot be higher than 1000")
        self.service_types = [parse_service_type(t) for t in self.service_types]


@dataclass
class AdjustmentPreview:
    id: int
    service_type: str
    service_level: ServiceLevel
    country_code: Optional[str]
    city_id: Optional[int]
    current_rate_usd_cents: int
    new_rate_usd_cents: int
    change_percent: float


def adjusted_amount(current_cents: int, adjustment_percent: Decimal) -> int:
    multiplier = Decimal(1) + Decimal(str(adjustment_percent)) / Decimal(100)
    return int((Decimal(current_cents) * multiplier).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _selection(filters: BulkAdjustmentFilters):
    stmt = select(SupplierRate).where(
        SupplierRate.supplier_id == filters.supplier_id,
        SupplierRate.rate_usd_cents.is_not(None),
    )
    if filters.service_types:
        stmt = stmt.where(SupplierRate.service_type.in_(filters.service_types))
    if filters.service_levels:
        stmt = stmt.where(SupplierRate.service_level.in_(filters.service_levels))

    location_conditions = []
    if filters.country_codes:
        location_conditions.append(
            SupplierRate.country_code.in_([c.upper() for c in filters.country_codes])
        )
    if filters.city_ids:
        location_conditions.append(SupplierRate.city_id.in_(filters.city_ids))
    if location_conditions:
        stmt = stmt.where(or_(*location_conditions))

    return stmt.order_by(SupplierRate.id).execution_options(populate_existing=True)


async def preview_bulk_adjustment(
    db: AsyncSession, filters: BulkAdjustmentFilters
) -> list[AdjustmentPreview]:
    """Compute the new amounts for the selection.

    Raises ``AdjustmentOutOfRangeError`` when any new amount exceeds
    ``MAX_RATE_USD_CENTS``.
    """
    result = await execute(db, _selection(filters))
    previews = []
    for rate in result.scalars().all():
        new_amount = adjusted_amount(rate.rate_usd_cents, filters.adjustment_percent)
        if new_amount > MAX_RATE_USD_CENTS:
            raise AdjustmentOutOfRangeError(rate.id, new_amount)
        previews.append(
            AdjustmentPreview(
                id=rate.id,
                service_type=rate.service_type,
                service_level=rate.service_level,
                country_code=rate.country_code,
                city_id=rate.city_id,
                current_rate_usd_cents=rate.rate_usd_cents,
                new_rate_usd_cents=new_amount,
                change_percent=float(filters.adjustment_percent),
            )
        )
    return previews


async def apply_bulk_adjustment(db: AsyncSession, filters: BulkAdjustmentFilters) -> int:
    """Write the previewed amounts; returns the number of rows updated."""
    previews = await preview_bulk_adjustment(db, filters)
    if not previews:
        logger.info(
            "Bulk adjustment for supplier %s matched no rates", filters.supplier_id
        )
        return 0

    table = SupplierRate.__table__
    stmt = (
        update(table)
        .where(
            table.c.id == bindparam("b_id"),
            table.c.supplier_id == filters.supplier_id,
        )
        .values(rate_usd_cents=bindparam("b_amount"), updated_at=func.now())
    )
    await execute(
        db,
        stmt,
        [{"b_id": p.id, "b_amount": p.new_rate_usd_cents} for p in previews],
    )

    logger.info(
        "Applied %s%% adjustment to %d rates for supplier %s",
        filters.adjustment_percent,
        len(previews),
        filters.supplier_id,
    )
    return len(previews)
