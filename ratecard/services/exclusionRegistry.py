"""
Exclusion Registry.

Tracks the two independently scoped exclusion sets of a supplier:

- service exclusions: a whole service type is not offered at a location
  (all three service levels are blocked);
- response-time exclusions: one service level of a service type is not
  offered at a location.

Exclusions are the source of truth.  ``SupplierRate.is_serviceable`` is a
cached projection which every mutation in this module resynchronises inside
the caller's transaction, and which read paths never consult: pricing and
completion accounting evaluate an ``ExclusionIndex`` instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from sqlalchemy import and_, bindparam, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ratecard.core.storage import dialect_insert, execute
from ratecard.models import (
    LocationScope,
    ServiceLevel,
    SupplierRate,
    SupplierResponseTimeExclusion,
    SupplierServiceExclusion,
    scope_columns,
)

logger = logging.getLogger(__name__)


class ExclusionNotFoundError(Exception):
    """Raised when removing an exclusion the supplier does not have."""

    def __init__(self, supplier_id: int, detail: str) -> None:
        self.supplier_id = supplier_id
        super().__init__(f"Supplier {supplier_id}: {detail}")


# ---------------------------------------------------------------------------
# In-memory snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExclusionIndex:
    """Point-in-time view of exclusions for one or more suppliers."""

    service_slots: frozenset[tuple[int, str, str]] = field(default_factory=frozenset)
    response_slots: frozenset[tuple[int, str, str, ServiceLevel]] = field(
        default_factory=frozenset
    )

    @classmethod
    def from_records(
        cls,
        service_exclusions: Iterable[SupplierServiceExclusion],
        response_exclusions: Iterable[SupplierResponseTimeExclusion],
    ) -> "ExclusionIndex":
        return cls(
            service_slots=frozenset(
                (e.supplier_id, e.scope_key, e.service_type) for e in service_exclusions
            ),
            response_slots=frozenset(
                (e.supplier_id, e.scope_key, e.service_type, ServiceLevel(e.service_level))
                for e in response_exclusions
            ),
        )

    def is_service_excluded(
        self, supplier_id: int, scope: LocationScope, service_type: str
    ) -> bool:
        return (supplier_id, scope.key, service_type) in self.service_slots

    def is_excluded(
        self,
        supplier_id: int,
        scope: LocationScope,
        service_type: str,
        service_level: ServiceLevel,
    ) -> bool:
        """True when the (scope, type, level) slot is blocked by either set."""
        return self.is_excluded_key(supplier_id, scope.key, service_type, service_level)

    def is_excluded_key(
        self,
        supplier_id: int,
        scope_key: str,
        service_type: str,
        service_level: ServiceLevel,
    ) -> bool:
        if (supplier_id, scope_key, service_type) in self.service_slots:
            return True
        return (supplier_id, scope_key, service_type, service_level) in self.response_slots


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_service_exclusions(
    db: AsyncSession, supplier_id: int
) -> list[SupplierServiceExclusion]:
    stmt = (
        select(SupplierServiceExclusion)
        .where(SupplierServiceExclusion.supplier_id == supplier_id)
        .order_by(SupplierServiceExclusion.id)
        .execution_options(populate_existing=True)
    )
    result = await execute(db, stmt)
    return list(result.scalars().all())


async def get_response_time_exclusions(
    db: AsyncSession, supplier_id: int
) -> list[SupplierResponseTimeExclusion]:
    stmt = (
        select(SupplierResponseTimeExclusion)
        .where(SupplierResponseTimeExclusion.supplier_id == supplier_id)
        .order_by(SupplierResponseTimeExclusion.id)
        .execution_options(populate_existing=True)
    )
    result = await execute(db, stmt)
    return list(result.scalars().all())


async def load_exclusion_index(
    db: AsyncSession, supplier_ids: Sequence[int]
) -> ExclusionIndex:
    """Snapshot every exclusion belonging to ``supplier_ids``."""
    if not supplier_ids:
        return ExclusionIndex()

    ids = list(supplier_ids)
    service_result = await execute(
        db,
        select(SupplierServiceExclusion).where(
            SupplierServiceExclusion.supplier_id.in_(ids)
        ),
    )
    response_result = await execute(
        db,
        select(SupplierResponseTimeExclusion).where(
            SupplierResponseTimeExclusion.supplier_id.in_(ids)
        ),
    )
    return ExclusionIndex.from_records(
        service_result.scalars().all(), response_result.scalars().all()
    )


# ---------------------------------------------------------------------------
# Service exclusions
# ---------------------------------------------------------------------------

async def add_service_exclusion(
    db: AsyncSession,
    supplier_id: int,
    scope: LocationScope,
    service_type: str,
) -> SupplierServiceExclusion:
    """Exclude ``service_type`` at ``scope``.  Adding an existing exclusion is a no-op."""
    await _insert_service_exclusions(db, supplier_id, [(scope, service_type)])
    await sync_all_rates_with_exclusions(db, supplier_id)

    stmt = select(SupplierServiceExclusion).where(
        SupplierServiceExclusion.supplier_id == supplier_id,
        SupplierServiceExclusion.scope_key == scope.key,
        SupplierServiceExclusion.service_type == service_type,
    )
    result = await execute(db, stmt)
    exclusion = result.scalar_one()
    logger.info(
        "Supplier %s excluded %s at %s", supplier_id, service_type, scope.key
    )
    return exclusion


async def bulk_add_service_exclusions(
    db: AsyncSession,
    supplier_id: int,
    entries: Sequence[tuple[LocationScope, str]],
) -> int:
    """Add many service exclusions in one statement; returns the number requested."""
    if not entries:
        return 0
    await _insert_service_exclusions(db, supplier_id, entries)
    await sync_all_rates_with_exclusions(db, supplier_id)
    logger.info("Supplier %s bulk-added %d service exclusions", supplier_id, len(entries))
    return len(entries)


async def _insert_service_exclusions(
    db: AsyncSession,
    supplier_id: int,
    entries: Sequence[tuple[LocationScope, str]],
) -> None:
    values = [
        {"supplier_id": supplier_id, "service_type": service_type, **scope_columns(scope)}
        for scope, service_type in entries
    ]
    stmt = (
        dialect_insert(db, SupplierServiceExclusion)
        .values(values)
        .on_conflict_do_nothing(
            index_elements=["supplier_id", "scope_key", "service_type"]
        )
    )
    await execute(db, stmt)


async def remove_service_exclusion(
    db: AsyncSession, exclusion_id: int, supplier_id: int
) -> None:
    """Remove one service exclusion owned by ``supplier_id``."""
    stmt = delete(SupplierServiceExclusion).where(
        SupplierServiceExclusion.id == exclusion_id,
        SupplierServiceExclusion.supplier_id == supplier_id,
    )
    result = await execute(db, stmt)
    if result.rowcount == 0:
        raise ExclusionNotFoundError(
            supplier_id, f"service exclusion {exclusion_id} not found"
        )
    await sync_all_rates_with_exclusions(db, supplier_id)
    logger.info("Supplier %s removed service exclusion %s", supplier_id, exclusion_id)


async def bulk_remove_service_exclusions(
    db: AsyncSession,
    supplier_id: int,
    service_types: Optional[Sequence[str]] = None,
    country_codes: Optional[Sequence[str]] = None,
    city_ids: Optional[Sequence[int]] = None,
) -> int:
    """Remove every service exclusion matching the filters; returns the count removed.

    With no filters at all every service exclusion of the supplier is removed.
    """
    conditions = [SupplierServiceExclusion.supplier_id == supplier_id]
    if service_types:
        conditions.append(SupplierServiceExclusion.service_type.in_(list(service_types)))
    location_conditions = []
    if country_codes:
        location_conditions.append(
            SupplierServiceExclusion.country_code.in_([c.upper() for c in country_codes])
        )
    if city_ids:
        location_conditions.append(SupplierServiceExclusion.city_id.in_(list(city_ids)))
    if location_conditions:
        conditions.append(or_(*location_conditions))

    result = await execute(db, delete(SupplierServiceExclusion).where(and_(*conditions)))
    removed = result.rowcount or 0
    if removed:
        await sync_all_rates_with_exclusions(db, supplier_id)
    logger.info("Supplier %s bulk-removed %d service exclusions", supplier_id, removed)
    return removed


# ---------------------------------------------------------------------------
# Response-time exclusions
# ---------------------------------------------------------------------------

async def add_response_time_exclusion(
    db: AsyncSession,
    supplier_id: int,
    scope: LocationScope,
    service_type: str,
    service_level: ServiceLevel,
) -> SupplierResponseTimeExclusion:
    """Exclude one service level.  Adding an existing exclusion is a no-op."""
    stmt = (
        dialect_insert(db, SupplierResponseTimeExclusion)
        .values(
            supplier_id=supplier_id,
            service_type=service_type,
            service_level=service_level,
            **scope_columns(scope),
        )
        .on_conflict_do_nothing(
            index_elements=["supplier_id", "scope_key", "service_type", "service_level"]
        )
    )
    await execute(db, stmt)
    await sync_all_rates_with_exclusions(db, supplier_id)

    result = await execute(
        db,
        select(SupplierResponseTimeExclusion).where(
            SupplierResponseTimeExclusion.supplier_id == supplier_id,
            SupplierResponseTimeExclusion.scope_key == scope.key,
            SupplierResponseTimeExclusion.service_type == service_type,
            SupplierResponseTimeExclusion.service_level == service_level,
        ),
    )
    logger.info(
        "Supplier %s excluded %s/%s at %s",
        supplier_id,
        service_type,
        service_level.value,
        scope.key,
    )
    return result.scalar_one()


async def remove_response_time_exclusion(
    db: AsyncSession,
    supplier_id: int,
    scope: LocationScope,
    service_type: str,
    service_level: ServiceLevel,
) -> None:
    stmt = delete(SupplierResponseTimeExclusion).where(
        SupplierResponseTimeExclusion.supplier_id == supplier_id,
        SupplierResponseTimeExclusion.scope_key == scope.key,
        SupplierResponseTimeExclusion.service_type == service_type,
        SupplierResponseTimeExclusion.service_level == service_level,
    )
    result = await execute(db, stmt)
    if result.rowcount == 0:
        raise ExclusionNotFoundError(
            supplier_id,
            f"no {service_type}/{service_level.value} exclusion at {scope.key}",
        )
    await sync_all_rates_with_exclusions(db, supplier_id)
    logger.info(
        "Supplier %s removed %s/%s exclusion at %s",
        supplier_id,
        service_type,
        service_level.value,
        scope.key,
    )


# ---------------------------------------------------------------------------
# Serviceable projection
# ---------------------------------------------------------------------------

async def sync_all_rates_with_exclusions(db: AsyncSession, supplier_id: int) -> int:
    """Recompute ``is_serviceable`` on every rate row of the supplier.

    Runs in the caller's session so the projection commits (or rolls back)
    together with the exclusion change that triggered it.  Returns the number
    of rows whose flag changed.
    """
    index = await load_exclusion_index(db, [supplier_id])
    result = await execute(
        db,
        select(
            SupplierRate.id,
            SupplierRate.scope_key,
            SupplierRate.service_type,
            SupplierRate.service_level,
            SupplierRate.is_serviceable,
        ).where(SupplierRate.supplier_id == supplier_id),
    )

    changes = []
    for row in result.all():
        serviceable = not index.is_excluded_key(
            supplier_id, row.scope_key, row.service_type, ServiceLevel(row.service_level)
        )
        if serviceable != row.is_serviceable:
            changes.append({"b_id": row.id, "b_serviceable": serviceable})

    if changes:
        table = SupplierRate.__table__
        stmt = (
            update(table)
            .where(table.c.id == bindparam("b_id"), table.c.supplier_id == supplier_id)
            .values(is_serviceable=bindparam("b_serviceable"))
        )
        await execute(db, stmt, changes)

    logger.debug("Resynced %d rate rows for supplier %s", len(changes), supplier_id)
    return len(changes)
