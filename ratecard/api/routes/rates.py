"""
Supplier rate API routes
=========================

  GET    /api/v1/suppliers/{id}/rates                           -- List rates
  PUT    /api/v1/suppliers/{id}/rates                           -- Upsert one rate
  PUT    /api/v1/suppliers/{id}/rates/bulk                      -- Upsert many rates
  DELETE /api/v1/suppliers/{id}/rates/{rate_id}                 -- Opt out of a rate
  GET    /api/v1/suppliers/{id}/rates/completion                -- Completion statistics
  GET    /api/v1/suppliers/{id}/rates/warnings                  -- Rate ladder warnings
  POST   /api/v1/suppliers/{id}/rates/bulk-adjustment/preview   -- Preview % change
  POST   /api/v1/suppliers/{id}/rates/bulk-adjustment/apply     -- Apply % change
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Response, status

from ratecard.api.deps import CurrentSupplier, DBSession
from ratecard.api.schemas.rates import (
    AdjustmentPreviewOut,
    BulkAdjustmentApplyOut,
    BulkAdjustmentRequest,
    BulkRatesIn,
    BulkUpsertOut,
    CompletionStatsOut,
    LocationTypeCompletionOut,
    RateIn,
    RateOut,
    RateWarningOut,
    ServiceTypeCompletionOut,
)
from ratecard.models import CityScope, InvalidLocationScopeError, LocationScope, make_scope
from ratecard.services.bulkAdjustment import (
    AdjustmentOutOfRangeError,
    BulkAdjustmentFilters,
    apply_bulk_adjustment,
    preview_bulk_adjustment,
)
from ratecard.services.completionStats import get_rate_completion_stats
from ratecard.services.rateCatalog import (
    RateInput,
    RateNotFoundError,
    UnknownCityError,
    bulk_upsert_rates,
    delete_rate,
    get_supplier_rates,
    upsert_rate,
)
from ratecard.services.rateValidation import get_supplier_rate_warnings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/suppliers/{supplier_id}/rates", tags=["Rates"])


def _to_rate_input(body: RateIn) -> RateInput:
    try:
        scope = make_scope(body.country_code, body.city_id)
    except InvalidLocationScopeError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )
    return RateInput(
        scope=scope,
        service_type=body.service_type,
        service_level=body.service_level,
        rate_usd_cents=body.rate_usd_cents,
    )


# ---------------------------------------------------------------------------
# Rates
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[RateOut],
    summary="List a supplier's rates",
)
async def list_rates(supplier: CurrentSupplier, db: DBSession) -> list[RateOut]:
    rates = await get_supplier_rates(db, supplier.id)
    return [RateOut.model_validate(r) for r in rates]


@router.put(
    "",
    response_model=RateOut,
    summary="Create or update one rate",
    description=(
        "Atomic insert-or-update keyed by (supplier, location, service type, "
        "service level).  ``rateUsdCents: null`` keeps the slot but clears its price."
    ),
)
async def put_rate(body: RateIn, supplier: CurrentSupplier, db: DBSession) -> RateOut:
    try:
        stored = await upsert_rate(db, supplier.id, _to_rate_input(body))
    except UnknownCityError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )
    return RateOut.model_validate(stored)


@router.put(
    "/bulk",
    response_model=BulkUpsertOut,
    summary="Create or update many rates in one statement",
)
async def put_rates_bulk(
    body: BulkRatesIn, supplier: CurrentSupplier, db: DBSession
) -> BulkUpsertOut:
    rates = [_to_rate_input(r) for r in body.rates]
    try:
        count = await bulk_upsert_rates(db, supplier.id, rates)
    except UnknownCityError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )
    return BulkUpsertOut(upserted_count=count)


@router.delete(
    "/{rate_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a rate (explicit opt-out)",
)
async def remove_rate(rate_id: int, supplier: CurrentSupplier, db: DBSession) -> Response:
    try:
        await delete_rate(db, rate_id, supplier.id)
    except RateNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Completion & warnings
# ---------------------------------------------------------------------------

@router.get(
    "/completion",
    response_model=CompletionStatsOut,
    summary="Rate completion statistics",
    description=(
        "Configured / missing / excluded slot counts over the supplier's covered "
        "countries and priority cities, grouped by service type and by location type."
    ),
)
async def rate_completion(supplier: CurrentSupplier, db: DBSession) -> CompletionStatsOut:
    stats = await get_rate_completion_stats(db, supplier.id)
    return CompletionStatsOut(
        total=stats.total,
        configured=stats.configured,
        missing=stats.missing,
        excluded=stats.excluded,
        percentage=stats.percentage,
        by_service_type=[
            ServiceTypeCompletionOut(
                service_type=g.key, configured=g.configured, missing=g.missing, total=g.total
            )
            for g in stats.by_service_type
        ],
        by_location_type=[
            LocationTypeCompletionOut(
                location_type=g.key, configured=g.configured, missing=g.missing, total=g.total
            )
            for g in stats.by_location_type
        ],
    )


def _scope_fields(scope: Optional[LocationScope]) -> dict:
    if scope is None:
        return {}
    if isinstance(scope, CityScope):
        return {"city_id": scope.id}
    return {"country_code": scope.code}


@router.get(
    "/warnings",
    response_model=list[RateWarningOut],
    summary="Inverted or steeply dropping rate ladders",
)
async def rate_warnings(supplier: CurrentSupplier, db: DBSession) -> list[RateWarningOut]:
    warnings = await get_supplier_rate_warnings(db, supplier.id)
    return [
        RateWarningOut(
            type=w.type,
            severity=w.severity,
            message=w.message,
            service_levels=w.service_levels,
            service_type=w.service_type,
            **_scope_fields(w.scope),
        )
        for w in warnings
    ]


# ---------------------------------------------------------------------------
# Bulk adjustment
# ---------------------------------------------------------------------------

def _to_filters(body: BulkAdjustmentRequest, supplier_id: int) -> BulkAdjustmentFilters:
    if body.supplier_id is not None and body.supplier_id != supplier_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="supplierId in body does not match the supplier in the path",
        )
    return BulkAdjustmentFilters(
        supplier_id=supplier_id,
        adjustment_percent=body.adjustment_percent,
        service_types=body.service_types or [],
        service_levels=body.service_levels or [],
        country_codes=body.country_codes or [],
        city_ids=body.city_ids or [],
    )


@router.post(
    "/bulk-adjustment/preview",
    response_model=list[AdjustmentPreviewOut],
    summary="Preview a percentage change across matching rates",
)
async def preview_adjustment(
    body: BulkAdjustmentRequest, supplier: CurrentSupplier, db: DBSession
) -> list[AdjustmentPreviewOut]:
    try:
        previews = await preview_bulk_adjustment(db, _to_filters(body, supplier.id))
    except AdjustmentOutOfRangeError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )
    return [AdjustmentPreviewOut.model_validate(p) for p in previews]


@router.post(
    "/bulk-adjustment/apply",
    response_model=BulkAdjustmentApplyOut,
    summary="Apply a percentage change across matching rates",
)
async def apply_adjustment(
    body: BulkAdjustmentRequest, supplier: CurrentSupplier, db: DBSession
) -> BulkAdjustmentApplyOut:
    try:
        updated = await apply_bulk_adjustment(db, _to_filters(body, supplier.id))
    except AdjustmentOutOfRangeError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )
    return BulkAdjustmentApplyOut(updated_count=updated)
