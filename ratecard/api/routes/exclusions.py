"""
Supplier exclusion API routes
==============================

  GET    /api/v1/suppliers/{id}/exclusions/services                   -- List service exclusions
  POST   /api/v1/suppliers/{id}/exclusions/services                   -- Exclude a service type
  POST   /api/v1/suppliers/{id}/exclusions/services/bulk              -- Exclude many
  POST   /api/v1/suppliers/{id}/exclusions/services/bulk-remove       -- Remove by filters
  DELETE /api/v1/suppliers/{id}/exclusions/services/{exclusion_id}    -- Remove one
  GET    /api/v1/suppliers/{id}/exclusions/response-times             -- List level exclusions
  POST   /api/v1/suppliers/{id}/exclusions/response-times             -- Exclude one level
  DELETE /api/v1/suppliers/{id}/exclusions/response-times             -- Re-include one level
  POST   /api/v1/suppliers/{id}/exclusions/resync                     -- Rebuild serviceable flags

Every mutation resyncs the serviceable flag on the supplier's rates within
the same request transaction.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Response, status

from ratecard.api.deps import CurrentSupplier, DBSession
from ratecard.api.schemas.exclusions import (
    BulkRemoveServiceExclusionsIn,
    BulkServiceExclusionsIn,
    ExclusionCountOut,
    ResponseTimeExclusionIn,
    ResponseTimeExclusionOut,
    ResyncOut,
    ServiceExclusionIn,
    ServiceExclusionOut,
)
from ratecard.models import (
    InvalidLocationScopeError,
    LocationScope,
    ServiceLevel,
    make_scope,
    parse_service_type,
)
from ratecard.services.exclusionRegistry import (
    ExclusionNotFoundError,
    add_response_time_exclusion,
    add_service_exclusion,
    bulk_add_service_exclusions,
    bulk_remove_service_exclusions,
    get_response_time_exclusions,
    get_service_exclusions,
    remove_response_time_exclusion,
    remove_service_exclusion,
    sync_all_rates_with_exclusions,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/suppliers/{supplier_id}/exclusions", tags=["Exclusions"])


def _scope_or_422(country_code: Optional[str], city_id: Optional[int]) -> LocationScope:
    try:
        return make_scope(country_code, city_id)
    except InvalidLocationScopeError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )


def _service_type_or_422(value: str) -> str:
    try:
        return parse_service_type(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )


# ---------------------------------------------------------------------------
# Service exclusions
# ---------------------------------------------------------------------------

@router.get("/services", response_model=list[ServiceExclusionOut])
async def list_service_exclusions(
    supplier: CurrentSupplier, db: DBSession
) -> list[ServiceExclusionOut]:
    exclusions = await get_service_exclusions(db, supplier.id)
    return [ServiceExclusionOut.model_validate(e) for e in exclusions]


@router.post(
    "/services",
    response_model=ServiceExclusionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Stop offering a service type at a location",
)
async def create_service_exclusion(
    body: ServiceExclusionIn, supplier: CurrentSupplier, db: DBSession
) -> ServiceExclusionOut:
    scope = _scope_or_422(body.country_code, body.city_id)
    exclusion = await add_service_exclusion(db, supplier.id, scope, body.service_type)
    return ServiceExclusionOut.model_validate(exclusion)


@router.post(
    "/services/bulk",
    response_model=ExclusionCountOut,
    summary="Stop offering several service types / locations at once",
)
async def create_service_exclusions_bulk(
    body: BulkServiceExclusionsIn, supplier: CurrentSupplier, db: DBSession
) -> ExclusionCountOut:
    entries = [
        (_scope_or_422(e.country_code, e.city_id), e.service_type)
        for e in body.exclusions
    ]
    count = await bulk_add_service_exclusions(db, supplier.id, entries)
    return ExclusionCountOut(count=count)


@router.post(
    "/services/bulk-remove",
    response_model=ExclusionCountOut,
    summary="Remove service exclusions matching filters",
)
async def remove_service_exclusions_bulk(
    body: BulkRemoveServiceExclusionsIn, supplier: CurrentSupplier, db: DBSession
) -> ExclusionCountOut:
    count = await bulk_remove_service_exclusions(
        db,
        supplier.id,
        service_types=body.service_types,
        country_codes=body.country_codes,
        city_ids=body.city_ids,
    )
    return ExclusionCountOut(count=count)


@router.delete(
    "/services/{exclusion_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Offer a previously excluded service type again",
)
async def delete_service_exclusion(
    exclusion_id: int, supplier: CurrentSupplier, db: DBSession
) -> Response:
    try:
        await remove_service_exclusion(db, exclusion_id, supplier.id)
    except ExclusionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Response-time exclusions
# ---------------------------------------------------------------------------

@router.get("/response-times", response_model=list[ResponseTimeExclusionOut])
async def list_response_time_exclusions(
    supplier: CurrentSupplier, db: DBSession
) -> list[ResponseTimeExclusionOut]:
    exclusions = await get_response_time_exclusions(db, supplier.id)
    return [ResponseTimeExclusionOut.model_validate(e) for e in exclusions]


@router.post(
    "/response-times",
    response_model=ResponseTimeExclusionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Stop offering one service level at a location",
)
async def create_response_time_exclusion(
    body: ResponseTimeExclusionIn, supplier: CurrentSupplier, db: DBSession
) -> ResponseTimeExclusionOut:
    scope = _scope_or_422(body.country_code, body.city_id)
    exclusion = await add_response_time_exclusion(
        db, supplier.id, scope, body.service_type, body.service_level
    )
    return ResponseTimeExclusionOut.model_validate(exclusion)


@router.delete(
    "/response-times",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Offer a previously excluded service level again",
)
async def delete_response_time_exclusion(
    supplier: CurrentSupplier,
    db: DBSession,
    service_type: str = Query(..., alias="serviceType"),
    service_level: ServiceLevel = Query(..., alias="serviceLevel"),
    country_code: Optional[str] = Query(None, alias="countryCode", pattern=r"^[A-Za-z]{2}$"),
    city_id: Optional[int] = Query(None, alias="cityId", ge=1),
) -> Response:
    scope = _scope_or_422(country_code, city_id)
    service_type = _service_type_or_422(service_type)
    try:
        await remove_response_time_exclusion(
            db, supplier.id, scope, service_type, service_level
        )
    except ExclusionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Resync
# ---------------------------------------------------------------------------

@router.post(
    "/resync",
    response_model=ResyncOut,
    summary="Rebuild every rate's serviceable flag from the exclusion tables",
)
async def resync_rates(supplier: CurrentSupplier, db: DBSession) -> ResyncOut:
    updated = await sync_all_rates_with_exclusions(db, supplier.id)
    return ResyncOut(updated_count=updated)
