"""
Market analytics API routes
============================

  GET  /api/v1/suppliers/{id}/analytics/market   -- Position rates against the market
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from ratecard.api.deps import CurrentSupplier, DBSession
from ratecard.api.schemas.analytics import RateAnalyticsOut
from ratecard.models import ServiceLevel, parse_service_type
from ratecard.services.rateAnalytics import get_supplier_rate_analytics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/suppliers/{supplier_id}/analytics", tags=["Analytics"])


@router.get(
    "/market",
    response_model=RateAnalyticsOut,
    summary="Compare a supplier's rates with the market",
    description=(
        "For each priced rate, compares the supplier's amount with every "
        "supplier's amount for the same service type, level and (for "
        "country rates) country.  Markets with fewer than two rates are skipped."
    ),
)
async def market_analytics(
    supplier: CurrentSupplier,
    db: DBSession,
    service_types: Optional[list[str]] = Query(None, alias="serviceTypes"),
    service_levels: Optional[list[ServiceLevel]] = Query(None, alias="serviceLevels"),
    country_codes: Optional[list[str]] = Query(None, alias="countryCodes"),
) -> RateAnalyticsOut:
    if service_types:
        try:
            service_types = [parse_service_type(t) for t in service_types]
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
            )
    summary = await get_supplier_rate_analytics(
        db,
        supplier.id,
        service_types=service_types,
        service_levels=service_levels,
        country_codes=country_codes,
    )
    return RateAnalyticsOut.model_validate(summary)
