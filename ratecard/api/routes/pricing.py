"""
Price quote API routes
=======================

  POST /api/v1/pricing/estimate    -- Quote a job against the supplier rate catalog
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ratecard.api.deps import DBSession
from ratecard.api.schemas.pricing import PriceQuoteOut, PriceQuoteRequest
from ratecard.services.pricingEngine import (
    JobRequest,
    QuoteValidationError,
    get_price_quote,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.post(
    "/estimate",
    response_model=PriceQuoteOut,
    summary="Estimate the price of a job",
    description=(
        "Resolves one rate per covering supplier (city rate before country "
        "rate), drops suppliers that cannot work out-of-hours when the visit "
        "falls outside Mon-Fri 08:00-18:00 site time, and returns the min / max "
        "/ mean customer price including the out-of-hours premium and platform "
        "fee.  When nobody can serve the request the response has "
        "``available=false`` and a ``message``."
    ),
)
async def estimate_price(body: PriceQuoteRequest, db: DBSession) -> PriceQuoteOut:
    request = JobRequest(
        service_type=body.service_type,
        service_level=body.service_level,
        duration_minutes=body.duration_minutes,
        city=body.city,
        country=body.country,
        scheduled_date_time=body.scheduled_date_time,
        timezone=body.timezone,
    )
    try:
        quote = await get_price_quote(db, request)
    except QuoteValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        )
    return PriceQuoteOut.model_validate(quote)
