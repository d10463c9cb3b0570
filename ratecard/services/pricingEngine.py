"""
Price Aggregator / quote engine.

Produces a customer-facing price quote for a job request:

1. Validate the request (duration 120-960 minutes, ISO alpha-2 country,
   known service level, parseable schedule, known IANA zone).
2. Classify the scheduled time as business hours or out-of-hours (OOH) in the
   site's local timezone.
3. Resolve one rate per covering supplier (city rate before country rate).
4. Drop suppliers that cannot serve the request (OOH capability).
5. Price every remaining supplier independently::

       base           = hourly_rate_cents * duration_minutes / 60
       with_surcharge = round(base * 1.25)     if OOH, else base
       total          = round(with_surcharge * 1.15)

   and report min / max / rounded-mean of the totals.

All rounding is to whole cents with ties rounding up (``ROUND_HALF_UP``).
"No supplier can do this" is a normal quote with ``available=False``; only
invalid input raises.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from ratecard.models import LocationScope, ServiceLevel, parse_service_type
from ratecard.services import rateCatalog
from ratecard.services.availabilityFilter import filter_available
from ratecard.services.exclusionRegistry import load_exclusion_index
from ratecard.services.locationResolver import (
    ResolvedRate,
    find_covering_suppliers,
    resolve_rates,
)
from ratecard.services.temporalClassifier import (
    InvalidScheduleError,
    TimeClassification,
    classify,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

OOH_PREMIUM_PERCENT = 25
PLATFORM_FEE_PERCENT = 15

OOH_MULTIPLIER = Decimal(100 + OOH_PREMIUM_PERCENT) / Decimal(100)
PLATFORM_FEE_MULTIPLIER = Decimal(100 + PLATFORM_FEE_PERCENT) / Decimal(100)

MIN_DURATION_MINUTES = 120
MAX_DURATION_MINUTES = 960

COUNTRY_CODE_RE = re.compile(r"^[A-Za-z]{2}$")

# Customer-facing level names, plus the canonical values themselves.
SERVICE_LEVEL_ALIASES: dict[str, ServiceLevel] = {
    "same_day": ServiceLevel.SAME_BUSINESS_DAY,
    "next_day": ServiceLevel.NEXT_BUSINESS_DAY,
    "scheduled": ServiceLevel.SCHEDULED,
    **{level.value: level for level in ServiceLevel},
}


class QuoteValidationError(ValueError):
    """Raised when a job request is rejected before any lookup."""

    def __init__(self, field_name: str, detail: str) -> None:
        self.field_name = field_name
        self.detail = detail
        super().__init__(f"{field_name}: {detail}")


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------

@dataclass
class JobRequest:
    service_type: str
    service_level: Union[str, ServiceLevel]
    duration_minutes: int
    city: str
    country: str
    scheduled_date_time: Union[str, datetime]
    timezone: str


@dataclass
class PriceBreakdown:
    duration_hours: float
    is_ooh: bool
    ooh_premium_percent: int = OOH_PREMIUM_PERCENT
    platform_fee_percent: int = PLATFORM_FEE_PERCENT


@dataclass
class SupplierPriceLine:
    """Price of the job at one supplier's resolved rate."""
    supplier_id: int
    scope: LocationScope
    hourly_rate_cents: int
    base_cents: Decimal
    with_surcharge_cents: Decimal
    total_cents: int


@dataclass
class PriceQuote:
    available: bool
    supplier_count: int
    breakdown: PriceBreakdown
    min_price_cents: Optional[int] = None
    max_price_cents: Optional[int] = None
    estimated_price_cents: Optional[int] = None
    message: Optional[str] = None
    ooh_reasons: list[str] = field(default_factory=list)
    lines: list[SupplierPriceLine] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def parse_service_level(value: Union[str, ServiceLevel]) -> ServiceLevel:
    if isinstance(value, ServiceLevel):
        return value
    try:
        return SERVICE_LEVEL_ALIASES[value.strip().lower()]
    except (KeyError, AttributeError):
        raise QuoteValidationError(
            "serviceLevel", f"Unknown service level: {value!r}"
        ) from None


def normalize_service_type(value: str) -> str:
    try:
        return parse_service_type(value)
    except ValueError as exc:
        raise QuoteValidationError("serviceType", str(exc)) from None


def normalize_country_code(value: str) -> str:
    if not isinstance(value, str) or not COUNTRY_CODE_RE.match(value.strip()):
        raise QuoteValidationError(
            "country", f"Expected an ISO 3166-1 alpha-2 code, got {value!r}"
        )
    return value.strip().upper()


def validate_duration(minutes: int) -> int:
    if not MIN_DURATION_MINUTES <= minutes <= MAX_DURATION_MINUTES:
        raise QuoteValidationError(
            "durationMinutes",
            f"Duration must be between {MIN_DURATION_MINUTES} and "
            f"{MAX_DURATION_MINUTES} minutes, got {minutes}",
        )
    return minutes


# ---------------------------------------------------------------------------
# Pure price math
# ---------------------------------------------------------------------------

def _round_cents(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def duration_hours(duration_minutes: int) -> float:
    hours = Decimal(duration_minutes) / Decimal(60)
    return float(hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def price_supplier(
    resolved: ResolvedRate, duration_minutes: int, is_out_of_hours: bool
) -> SupplierPriceLine:
    base = Decimal(resolved.rate_usd_cents) * Decimal(duration_minutes) / Decimal(60)
    with_surcharge = _round_cents(base * OOH_MULTIPLIER) if is_out_of_hours else base
    total = _round_cents(with_surcharge * PLATFORM_FEE_MULTIPLIER)
    return SupplierPriceLine(
        supplier_id=resolved.supplier_id,
        scope=resolved.scope,
        hourly_rate_cents=resolved.rate_usd_cents,
        base_cents=base,
        with_surcharge_cents=with_surcharge,
        total_cents=int(total),
    )


def aggregate_quote(
    suppliers: Sequence[ResolvedRate],
    duration_minutes: int,
    is_out_of_hours: bool,
    message: Optional[str] = None,
) -> PriceQuote:
    breakdown = PriceBreakdown(
        duration_hours=duration_hours(duration_minutes), is_ooh=is_out_of_hours
    )
    if not suppliers:
        return PriceQuote(
            available=False, supplier_count=0, breakdown=breakdown, message=message
        )

    lines = [price_supplier(s, duration_minutes, is_out_of_hours) for s in suppliers]
    totals = [line.total_cents for line in lines]
    mean = _round_cents(Decimal(sum(totals)) / Decimal(len(totals)))

    return PriceQuote(
        available=True,
        supplier_count=len(lines),
        breakdown=breakdown,
        min_price_cents=min(totals),
        max_price_cents=max(totals),
        estimated_price_cents=int(mean),
        lines=lines,
    )


# ---------------------------------------------------------------------------
# Public service function
# ---------------------------------------------------------------------------

async def get_price_quote(db: AsyncSession, request: JobRequest) -> PriceQuote:
    """Quote ``request`` against the current rate catalog.

    Raises:
        QuoteValidationError: The request is malformed.
        StorageUnavailableError: The rate store cannot be reached.
    """
    service_type = normalize_service_type(request.service_type)
    service_level = parse_service_level(request.service_level)
    country_code = normalize_country_code(request.country)
    duration_minutes = validate_duration(request.duration_minutes)
    try:
        timing: TimeClassification = classify(
            request.scheduled_date_time, request.timezone
        )
    except InvalidScheduleError as exc:
        raise QuoteValidationError("scheduledDateTime", str(exc)) from exc

    candidates = await find_covering_suppliers(db, country_code, request.city)
    supplier_ids = [c.supplier.id for c in candidates]
    rates = await rateCatalog.get_rates_for_service(
        db, supplier_ids, service_type
    )
    exclusions = await load_exclusion_index(db, supplier_ids)

    resolution = resolve_rates(
        candidates, rates, exclusions, service_type, service_level
    )
    availability = filter_available(
        len(candidates), resolution, timing.is_out_of_hours
    )

    quote = aggregate_quote(
        availability.suppliers,
        duration_minutes,
        timing.is_out_of_hours,
        message=availability.message,
    )
    quote.ooh_reasons = list(timing.reasons)

    if quote.available:
        logger.info(
            "Quoted %s/%s in %s, %s: %d suppliers, ooh=%s, range %s-%s",
            service_type,
            service_level.value,
            request.city,
            country_code,
            quote.supplier_count,
            timing.is_out_of_hours,
            quote.min_price_cents,
            quote.max_price_cents,
        )
    else:
        logger.warning(
            "No quote for %s/%s in %s, %s: %s",
            service_type,
            service_level.value,
            request.city,
            country_code,
            quote.message,
        )
    return quote
