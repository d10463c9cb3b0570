"""
Pydantic v2 schemas for supplier rate management.

Covers:
- Single and bulk rate upserts
- Rate completion statistics
- Rate ladder warnings
- Bulk percentage adjustment preview / apply
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ratecard.models import MAX_RATE_USD_CENTS, ServiceLevel, parse_service_type
from ratecard.services.bulkAdjustment import MAX_ADJUSTMENT_PERCENT, MIN_ADJUSTMENT_PERCENT


def _to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase."""
    parts = name.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


# ---------------------------------------------------------------------------
# Rates
# ---------------------------------------------------------------------------

class RateIn(BaseModel):
    """One rate slot.  Exactly one of ``countryCode`` / ``cityId`` must be set."""

    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    country_code: Optional[str] = Field(default=None, pattern=r"^[A-Za-z]{2}$")
    city_id: Optional[int] = Field(default=None, ge=1)
    service_type: str = Field(..., min_length=1, max_length=50)
    service_level: ServiceLevel
    rate_usd_cents: Optional[int] = Field(
        default=None,
        ge=0,
        le=MAX_RATE_USD_CENTS,
        description="Hourly rate in USD cents; null clears the price",
    )

    @field_validator("service_type")
    @classmethod
    def validate_service_type(cls, v: str) -> str:
        return parse_service_type(v)


class BulkRatesIn(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    rates: list[RateIn] = Field(default_factory=list)


class RateOut(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    supplier_id: int
    country_code: Optional[str] = None
    city_id: Optional[int] = None
    service_type: str
    service_level: ServiceLevel
    rate_usd_cents: Optional[int] = None
    is_serviceable: bool


class BulkUpsertOut(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    upserted_count: int


# ---------------------------------------------------------------------------
# Completion statistics
# ---------------------------------------------------------------------------

class ServiceTypeCompletionOut(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    service_type: str
    configured: int
    missing: int
    total: int


class LocationTypeCompletionOut(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    location_type: str = Field(description='"countries" or "cities"')
    configured: int
    missing: int
    total: int


class CompletionStatsOut(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    total: int
    configured: int
    missing: int
    excluded: int
    percentage: float
    by_service_type: list[ServiceTypeCompletionOut]
    by_location_type: list[LocationTypeCompletionOut]


# ---------------------------------------------------------------------------
# Rate warnings
# ---------------------------------------------------------------------------

class RateWarningOut(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    type: str
    severity: str
    message: str
    service_levels: list[ServiceLevel]
    service_type: Optional[str] = None
    country_code: Optional[str] = None
    city_id: Optional[int] = None


# ---------------------------------------------------------------------------
# Bulk adjustment
# ---------------------------------------------------------------------------

class BulkAdjustmentRequest(BaseModel):
    """Filters plus the percentage change.  Omitted filters match everything."""

    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    supplier_id: Optional[int] = Field(
        default=None, description="Must match the supplier in the path when given"
    )
    adjustment_percent: Decimal = Field(
        ...,
        ge=MIN_ADJUSTMENT_PERCENT,
        le=MAX_ADJUSTMENT_PERCENT,
        description="Percentage change, e.g. 10 for +10%, -5 for -5%",
    )
    service_types: Optional[list[str]] = None
    service_levels: Optional[list[ServiceLevel]] = None
    country_codes: Optional[list[str]] = None
    city_ids: Optional[list[int]] = None

    @field_validator("service_types")
    @classmethod
    def validate_service_types(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        if v is None:
            return None
        return [parse_service_type(item) for item in v]


class AdjustmentPreviewOut(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    service_type: str
    service_level: ServiceLevel
    country_code: Optional[str] = None
    city_id: Optional[int] = None
    current_rate_usd_cents: int
    new_rate_usd_cents: int
    change_percent: float


class BulkAdjustmentApplyOut(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    updated_count: int
