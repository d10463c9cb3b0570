"""
Pydantic v2 schemas for the price quote API.

Field names are camelCase on the wire via ``alias_generator``;
``populate_by_name=True`` keeps snake_case construction working in code and
tests.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ratecard.models import parse_service_type


def _to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase."""
    parts = name.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class PriceQuoteRequest(BaseModel):
    """Request body for POST /pricing/estimate."""

    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    service_type: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Service type code, display label or job title (e.g. L1_EUC)",
    )
    service_level: str = Field(
        ...,
        pattern=r"^(same_day|next_day|scheduled|same_business_day|next_business_day)$",
        description="Urgency tier: same_day, next_day or scheduled",
    )
    duration_minutes: int = Field(
        ..., ge=120, le=960, description="On-site duration in minutes (120-960)"
    )
    city: str = Field(..., min_length=1, max_length=255, description="Site city name")
    country: str = Field(
        ..., pattern=r"^[A-Za-z]{2}$", description="ISO 3166-1 alpha-2 country code"
    )
    scheduled_date_time: str = Field(
        ...,
        min_length=1,
        description="Site-local wall-clock time, ISO 8601 (e.g. 2025-01-15T10:00:00)",
    )
    timezone: str = Field(
        ..., min_length=1, description="IANA timezone of the site (e.g. America/New_York)"
    )

    @field_validator("service_type")
    @classmethod
    def validate_service_type(cls, v: str) -> str:
        return parse_service_type(v)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class PriceBreakdownOut(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel, populate_by_name=True, from_attributes=True
    )

    duration_hours: float
    is_ooh: bool = Field(alias="isOOH")
    ooh_premium_percent: int = Field(description="Out-of-hours premium applied, in percent")
    platform_fee_percent: int = Field(description="Platform fee applied, in percent")


class PriceQuoteOut(BaseModel):
    """Customer-facing price quote.  Price fields are null when unavailable."""

    model_config = ConfigDict(
        alias_generator=_to_camel, populate_by_name=True, from_attributes=True
    )

    available: bool
    supplier_count: int
    min_price_cents: Optional[int] = None
    max_price_cents: Optional[int] = None
    estimated_price_cents: Optional[int] = None
    message: Optional[str] = Field(
        default=None, description="Why no supplier can serve the request"
    )
    breakdown: PriceBreakdownOut
    ooh_reasons: list[str] = Field(
        default_factory=list, description="Why the scheduled time counts as out-of-hours"
    )
