"""
Pydantic v2 schemas for market rate analytics.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ratecard.models import ServiceLevel


def _to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase."""
    parts = name.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class MarketComparisonOut(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel, populate_by_name=True, from_attributes=True
    )

    service_type: str
    service_level: ServiceLevel
    country_code: Optional[str] = None
    supplier_rate: int
    market_average: int
    market_median: int
    market_min: int
    market_max: int
    sample_size: int
    percent_difference: float
    positioning: str = Field(description='"below", "at" or "above"')


class RateAnalyticsOut(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel, populate_by_name=True, from_attributes=True
    )

    total_rates_set: int
    average_positioning: str = Field(description='"below", "at", "above" or "mixed"')
    competitive_score: int = Field(ge=0, le=100)
    recommendations: list[str]
    comparisons: list[MarketComparisonOut]
