"""
Market Analytics Engine.

Positions a supplier's priced rates against every supplier's rates for the
same (service type, service level) and, for country-scoped rows, the same
country.  City-scoped rows are compared with the whole market for the
type/level pair.

Statistics per market sample:

- average: arithmetic mean rounded to the nearest cent
- median:  element ``n // 2`` of the sorted sample (upper middle when even)
- samples with fewer than two amounts are skipped (no market signal)

Positioning per comparison: ``below`` under -5%, ``above`` over +5%, else
``at``.  The summary positioning is the plurality of the three, ``mixed``
on a tie.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ratecard.models import ServiceLevel, SupplierRate
from ratecard.services.rateCatalog import get_market_rates, get_supplier_rates

logger = logging.getLogger(__name__)

MIN_MARKET_SAMPLE = 2
POSITIONING_BAND_PERCENT = 5.0
OUTLIER_PERCENT = 20.0
BASE_COMPETITIVE_SCORE = 50.0

RECOMMEND_ABOVE = (
    "Your rates are generally above market average. "
    "Consider reducing rates to improve competitiveness."
)
RECOMMEND_BELOW = (
    "Your rates are competitive and below market average. "
    "You may have room to increase rates while staying competitive."
)
RECOMMEND_AT = "Your rates are well-aligned with market averages."


@dataclass
class MarketStats:
    average: int
    median: int
    min: int
    max: int
    count: int


@dataclass
class MarketComparison:
    service_type: str
    service_level: ServiceLevel
    country_code: Optional[str]
    supplier_rate: int
    market_average: int
    market_median: int
    market_min: int
    market_max: int
    sample_size: int
    percent_difference: float
    positioning: str


@dataclass
class RateAnalyticsSummary:
    total_rates_set: int
    average_positioning: str
    competitive_score: int
    recommendations: list[str] = field(default_factory=list)
    comparisons: list[MarketComparison] = field(default_factory=list)


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def market_stats(amounts: Sequence[int]) -> Optional[MarketStats]:
    """Summary statistics, or ``None`` when the sample is too small."""
    if len(amounts) < MIN_MARKET_SAMPLE:
        return None
    ordered = sorted(amounts)
    return MarketStats(
        average=_round_half_up(Decimal(sum(ordered)) / Decimal(len(ordered))),
        median=ordered[len(ordered) // 2],
        min=ordered[0],
        max=ordered[-1],
        count=len(ordered),
    )


def positioning_for(percent_difference: float) -> str:
    if percent_difference < -POSITIONING_BAND_PERCENT:
        return "below"
    if percent_difference > POSITIONING_BAND_PERCENT:
        return "above"
    return "at"


def compare_rate(rate: SupplierRate, stats: MarketStats) -> MarketComparison:
    diff = (rate.rate_usd_cents - stats.average) / stats.average * 100
    return MarketComparison(
        service_type=rate.service_type,
        service_level=ServiceLevel(rate.service_level),
        country_code=rate.country_code,
        supplier_rate=rate.rate_usd_cents,
        market_average=stats.average,
        market_median=stats.median,
        market_min=stats.min,
        market_max=stats.max,
        sample_size=stats.count,
        percent_difference=diff,
        positioning=positioning_for(diff),
    )


def summarize(comparisons: Sequence[MarketComparison]) -> RateAnalyticsSummary:
    counts = {"below": 0, "at": 0, "above": 0}
    for comparison in comparisons:
        counts[comparison.positioning] += 1

    average_positioning = "mixed"
    for label, count in counts.items():
        if all(count > other for key, other in counts.items() if key != label):
            average_positioning = label

    mean_diff = (
        sum(c.percent_difference for c in comparisons) / len(comparisons)
        if comparisons
        else 0.0
    )
    if mean_diff < 0:
        score = min(100.0, BASE_COMPETITIVE_SCORE + abs(mean_diff) * 2)
    else:
        score = max(0.0, BASE_COMPETITIVE_SCORE - mean_diff * 2)

    recommendations: list[str] = []
    if average_positioning == "above":
        recommendations.append(RECOMMEND_ABOVE)
    elif average_positioning == "below":
        recommendations.append(RECOMMEND_BELOW)
    elif average_positioning == "at":
        recommendations.append(RECOMMEND_AT)

    high = sum(1 for c in comparisons if c.percent_difference > OUTLIER_PERCENT)
    if high:
        recommendations.append(
            f"{high} rate(s) are more than 20% above market average - "
            "consider adjusting for better competitiveness."
        )
    low = sum(1 for c in comparisons if c.percent_difference < -OUTLIER_PERCENT)
    if low:
        recommendations.append(
            f"{low} rate(s) are more than 20% below market average - "
            "you may be underpricing these services."
        )

    return RateAnalyticsSummary(
        total_rates_set=len(comparisons),
        average_positioning=average_positioning,
        competitive_score=_round_half_up(Decimal(str(score))),
        recommendations=recommendations,
        comparisons=list(comparisons),
    )


async def get_supplier_rate_analytics(
    db: AsyncSession,
    supplier_id: int,
    service_types: Optional[Sequence[str]] = None,
    service_levels: Optional[Sequence[ServiceLevel]] = None,
    country_codes: Optional[Sequence[str]] = None,
) -> RateAnalyticsSummary:
    rates = [r for r in await get_supplier_rates(db, supplier_id) if r.rate_usd_cents is not None]
    if service_types:
        rates = [r for r in rates if r.service_type in service_types]
    if service_levels:
        levels = {ServiceLevel(level) for level in service_levels}
        rates = [r for r in rates if ServiceLevel(r.service_level) in levels]
    if country_codes:
        codes = {c.upper() for c in country_codes}
        rates = [r for r in rates if r.country_code is not None and r.country_code in codes]

    # One market query per distinct (type, level, country) key.
    markets: dict[tuple[str, ServiceLevel, Optional[str]], Optional[MarketStats]] = {}
    comparisons: list[MarketComparison] = []
    for rate in rates:
        key = (rate.service_type, ServiceLevel(rate.service_level), rate.country_code)
        if key not in markets:
            markets[key] = market_stats(await get_market_rates(db, *key))
        stats = markets[key]
        if stats is None or stats.average == 0:
            continue
        comparisons.append(compare_rate(rate, stats))

    summary = summarize(comparisons)
    logger.info(
        "Market analytics for supplier %s: %d comparisons, positioning=%s, score=%d",
        supplier_id,
        summary.total_rates_set,
        summary.average_positioning,
        summary.competitive_score,
    )
    return summary
