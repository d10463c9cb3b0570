"""
Sanity checks on the shape of a supplier's rate ladder.

Within one (location, service type) the faster levels should never be
cheaper than the slower ones.  Findings are advisory; they never block a
write.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ratecard.models import SERVICE_LEVELS_BY_URGENCY, LocationScope, ServiceLevel
from ratecard.services.rateCatalog import get_supplier_rates

LARGE_GAP_RATIO = 0.5

LEVEL_LABELS: dict[ServiceLevel, str] = {
    ServiceLevel.SAME_BUSINESS_DAY: "Same Business Day",
    ServiceLevel.NEXT_BUSINESS_DAY: "Next Business Day",
    ServiceLevel.SCHEDULED: "Scheduled",
}


@dataclass
class RateWarning:
    type: str  # "inverted_pricing" | "large_gap"
    severity: str  # "warning" | "info"
    message: str
    service_levels: list[ServiceLevel] = field(default_factory=list)
    service_type: Optional[str] = None
    scope: Optional[LocationScope] = None


def validate_rates(rates: Mapping[ServiceLevel, Optional[int]]) -> list[RateWarning]:
    """Check adjacent priced levels, fastest first.  Zero or missing amounts are skipped."""
    ladder = [
        (level, rates[level])
        for level in SERVICE_LEVELS_BY_URGENCY
        if rates.get(level) is not None and rates[level] > 0
    ]
    pairs = list(zip(ladder, ladder[1:]))
    warnings: list[RateWarning] = []

    for (faster, faster_cents), (slower, slower_cents) in pairs:
        if faster_cents < slower_cents:
            warnings.append(
                RateWarning(
                    type="inverted_pricing",
                    severity="warning",
                    message=(
                        f"{LEVEL_LABELS[faster]} rate (${faster_cents / 100:.2f}) is lower "
                        f"than {LEVEL_LABELS[slower]} rate (${slower_cents / 100:.2f}). "
                        "Higher priority service levels should typically cost more."
                    ),
                    service_levels=[faster, slower],
                )
            )

    for (faster, faster_cents), (slower, slower_cents) in pairs:
        drop = (faster_cents - slower_cents) / faster_cents
        if drop > LARGE_GAP_RATIO:
            warnings.append(
                RateWarning(
                    type="large_gap",
                    severity="info",
                    message=(
                        f"Large price drop ({drop * 100:.0f}%) from {LEVEL_LABELS[faster]} "
                        f"to {LEVEL_LABELS[slower]}. Consider more gradual pricing tiers."
                    ),
                    service_levels=[faster, slower],
                )
            )
    return warnings


async def get_supplier_rate_warnings(db: AsyncSession, supplier_id: int) -> list[RateWarning]:
    groups: dict[tuple[str, str], dict[ServiceLevel, Optional[int]]] = defaultdict(dict)
    scopes: dict[str, LocationScope] = {}
    for rate in await get_supplier_rates(db, supplier_id):
        groups[(rate.scope_key, rate.service_type)][ServiceLevel(rate.service_level)] = (
            rate.rate_usd_cents
        )
        scopes[rate.scope_key] = rate.scope

    warnings: list[RateWarning] = []
    for (scope_key, service_type), ladder in sorted(groups.items()):
        for warning in validate_rates(ladder):
            warning.service_type = service_type
            warning.scope = scopes[scope_key]
            warnings.append(warning)
    return warnings
