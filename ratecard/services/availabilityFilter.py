"""
Availability Filter.

Turns the resolver output into the serviceable supplier set for a request
and, when that set is empty, names the specific business reason.  Reasons
are checked in a fixed order so the message always describes the first
stage at which the request ran dry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ratecard.services.locationResolver import Resolution, ResolvedRate

NO_SUPPLIERS_IN_LOCATION = "No suppliers available in this location"
NO_RATES_FOR_SERVICE = "No suppliers have configured rates for this service"
NO_RATES_FOR_SERVICE_LEVEL = "No suppliers have configured rates for this service level"
NO_OUT_OF_HOURS_SUPPLIERS = (
    "No suppliers available for out-of-hours service at the requested time"
)


@dataclass
class AvailabilityResult:
    suppliers: list[ResolvedRate] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def available(self) -> bool:
        return bool(self.suppliers)


def filter_available(
    candidate_count: int, resolution: Resolution, is_out_of_hours: bool
) -> AvailabilityResult:
    if candidate_count == 0:
        return AvailabilityResult(message=NO_SUPPLIERS_IN_LOCATION)
    if not resolution.has_service_rates:
        return AvailabilityResult(message=NO_RATES_FOR_SERVICE)
    if not resolution.resolved:
        return AvailabilityResult(message=NO_RATES_FOR_SERVICE_LEVEL)

    if not is_out_of_hours:
        return AvailabilityResult(suppliers=list(resolution.resolved))

    ooh_capable = [r for r in resolution.resolved if r.offers_out_of_hours]
    if not ooh_capable:
        return AvailabilityResult(message=NO_OUT_OF_HOURS_SUPPLIERS)
    return AvailabilityResult(suppliers=ooh_capable)
