"""
Temporal Classifier.

Decides whether a scheduled visit falls inside business hours, evaluated in
the *site's* timezone (never server time or UTC):

- Business hours: Monday to Friday, 08:00 (inclusive) to 18:00 (exclusive).
- Anything on Saturday or Sunday, or outside that window on a weekday, is
  out-of-hours (OOH).

A naive timestamp is read as wall-clock time at the site.  An aware timestamp
is first converted into the site zone, so two representations of the same
instant always classify identically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

BUSINESS_DAY_START = time(8, 0)
BUSINESS_DAY_END = time(18, 0)
# Monday=0 .. Friday=4
BUSINESS_WEEKDAYS = frozenset(range(5))


class InvalidScheduleError(ValueError):
    """Raised for an unparseable timestamp or an unknown IANA zone name."""


@dataclass
class TimeClassification:
    local_time: datetime
    is_out_of_hours: bool
    reasons: list[str] = field(default_factory=list)


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidScheduleError(f"Unknown timezone: {name!r}") from None


def to_site_time(scheduled: str | datetime, timezone_name: str) -> datetime:
    """Return ``scheduled`` as an aware datetime in the site's zone."""
    zone = resolve_timezone(timezone_name)
    if isinstance(scheduled, str):
        try:
            scheduled = datetime.fromisoformat(scheduled.strip())
        except ValueError:
            raise InvalidScheduleError(
                f"Invalid scheduled date/time: {scheduled!r}"
            ) from None
    if scheduled.tzinfo is None:
        return scheduled.replace(tzinfo=zone)
    return scheduled.astimezone(zone)


def classify(scheduled: str | datetime, timezone_name: str) -> TimeClassification:
    local = to_site_time(scheduled, timezone_name)
    reasons: list[str] = []

    if local.weekday() not in BUSINESS_WEEKDAYS:
        reasons.append(f"Weekend ({local.strftime('%A')})")
    else:
        wall = local.time().replace(tzinfo=None)
        if wall < BUSINESS_DAY_START:
            reasons.append(f"Before business hours ({local.strftime('%H:%M')})")
        elif wall >= BUSINESS_DAY_END:
            reasons.append(f"After business hours ({local.strftime('%H:%M')})")

    return TimeClassification(
        local_time=local, is_out_of_hours=bool(reasons), reasons=reasons
    )


def is_out_of_hours(scheduled: str | datetime, timezone_name: str) -> bool:
    return classify(scheduled, timezone_name).is_out_of_hours
