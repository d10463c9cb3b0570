"""
Location scope variants shared by rate, coverage and exclusion records.

A scoped row is tagged by exactly one of a country code or a priority-city
id.  The database keeps both nullable columns (plus a derived ``scope_key``
for the natural uniqueness constraint), but everything above the model layer
works with the ``CountryScope`` / ``CityScope`` variant returned by
``ScopedMixin.scope``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column


@dataclass(frozen=True)
class CountryScope:
    code: str

    @property
    def key(self) -> str:
        return f"country:{self.code}"


@dataclass(frozen=True)
class CityScope:
    id: int
    # Filled in when the owning priority city is known; not part of identity.
    country_code: Optional[str] = field(default=None, compare=False)

    @property
    def key(self) -> str:
        return f"city:{self.id}"


LocationScope = Union[CountryScope, CityScope]


class InvalidLocationScopeError(ValueError):
    """Raised when a scoped write names both or neither of country and city."""

    def __init__(self, country_code: Optional[str], city_id: Optional[int]) -> None:
        self.country_code = country_code
        self.city_id = city_id
        super().__init__(
            "Exactly one of countryCode or cityId must be provided "
            f"(got countryCode={country_code!r}, cityId={city_id!r})"
        )


def make_scope(country_code: Optional[str], city_id: Optional[int]) -> LocationScope:
    """Build the scope variant from the two optional wire/storage fields."""
    if (country_code is None) == (city_id is None):
        raise InvalidLocationScopeError(country_code, city_id)
    if city_id is not None:
        return CityScope(city_id)
    return CountryScope(country_code.upper())


def scope_columns(scope: LocationScope) -> dict[str, Optional[object]]:
    """Column values for persisting ``scope`` on a scoped table."""
    if isinstance(scope, CityScope):
        return {"country_code": None, "city_id": scope.id, "scope_key": scope.key}
    return {"country_code": scope.code, "city_id": None, "scope_key": scope.key}


class ScopedMixin:
    """Columns carried by every location-scoped table."""

    country_code: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    city_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("supplier_priority_cities.id", ondelete="CASCADE"),
        nullable=True,
    )
    scope_key: Mapped[str] = mapped_column(String(32), nullable=False)

    @property
    def scope(self) -> LocationScope:
        if self.city_id is not None:
            return CityScope(self.city_id)
        return CountryScope(self.country_code)
