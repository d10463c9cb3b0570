"""
SQLAlchemy model for supplier_rates plus the service-level and service-type
vocabularies shared across the rate engine.
"""

import enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, IntegerPrimaryKeyMixin, TimestampMixin
from .scope import ScopedMixin


class ServiceLevel(str, enum.Enum):
    """Response-time tiers, declared from most to least urgent."""

    SAME_BUSINESS_DAY = "same_business_day"
    NEXT_BUSINESS_DAY = "next_business_day"
    SCHEDULED = "scheduled"


SERVICE_LEVELS_BY_URGENCY: tuple[ServiceLevel, ...] = tuple(ServiceLevel)

# The closed service-type vocabulary: stored code -> display label.
SERVICE_TYPES: dict[str, str] = {
    "L1_EUC": "L1 End User Computing",
    "L1_NETWORK": "L1 Network Support",
    "SMART_HANDS": "Smart Hands",
}

# Customer-facing job titles that map onto a stored code.
SERVICE_TYPE_ALIASES: dict[str, str] = {
    "Level 1 End User Compute Engineer": "L1_EUC",
}


def _lookup_key(value: str) -> str:
    return " ".join(value.replace("_", " ").split()).casefold()


_SERVICE_TYPE_LOOKUP: dict[str, str] = {
    **{_lookup_key(code): code for code in SERVICE_TYPES},
    **{_lookup_key(label): code for code, label in SERVICE_TYPES.items()},
    **{_lookup_key(alias): code for alias, code in SERVICE_TYPE_ALIASES.items()},
}


def parse_service_type(value: str) -> str:
    """Return the stored code for a code, display label or known alias.

    Matching ignores case, surrounding whitespace and ``_`` versus space.
    Raises ``ValueError`` for anything outside the vocabulary.
    """
    if isinstance(value, str):
        code = _SERVICE_TYPE_LOOKUP.get(_lookup_key(value))
        if code is not None:
            return code
    raise ValueError(
        f"Unknown service type {value!r}; expected one of {', '.join(SERVICE_TYPES)}"
    )


# Upper bound of the 32-bit rate_usd_cents column.
MAX_RATE_USD_CENTS = 2**31 - 1


class SupplierRate(IntegerPrimaryKeyMixin, ScopedMixin, TimestampMixin, Base):
    __tablename__ = "supplier_rates"
    __table_args__ = (
        UniqueConstraint(
            "supplier_id",
            "scope_key",
            "service_type",
            "service_level",
            name="uq_supplier_rates_slot",
        ),
        CheckConstraint(
            "(country_code IS NULL) <> (city_id IS NULL)",
            name="ck_supplier_rates_one_scope",
        ),
        CheckConstraint(
            "rate_usd_cents IS NULL OR rate_usd_cents >= 0",
            name="ck_supplier_rates_non_negative",
        ),
        Index("ix_supplier_rates_market", "service_type", "service_level", "country_code"),
    )

    supplier_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False
    )
    service_type: Mapped[str] = mapped_column(String(50), nullable=False)
    service_level: Mapped[ServiceLevel] = mapped_column(
        Enum(
            ServiceLevel,
            name="service_level",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    rate_usd_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # Cached projection of the exclusion tables; see exclusionRegistry.
    is_serviceable: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true")
    )

    def __repr__(self) -> str:
        return (
            f"<SupplierRate supplier={self.supplier_id} {self.scope_key} "
            f"{self.service_type}/{self.service_level.value} "
            f"cents={self.rate_usd_cents}>"
        )
