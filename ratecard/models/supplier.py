"""
SQLAlchemy models for suppliers, supplier_coverage_countries and
supplier_priority_cities.

Supplier flags are owned by the verification/onboarding workflow; the rate
engine only reads them.
"""

from typing import Optional

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, IntegerPrimaryKeyMixin, TimestampMixin


class Supplier(IntegerPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "suppliers"

    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    country: Mapped[str] = mapped_column(String(2), nullable=False)
    offers_out_of_hours: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true")
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )

    def __repr__(self) -> str:
        return (
            f"<Supplier id={self.id} name={self.company_name!r} "
            f"ooh={self.offers_out_of_hours}>"
        )


class SupplierCoverageCountry(IntegerPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "supplier_coverage_countries"
    __table_args__ = (
        UniqueConstraint(
            "supplier_id", "country_code", name="uq_coverage_supplier_country"
        ),
    )

    supplier_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False
    )
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    # An excluded row contradicts the coverage a priority city would imply.
    is_excluded: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )

    def __repr__(self) -> str:
        return (
            f"<SupplierCoverageCountry supplier={self.supplier_id} "
            f"country={self.country_code} excluded={self.is_excluded}>"
        )


class SupplierPriorityCity(IntegerPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "supplier_priority_cities"

    supplier_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False
    )
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    city_name: Mapped[str] = mapped_column(String(255), nullable=False)
    state_province: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    timezone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<SupplierPriorityCity id={self.id} supplier={self.supplier_id} "
            f"{self.city_name}, {self.country_code}>"
        )
