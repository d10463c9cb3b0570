"""
SQLAlchemy models for supplier_service_exclusions and
supplier_response_time_exclusions.

Exclusions are the source of truth for what a supplier does not offer; the
``is_serviceable`` flag on ``supplier_rates`` is derived from them.
"""

from sqlalchemy import (
    CheckConstraint,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, IntegerPrimaryKeyMixin, TimestampMixin
from .rate import ServiceLevel
from .scope import ScopedMixin


class SupplierServiceExclusion(IntegerPrimaryKeyMixin, ScopedMixin, TimestampMixin, Base):
    """Blocks every service level of one service type at one location."""

    __tablename__ = "supplier_service_exclusions"
    __table_args__ = (
        UniqueConstraint(
            "supplier_id", "scope_key", "service_type", name="uq_service_exclusion"
        ),
        CheckConstraint(
            "(country_code IS NULL) <> (city_id IS NULL)",
            name="ck_service_exclusion_one_scope",
        ),
    )

    supplier_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False
    )
    service_type: Mapped[str] = mapped_column(String(50), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<SupplierServiceExclusion supplier={self.supplier_id} "
            f"{self.scope_key} {self.service_type}>"
        )


class SupplierResponseTimeExclusion(
    IntegerPrimaryKeyMixin, ScopedMixin, TimestampMixin, Base
):
    """Blocks a single service level of one service type at one location."""

    __tablename__ = "supplier_response_time_exclusions"
    __table_args__ = (
        UniqueConstraint(
            "supplier_id",
            "scope_key",
            "service_type",
            "service_level",
            name="uq_response_time_exclusion",
        ),
        CheckConstraint(
            "(country_code IS NULL) <> (city_id IS NULL)",
            name="ck_response_time_exclusion_one_scope",
        ),
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

    def __repr__(self) -> str:
        return (
            f"<SupplierResponseTimeExclusion supplier={self.supplier_id} "
            f"{self.scope_key} {self.service_type}/{self.service_level.value}>"
        )
