"""
Ratecard SQLAlchemy Models
=============================

Central import point for all ORM models. Import ``Base`` from here for the
``create_all`` convenience in tests.

Usage::

    from ratecard.models import Base, Supplier, SupplierRate
"""

# -- Base & Mixins --
from .base import Base, IntegerPrimaryKeyMixin, TimestampMixin

# -- Location scope --
from .scope import (
    CityScope,
    CountryScope,
    InvalidLocationScopeError,
    LocationScope,
    ScopedMixin,
    make_scope,
    scope_columns,
)

# -- Suppliers & coverage --
from .supplier import Supplier, SupplierCoverageCountry, SupplierPriorityCity

# -- Rates --
from .rate import (
    MAX_RATE_USD_CENTS,
    SERVICE_LEVELS_BY_URGENCY,
    SERVICE_TYPE_ALIASES,
    SERVICE_TYPES,
    ServiceLevel,
    SupplierRate,
    parse_service_type,
)

# -- Exclusions --
from .exclusion import SupplierResponseTimeExclusion, SupplierServiceExclusion

__all__ = [
    # Base
    "Base",
    "IntegerPrimaryKeyMixin",
    "TimestampMixin",
    # Scope
    "CityScope",
    "CountryScope",
    "InvalidLocationScopeError",
    "LocationScope",
    "ScopedMixin",
    "make_scope",
    "scope_columns",
    # Suppliers
    "Supplier",
    "SupplierCoverageCountry",
    "SupplierPriorityCity",
    # Rates
    "MAX_RATE_USD_CENTS",
    "SERVICE_LEVELS_BY_URGENCY",
    "SERVICE_TYPE_ALIASES",
    "SERVICE_TYPES",
    "ServiceLevel",
    "SupplierRate",
    "parse_service_type",
    # Exclusions
    "SupplierResponseTimeExclusion",
    "SupplierServiceExclusion",
]
