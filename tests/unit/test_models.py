"""
Unit tests for location scope construction and the service vocabularies.
"""

import pytest

from ratecard.models import (
    CityScope,
    CountryScope,
    InvalidLocationScopeError,
    ServiceLevel,
    SupplierRate,
    make_scope,
    parse_service_type,
    scope_columns,
)


class TestMakeScope:
    def test_country(self):
        assert make_scope("us", None) == CountryScope("US")

    def test_city(self):
        assert make_scope(None, 12) == CityScope(12)

    @pytest.mark.parametrize("country,city", [("US", 12), (None, None)])
    def test_exactly_one_required(self, country, city):
        with pytest.raises(InvalidLocationScopeError):
            make_scope(country, city)

    def test_scope_columns(self):
        assert scope_columns(CountryScope("GB")) == {
            "country_code": "GB",
            "city_id": None,
            "scope_key": "country:GB",
        }
        assert scope_columns(CityScope(3)) == {
            "country_code": None,
            "city_id": 3,
            "scope_key": "city:3",
        }

    def test_rate_row_exposes_scope_variant(self):
        city_rate = SupplierRate(city_id=4, scope_key="city:4")
        country_rate = SupplierRate(country_code="DE", scope_key="country:DE")
        assert city_rate.scope == CityScope(4)
        assert country_rate.scope == CountryScope("DE")


class TestServiceLevels:
    def test_urgency_order(self):
        assert list(ServiceLevel) == [
            ServiceLevel.SAME_BUSINESS_DAY,
            ServiceLevel.NEXT_BUSINESS_DAY,
            ServiceLevel.SCHEDULED,
        ]


class TestServiceTypes:
    @pytest.mark.parametrize(
        "value,code",
        [
            ("L1_EUC", "L1_EUC"),
            ("l1_network", "L1_NETWORK"),
            ("Smart Hands", "SMART_HANDS"),
            ("  smart_hands ", "SMART_HANDS"),
            ("L1 End User Computing", "L1_EUC"),
            ("Level 1 End User Compute Engineer", "L1_EUC"),
        ],
    )
    def test_codes_labels_and_aliases(self, value, code):
        assert parse_service_type(value) == code

    @pytest.mark.parametrize("value", ["Network Cabling", "", "L1", None])
    def test_outside_vocabulary_rejected(self, value):
        with pytest.raises(ValueError, match="Unknown service type"):
            parse_service_type(value)
