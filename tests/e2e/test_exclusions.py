"""
E2E: service and response-time exclusions and their effect on quotes and on
each rate's serviceable flag.
"""

from __future__ import annotations

import pytest
from sqlalchemy import update

from ratecard.models import SupplierRate
from tests.e2e.conftest import (
    COASTAL_TECH_ID,
    COMPLETION_CO_ID,
    EUC,
    METRO_IT_ID,
    METRO_NEW_YORK_CITY_ID,
    NETWORK,
    SMART_HANDS,
)

pytestmark = pytest.mark.asyncio

ESTIMATE = "/api/v1/pricing/estimate"


def _url(supplier_id: int, path: str) -> str:
    return f"/api/v1/suppliers/{supplier_id}/exclusions/{path}"


async def _serviceable(client, supplier_id: int) -> dict:
    rates = (await client.get(f"/api/v1/suppliers/{supplier_id}/rates")).json()
    return {(r["serviceType"], r["serviceLevel"]): r["isServiceable"] for r in rates}


class TestServiceExclusions:
    async def test_exclusion_removes_supplier_from_quotes(self, client, quote_body):
        resp = await client.post(
            _url(COASTAL_TECH_ID, "services"),
            json={"countryCode": "US", "serviceType": EUC},
        )
        assert resp.status_code == 201
        created = resp.json()
        assert created["supplierId"] == COASTAL_TECH_ID
        assert created["countryCode"] == "US"
        assert created["serviceType"] == EUC

        quote = (await client.post(ESTIMATE, json=quote_body())).json()
        assert quote["supplierCount"] == 1
        assert quote["minPriceCents"] == 46000

        flags = await _serviceable(client, COASTAL_TECH_ID)
        assert flags[(EUC, "same_business_day")] is False
        assert flags[(EUC, "next_business_day")] is False
        assert flags[(SMART_HANDS, "same_business_day")] is True

    async def test_fully_excluded_service_reports_no_rates_for_service(
        self, client, quote_body
    ):
        await client.post(
            _url(COASTAL_TECH_ID, "services"),
            json={"countryCode": "US", "serviceType": SMART_HANDS},
        )
        quote = (await client.post(ESTIMATE, json=quote_body(serviceType=SMART_HANDS))).json()
        assert quote["available"] is False
        assert quote["message"] == "No suppliers have configured rates for this service"

    async def test_label_is_stored_as_code(self, client):
        resp = await client.post(
            _url(COASTAL_TECH_ID, "services"),
            json={"countryCode": "US", "serviceType": "smart hands"},
        )
        assert resp.status_code == 201
        assert resp.json()["serviceType"] == SMART_HANDS

    async def test_unknown_service_type_rejected(self, client):
        resp = await client.post(
            _url(COASTAL_TECH_ID, "services"),
            json={"countryCode": "US", "serviceType": "Network Cabling"},
        )
        assert resp.status_code == 422
        assert (await client.get(_url(COASTAL_TECH_ID, "services"))).json() == []

    async def test_adding_twice_is_a_no_op(self, client):
        body = {"countryCode": "US", "serviceType": EUC}
        first = (await client.post(_url(COASTAL_TECH_ID, "services"), json=body)).json()
        second = (await client.post(_url(COASTAL_TECH_ID, "services"), json=body)).json()
        assert first["id"] == second["id"]

        listing = (await client.get(_url(COASTAL_TECH_ID, "services"))).json()
        assert len(listing) == 1

    async def test_removal_restores_supplier(self, client, quote_body):
        created = (
            await client.post(
                _url(COASTAL_TECH_ID, "services"),
                json={"countryCode": "US", "serviceType": EUC},
            )
        ).json()

        resp = await client.delete(_url(COASTAL_TECH_ID, f"services/{created['id']}"))
        assert resp.status_code == 204

        quote = (await client.post(ESTIMATE, json=quote_body())).json()
        assert quote["supplierCount"] == 2
        assert (await _serviceable(client, COASTAL_TECH_ID))[(EUC, "same_business_day")] is True

        again = await client.delete(_url(COASTAL_TECH_ID, f"services/{created['id']}"))
        assert again.status_code == 404

    async def test_cannot_remove_another_suppliers_exclusion(self, client):
        seeded = (await client.get(_url(COMPLETION_CO_ID, "services"))).json()
        assert len(seeded) == 1
        resp = await client.delete(_url(COASTAL_TECH_ID, f"services/{seeded[0]['id']}"))
        assert resp.status_code == 404

    async def test_scope_must_be_exactly_one_location(self, client):
        resp = await client.post(
            _url(METRO_IT_ID, "services"),
            json={"countryCode": "US", "cityId": METRO_NEW_YORK_CITY_ID, "serviceType": EUC},
        )
        assert resp.status_code == 422


class TestBulkServiceExclusions:
    async def test_bulk_add_then_bulk_remove(self, client):
        resp = await client.post(
            _url(COASTAL_TECH_ID, "services/bulk"),
            json={
                "exclusions": [
                    {"countryCode": "US", "serviceType": EUC},
                    {"countryCode": "US", "serviceType": SMART_HANDS},
                ]
            },
        )
        assert resp.status_code == 200
        assert resp.json() == {"count": 2}
        assert set((await _serviceable(client, COASTAL_TECH_ID)).values()) == {False}

        removed = await client.post(
            _url(COASTAL_TECH_ID, "services/bulk-remove"),
            json={"serviceTypes": [SMART_HANDS]},
        )
        assert removed.json() == {"count": 1}
        flags = await _serviceable(client, COASTAL_TECH_ID)
        assert flags[(SMART_HANDS, "same_business_day")] is True
        assert flags[(EUC, "same_business_day")] is False

        rest = await client.post(_url(COASTAL_TECH_ID, "services/bulk-remove"), json={})
        assert rest.json() == {"count": 1}
        assert (await client.get(_url(COASTAL_TECH_ID, "services"))).json() == []

    async def test_bulk_remove_by_country(self, client):
        resp = await client.post(
            _url(COMPLETION_CO_ID, "services/bulk-remove"), json={"countryCodes": ["gb"]}
        )
        assert resp.json() == {"count": 1}

    async def test_bulk_remove_without_matches(self, client):
        resp = await client.post(
            _url(COMPLETION_CO_ID, "services/bulk-remove"), json={"countryCodes": ["FR"]}
        )
        assert resp.json() == {"count": 0}


class TestResponseTimeExclusions:
    async def test_level_exclusion_only_hits_that_level(self, client, quote_body):
        resp = await client.post(
            _url(COASTAL_TECH_ID, "response-times"),
            json={
                "countryCode": "US",
                "serviceType": EUC,
                "serviceLevel": "next_business_day",
            },
        )
        assert resp.status_code == 201
        assert resp.json()["serviceLevel"] == "next_business_day"

        next_day = (
            await client.post(
                ESTIMATE, json=quote_body(serviceLevel="next_day", durationMinutes=180)
            )
        ).json()
        assert next_day["supplierCount"] == 1
        assert next_day["minPriceCents"] == 27600

        same_day = (await client.post(ESTIMATE, json=quote_body())).json()
        assert same_day["supplierCount"] == 2

    async def test_city_exclusion_does_not_fall_back_to_country(self, client, quote_body):
        await client.put(
            f"/api/v1/suppliers/{METRO_IT_ID}/rates",
            json={
                "countryCode": "US",
                "serviceType": EUC,
                "serviceLevel": "same_business_day",
                "rateUsdCents": 5000,
            },
        )
        resp = await client.post(
            _url(METRO_IT_ID, "response-times"),
            json={
                "cityId": METRO_NEW_YORK_CITY_ID,
                "serviceType": EUC,
                "serviceLevel": "same_business_day",
            },
        )
        assert resp.status_code == 201

        quote = (await client.post(ESTIMATE, json=quote_body())).json()
        assert quote["supplierCount"] == 1
        assert quote["minPriceCents"] == quote["maxPriceCents"] == 41400

        # Outside New York the country rate still applies.
        chicago = (await client.post(ESTIMATE, json=quote_body(city="Chicago"))).json()
        assert chicago["supplierCount"] == 2
        assert chicago["minPriceCents"] == 23000

    async def test_remove_by_natural_key(self, client, quote_body):
        await client.post(
            _url(METRO_IT_ID, "response-times"),
            json={
                "cityId": METRO_NEW_YORK_CITY_ID,
                "serviceType": EUC,
                "serviceLevel": "same_business_day",
            },
        )
        params = {
            "serviceType": EUC,
            "serviceLevel": "same_business_day",
            "cityId": METRO_NEW_YORK_CITY_ID,
        }
        resp = await client.delete(_url(METRO_IT_ID, "response-times"), params=params)
        assert resp.status_code == 204

        quote = (await client.post(ESTIMATE, json=quote_body())).json()
        assert quote["maxPriceCents"] == 46000

        again = await client.delete(_url(METRO_IT_ID, "response-times"), params=params)
        assert again.status_code == 404

    async def test_remove_with_unknown_service_type_rejected(self, client):
        resp = await client.delete(
            _url(COMPLETION_CO_ID, "response-times"),
            params={"serviceType": "Cabling", "serviceLevel": "scheduled", "countryCode": "IE"},
        )
        assert resp.status_code == 422

    async def test_remove_accepts_display_label(self, client):
        resp = await client.delete(
            _url(COMPLETION_CO_ID, "response-times"),
            params={
                "serviceType": "L1 Network Support",
                "serviceLevel": "scheduled",
                "countryCode": "IE",
            },
        )
        assert resp.status_code == 204
        assert (await client.get(_url(COMPLETION_CO_ID, "response-times"))).json() == []

    async def test_list_seeded_exclusion(self, client):
        listing = (await client.get(_url(COMPLETION_CO_ID, "response-times"))).json()
        assert len(listing) == 1
        assert listing[0]["countryCode"] == "IE"
        assert listing[0]["serviceType"] == NETWORK
        assert listing[0]["serviceLevel"] == "scheduled"


class TestResync:
    async def test_repairs_stale_flags(self, client, seeded_db):
        await seeded_db.execute(
            update(SupplierRate)
            .where(
                SupplierRate.supplier_id == COASTAL_TECH_ID,
                SupplierRate.service_type == SMART_HANDS,
            )
            .values(is_serviceable=False)
        )

        resp = await client.post(_url(COASTAL_TECH_ID, "resync"))
        assert resp.status_code == 200
        assert resp.json() == {"updatedCount": 1}
        assert (await _serviceable(client, COASTAL_TECH_ID))[(SMART_HANDS, "same_business_day")] is True

        again = await client.post(_url(COASTAL_TECH_ID, "resync"))
        assert again.json() == {"updatedCount": 0}

    async def test_consistent_catalog_needs_no_changes(self, client):
        resp = await client.post(_url(COMPLETION_CO_ID, "resync"))
        assert resp.json() == {"updatedCount": 0}
