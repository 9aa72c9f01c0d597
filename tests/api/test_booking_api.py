"""
Booking Service API Tests

HTTP contracts of the booking flow: start, settlement choice, queries and
the admin saga endpoints.
"""

from decimal import Decimal

import pytest

from microservices.pricing_service.models import SettlementMethod, SubMethod
from tests.api.conftest import APITestConfig
from tests.contracts.booking.data_contract import ShippingTestDataFactory as factory

pytestmark = [pytest.mark.api, pytest.mark.asyncio]

USER = APITestConfig.user_headers("usr_api_1")


async def _start(booking_api, request=None):
    response = await booking_api.post(
        "", json=(request or factory.make_drum_request()).model_dump(mode="json"), headers=USER,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestStartBooking:

    async def test_created(self, booking_api, api_assert):
        data = await _start(booking_api)

        api_assert.assert_has_fields(data, ["shipment", "breakdown", "correlation_id", "state"])
        assert data["state"] == "awaiting_settlement_choice"
        assert data["shipment"]["status"] == "pending"
        assert data["shipment"]["user_id"] == "usr_api_1"

    async def test_guest_booking(self, booking_api):
        response = await booking_api.post("", json=factory.make_drum_request().model_dump(mode="json"))

        assert response.status_code == 201
        assert response.json()["shipment"]["user_id"] is None

    async def test_invalid_weight(self, booking_api):
        body = factory.make_weight_request().model_dump(mode="json")
        body["weight_kg"] = "-2"

        response = await booking_api.post("", json=body)

        assert response.status_code == 400

    async def test_custom_item(self, booking_api):
        response = await booking_api.post("", json=factory.make_custom_request().model_dump(mode="json"))

        assert response.status_code == 201
        assert response.json()["route"] == "custom_quote"


class TestSettlement:

    async def test_card_settlement(self, booking_api, api_assert):
        booking = await _start(booking_api)
        shipment_id = booking["shipment"]["id"]

        response = await booking_api.post(
            f"/{shipment_id}/settlement",
            json={"method": "card", "displayed_total": "260.00"},
            headers={**USER, "Idempotency-Key": factory.make_idempotency_key()},
        )

        api_assert.assert_success(response)
        data = response.json()
        assert data["state"] == "confirmed"
        assert Decimal(data["payment"]["amount"]) == Decimal(data["receipt"]["amount"]) == Decimal("260.00")
        assert data["shipment"]["status"] == "pending_payment"

    async def test_idempotency_header_replays(self, booking_api, booking_repository):
        booking = await _start(booking_api)
        shipment_id = booking["shipment"]["id"]
        headers = {**USER, "Idempotency-Key": factory.make_idempotency_key()}

        first = await booking_api.post(f"/{shipment_id}/settlement", json={"method": "card"}, headers=headers)
        second = await booking_api.post(f"/{shipment_id}/settlement", json={"method": "card"}, headers=headers)

        assert first.status_code == second.status_code == 200
        assert second.json()["duplicate"] is True
        assert second.json()["receipt"]["id"] == first.json()["receipt"]["id"]
        assert len(booking_repository.receipts) == 1

    async def test_thirty_day_terms(self, booking_api):
        booking = await _start(booking_api, factory.make_weight_request("2"))

        response = await booking_api.post(
            f"/{booking['shipment']['id']}/settlement",
            json={"method": SettlementMethod.STANDARD_30_DAY.value, "sub_method": SubMethod.DIRECT_DEBIT.value},
        )

        assert response.status_code == 200
        assert response.json()["shipment"]["status"] == "awaiting_payment_terms"
        assert response.json()["receipt"]["payment_deadline"] is not None

    async def test_mismatch_is_conflict(self, booking_api, api_assert):
        booking = await _start(booking_api)

        response = await booking_api.post(
            f"/{booking['shipment']['id']}/settlement",
            json={"method": "pay_on_arrival", "displayed_total": "260.00"},
        )

        api_assert.assert_conflict(response)

    async def test_unknown_shipment(self, booking_api, api_assert):
        response = await booking_api.post("/missing/settlement", json={"method": "card"})
        api_assert.assert_not_found(response)

    async def test_persistence_failure_reports_saga(self, booking_api, booking_repository):
        booking = await _start(booking_api)
        booking_repository.set_error("create_receipt", ConnectionError("db down"))

        response = await booking_api.post(f"/{booking['shipment']['id']}/settlement", json={"method": "card"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == "PERSISTENCE_ERROR"
        assert data["failed_step"] == "create_receipt"
        assert data["completed_steps"] == ["create_payment"]
        assert data["correlation_id"] == booking["correlation_id"]


class TestQueries:

    async def test_get_booking_and_receipts(self, booking_api, api_assert):
        booking = await _start(booking_api)
        shipment_id = booking["shipment"]["id"]
        await booking_api.post(f"/{shipment_id}/settlement", json={"method": "cash_on_collection"})

        shipment = await booking_api.get(f"/{shipment_id}")
        receipts = await booking_api.get(f"/{shipment_id}/receipts")

        api_assert.assert_success(shipment)
        assert shipment.json()["status"] == "awaiting_collection"
        assert receipts.json()["count"] == 1
        assert Decimal(receipts.json()["receipts"][0]["amount"]) == Decimal("240.00")

    async def test_unknown_booking(self, booking_api, api_assert):
        api_assert.assert_not_found(await booking_api.get("/missing"))


class TestSagaAdmin:

    async def test_requires_internal_caller(self, booking_api, api_assert):
        booking = await _start(booking_api)
        api_assert.assert_unauthorized(await booking_api.get(f"/saga/{booking['correlation_id']}"))
        api_assert.assert_unauthorized(await booking_api.post(f"/saga/{booking['correlation_id']}/compensate"))

    async def test_list_and_compensate(self, booking_api, booking_repository):
        booking = await _start(booking_api)
        correlation_id = booking["correlation_id"]

        steps = await booking_api.get(f"/saga/{correlation_id}", headers=APITestConfig.ADMIN_HEADERS)
        assert steps.json()["count"] == 1

        response = await booking_api.post(f"/saga/{correlation_id}/compensate", headers=APITestConfig.ADMIN_HEADERS)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert booking_repository.shipments == {}

    async def test_compensate_unknown(self, booking_api, api_assert):
        response = await booking_api.post("/saga/unknown/compensate", headers=APITestConfig.ADMIN_HEADERS)
        api_assert.assert_not_found(response)
