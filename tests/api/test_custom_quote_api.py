"""
Custom Quote Service API Tests

HTTP contracts of the custom quote flow: multipart submission, admin
pricing, acceptance and listing.
"""

import json
from decimal import Decimal

import pytest

from tests.api.conftest import APITestConfig
from tests.contracts.booking.data_contract import ShippingTestDataFactory as factory

pytestmark = [pytest.mark.api, pytest.mark.asyncio]

USER = APITestConfig.user_headers("usr_api_quote")


def _payload(**overrides) -> str:
    return factory.make_quote_submit_request(**overrides).model_dump_json()


async def _submit(custom_quote_api, files=None):
    response = await custom_quote_api.post("", data={"payload": _payload()}, files=files, headers=USER)
    assert response.status_code == 201, response.text
    return response.json()["quote"]


async def _price(custom_quote_api, quote_id, amount="350.00"):
    response = await custom_quote_api.post(
        f"/{quote_id}/price", json={"quoted_amount": amount}, headers=APITestConfig.ADMIN_HEADERS,
    )
    assert response.status_code == 200, response.text
    return response.json()["quote"]


class TestSubmit:

    async def test_submit_with_images(self, custom_quote_api, storage_client):
        files = [
            ("images", ("front.jpg", b"\xff\xd8\xff-front", "image/jpeg")),
            ("images", ("side.png", b"\x89PNG-side", "image/png")),
        ]

        quote = await _submit(custom_quote_api, files=files)

        assert quote["status"] == "pending"
        assert quote["quoted_amount"] is None
        assert len(quote["image_urls"]) == 2
        assert [u[0] for u in storage_client.uploads] == ["front.jpg", "side.png"]

    async def test_submit_without_images(self, custom_quote_api):
        quote = await _submit(custom_quote_api)
        assert quote["image_urls"] == []

    async def test_invalid_payload(self, custom_quote_api, api_assert):
        response = await custom_quote_api.post("", data={"payload": json.dumps({"description": ""})})
        api_assert.assert_validation_error(response)

    async def test_non_image_upload(self, custom_quote_api, quote_repository):
        files = [("images", ("notes.txt", b"hello", "text/plain"))]

        response = await custom_quote_api.post("", data={"payload": _payload()}, files=files)

        assert response.status_code == 502
        assert quote_repository.quotes == {}


class TestPricing:

    async def test_requires_internal_caller(self, custom_quote_api, api_assert):
        quote = await _submit(custom_quote_api)
        response = await custom_quote_api.post(f"/{quote['id']}/price", json={"quoted_amount": "100"})
        api_assert.assert_unauthorized(response)

    async def test_price_quote(self, custom_quote_api):
        quote = await _submit(custom_quote_api)

        priced = await _price(custom_quote_api, quote["id"])

        assert priced["status"] == "quoted"
        assert Decimal(priced["quoted_amount"]) == Decimal("350.00")

    async def test_price_twice_conflict(self, custom_quote_api, api_assert):
        quote = await _submit(custom_quote_api)
        await _price(custom_quote_api, quote["id"])

        response = await custom_quote_api.post(
            f"/{quote['id']}/price", json={"quoted_amount": "400"}, headers=APITestConfig.ADMIN_HEADERS,
        )

        api_assert.assert_conflict(response)

    async def test_non_positive_amount(self, custom_quote_api, api_assert):
        quote = await _submit(custom_quote_api)
        response = await custom_quote_api.post(
            f"/{quote['id']}/price", json={"quoted_amount": "0"}, headers=APITestConfig.ADMIN_HEADERS,
        )
        api_assert.assert_validation_error(response)


class TestAccept:

    async def test_accept_unpriced_conflict(self, custom_quote_api, api_assert):
        quote = await _submit(custom_quote_api)

        response = await custom_quote_api.post(f"/{quote['id']}/accept", json={"method": "card"}, headers=USER)

        api_assert.assert_conflict(response)
        assert "not been priced" in response.json()["detail"]

    async def test_accept_priced(self, custom_quote_api, booking_repository):
        quote = await _submit(custom_quote_api)
        await _price(custom_quote_api, quote["id"])

        response = await custom_quote_api.post(
            f"/{quote['id']}/accept",
            json={"method": "bank_transfer", "displayed_total": "350.00"},
            headers={**USER, "Idempotency-Key": factory.make_idempotency_key()},
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["quote"]["status"] == "accepted"
        assert data["shipment"]["status"] == "pending_collection"
        assert Decimal(data["receipt"]["amount"]) == Decimal("350.00")
        assert len(booking_repository.payments) == 1

    async def test_accept_unknown(self, custom_quote_api, api_assert):
        response = await custom_quote_api.post("/missing/accept", json={"method": "card"})
        api_assert.assert_not_found(response)


class TestQueries:

    async def test_list_requires_user(self, custom_quote_api, api_assert):
        api_assert.assert_unauthorized(await custom_quote_api.get(""))

    async def test_list_and_get(self, custom_quote_api, api_assert):
        first = await _submit(custom_quote_api)
        second = await _submit(custom_quote_api)
        await _price(custom_quote_api, second["id"])

        everything = await custom_quote_api.get("", headers=USER)
        quoted = await custom_quote_api.get("", params={"status": "quoted"}, headers=USER)
        single = await custom_quote_api.get(f"/{first['id']}")

        assert everything.json()["count"] == 2
        assert [q["id"] for q in quoted.json()["quotes"]] == [second["id"]]
        api_assert.assert_success(single)
        api_assert.assert_not_found(await custom_quote_api.get("/missing"))
