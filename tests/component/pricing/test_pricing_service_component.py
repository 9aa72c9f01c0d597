"""
Pricing Service Component Tests

PricingService with an in-memory rate policy store.

Usage:
    pytest tests/component/pricing -v
"""

from decimal import Decimal

import pytest

from microservices.pricing_service.models import (
    CashDiscountPolicy, PricingRoute, RatePolicyUpsertRequest,
    SettlementMethod, SettlementPreviewRequest,
)
from microservices.pricing_service.protocols import RatePolicyNotFoundError
from tests.contracts.booking.data_contract import ShippingTestDataFactory as factory

pytestmark = [pytest.mark.component, pytest.mark.asyncio]


def _upsert_request(**overrides) -> RatePolicyUpsertRequest:
    data = {
        "pricing_track": "legacy",
        "drum_tiers": [Decimal("280"), Decimal("260"), Decimal("240")],
        "per_kg_rate": Decimal("50"),
        "minimum_charge": Decimal("95"),
        "door_to_door_fee": Decimal("25"),
        "seal_fee": Decimal("5"),
    }
    data.update(overrides)
    return RatePolicyUpsertRequest(**data)


class TestActivePolicy:

    async def test_defaults_used_when_store_is_empty(self, pricing_service):
        policy = await pricing_service.get_active_policy()
        assert policy.name == "default"
        assert policy.drum_tiers == [Decimal("260"), Decimal("240"), Decimal("220")]

    async def test_stored_policy_overrides_defaults(self, pricing_service, policy_repository):
        policy_repository.policies["default"] = factory.make_policy(track="legacy")

        result = await pricing_service.quote(factory.make_drum_request(quantity=1))

        assert result.success
        assert result.breakdown.total_before_settlement == Decimal("280.00")
        assert result.breakdown.pricing_track == "legacy"


class TestQuote:

    async def test_drum_quote(self, pricing_service):
        result = await pricing_service.quote(factory.make_drum_request(quantity=4))
        assert result.success
        assert result.route == PricingRoute.RATE_TABLE
        assert result.breakdown.total_before_settlement == Decimal("960.00")

    async def test_custom_item_routed_without_price(self, pricing_service):
        result = await pricing_service.quote(factory.make_custom_request())
        assert result.success
        assert result.route == PricingRoute.CUSTOM_QUOTE
        assert result.breakdown is None

    async def test_invalid_quantity_is_validation_error(self, pricing_service):
        result = await pricing_service.quote(factory.make_drum_request(quantity=0))
        assert not result.success
        assert result.error_code == "VALIDATION_ERROR"

    async def test_missing_rate_redirects_to_custom_quote(self, pricing_service, policy_repository):
        policy_repository.policies["default"] = factory.make_policy(per_kg_rate=None)

        result = await pricing_service.quote(factory.make_weight_request("3"))

        assert not result.success
        assert result.error_code == "PRICING_ERROR"
        assert result.route == PricingRoute.CUSTOM_QUOTE

    async def test_policy_store_failure_is_reported(self, pricing_service, policy_repository):
        policy_repository.set_error("get_policy", ConnectionError("db down"))
        result = await pricing_service.quote(factory.make_drum_request())
        assert not result.success
        assert result.error_code == "QUOTE_ERROR"


class TestSettlementPreview:

    async def test_preview_cash_on_collection(self, pricing_service):
        result = await pricing_service.preview_settlement(SettlementPreviewRequest(
            shipment=factory.make_drum_request(quantity=1),
            method=SettlementMethod.CASH_ON_COLLECTION,
        ))
        assert result.success
        assert result.selection.final_total == Decimal("240.00")

    async def test_preview_mismatch(self, pricing_service):
        result = await pricing_service.preview_settlement(SettlementPreviewRequest(
            shipment=factory.make_drum_request(quantity=1),
            method=SettlementMethod.CARD,
            displayed_total=Decimal("250.00"),
        ))
        assert not result.success
        assert result.error_code == "SETTLEMENT_MISMATCH"

    async def test_preview_method_not_allowed(self, pricing_service):
        result = await pricing_service.preview_settlement(SettlementPreviewRequest(
            shipment=factory.make_weight_request("2"),
            method=SettlementMethod.CASH_ON_COLLECTION,
        ))
        assert result.error_code == "VALIDATION_ERROR"


class TestPolicyAdministration:

    async def test_upsert_and_get(self, pricing_service):
        result = await pricing_service.upsert_policy("winter", _upsert_request())
        assert result.success
        assert result.policy.updated_at is not None

        policy = await pricing_service.get_policy("winter")
        assert policy.pricing_track == "legacy"

    async def test_upsert_rejects_increasing_tiers(self, pricing_service, policy_repository):
        result = await pricing_service.upsert_policy(
            "bad", _upsert_request(drum_tiers=[Decimal("200"), Decimal("260"), Decimal("280")]),
        )
        assert not result.success
        assert result.error_code == "VALIDATION_ERROR"
        assert "bad" not in policy_repository.policies

    async def test_upsert_persistence_failure(self, pricing_service, policy_repository):
        policy_repository.set_error("upsert_policy", ConnectionError("db down"))
        result = await pricing_service.upsert_policy("winter", _upsert_request())
        assert result.error_code == "PERSISTENCE_ERROR"

    async def test_upsert_keeps_discount_rule(self, pricing_service):
        rule = CashDiscountPolicy(kind="flat", value=Decimal("30"))
        result = await pricing_service.upsert_policy("flat", _upsert_request(cash_discount=rule))
        assert result.policy.cash_discount.value == Decimal("30")

    async def test_list_and_delete(self, pricing_service):
        await pricing_service.upsert_policy("a", _upsert_request())
        await pricing_service.upsert_policy("b", _upsert_request())

        listed = await pricing_service.list_policies()
        assert [p.name for p in listed.policies] == ["a", "b"]

        assert await pricing_service.delete_policy("a") is True
        with pytest.raises(RatePolicyNotFoundError):
            await pricing_service.delete_policy("a")

    async def test_get_missing_policy(self, pricing_service):
        with pytest.raises(RatePolicyNotFoundError):
            await pricing_service.get_policy("nope")
