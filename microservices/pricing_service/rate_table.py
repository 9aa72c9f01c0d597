"""
Rate Table

Pure pricing functions: (classification, quantity or weight, add-ons) -> PricingBreakdown.
No I/O; the rate constants come from the RatePolicy passed in.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from .models import (
    AddOn, AddonCharge, ItemClassification, PricingBreakdown,
    PricingRoute, RatePolicy, ShipmentRequest,
)
from .protocols import PricingError, PricingValidationError

TWO_PLACES = Decimal("0.01")

ADDON_DESCRIPTIONS = {
    AddOn.DOOR_TO_DOOR: "Door-to-door delivery",
    AddOn.METAL_SEAL: "Metal coded seal",
}


def to_money(value) -> Decimal:
    """Quantize to pence, half-up"""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def route_for(request: ShipmentRequest) -> PricingRoute:
    """Custom items never get a rate table price"""
    if request.classification == ItemClassification.CUSTOM:
        return PricingRoute.CUSTOM_QUOTE
    return PricingRoute.RATE_TABLE


def tier_index(quantity: int) -> int:
    """0 for one drum, 1 for two to four, 2 for five or more"""
    if quantity <= 1:
        return 0
    if quantity <= 4:
        return 1
    return 2


def drum_unit_price(quantity: int, policy: RatePolicy) -> Decimal:
    if quantity is None or quantity <= 0:
        raise PricingValidationError("Drum quantity must be at least 1")
    if len(policy.drum_tiers) != 3:
        raise PricingError(f"Rate policy '{policy.name}' has no drum tariff")
    return to_money(policy.drum_tiers[tier_index(quantity)])


def drum_cost(quantity: int, policy: RatePolicy) -> Decimal:
    return to_money(quantity * drum_unit_price(quantity, policy))


def weight_cost(weight_kg: Optional[Decimal], policy: RatePolicy) -> Decimal:
    """max(weight x per-kg rate, minimum charge)"""
    if weight_kg is None or weight_kg <= 0:
        raise PricingValidationError("Weight must be greater than 0 kg")
    if policy.per_kg_rate is None:
        raise PricingError(f"Rate policy '{policy.name}' has no per-kg rate")
    return to_money(max(weight_kg * policy.per_kg_rate, policy.minimum_charge))


def addon_charges(
    classification: ItemClassification,
    addons: Iterable[AddOn],
    policy: RatePolicy,
) -> List[AddonCharge]:
    """
    Flat add-on fees, each charged at most once per booking.

    The seal applies to drum shipments only and is dropped for anything else.
    """
    charges = []
    for addon in dict.fromkeys(addons):
        if addon == AddOn.DOOR_TO_DOOR:
            amount = policy.door_to_door_fee
        elif addon == AddOn.METAL_SEAL:
            if classification != ItemClassification.DRUM:
                continue
            amount = policy.seal_fee
        else:
            continue
        charges.append(AddonCharge(
            addon=addon,
            description=ADDON_DESCRIPTIONS[addon],
            amount=to_money(amount),
        ))
    return charges


def price_items(
    classification: ItemClassification,
    quantity: Optional[int],
    weight_kg: Optional[Decimal],
    addons: Iterable[AddOn],
    policy: RatePolicy,
) -> PricingBreakdown:
    """
    Price items from the rate table.

    Raises:
        PricingValidationError: non-positive quantity or weight
        PricingError: custom item, or the policy has no rate for the classification
    """
    unit_price = None
    if classification == ItemClassification.DRUM:
        unit_price = drum_unit_price(quantity, policy)
        base = drum_cost(quantity, policy)
    elif classification == ItemClassification.WEIGHT_RATED:
        base = weight_cost(weight_kg, policy)
    else:
        raise PricingError(
            f"No standard rate for '{classification.value}' items; a custom quote is required"
        )

    charges = addon_charges(classification, addons, policy)
    total = to_money(base + sum((c.amount for c in charges), Decimal("0")))

    return PricingBreakdown(
        classification=classification,
        quantity=quantity if classification == ItemClassification.DRUM else None,
        weight_kg=weight_kg if classification == ItemClassification.WEIGHT_RATED else None,
        unit_price=unit_price,
        base=base,
        addon_charges=charges,
        total_before_settlement=total,
        currency=policy.currency,
        pricing_track=policy.pricing_track,
    )


def price_shipment(request: ShipmentRequest, policy: RatePolicy) -> PricingBreakdown:
    """Price a shipment request from the rate table"""
    return price_items(
        request.classification,
        request.quantity,
        request.weight_kg,
        request.addons,
        policy,
    )


def quoted_breakdown(quoted_amount: Decimal, currency: str = "GBP") -> PricingBreakdown:
    """Breakdown for a custom item priced by an administrator"""
    if quoted_amount is None or quoted_amount <= 0:
        raise PricingValidationError("Quoted amount must be greater than 0")
    amount = to_money(quoted_amount)
    return PricingBreakdown(
        classification=ItemClassification.CUSTOM,
        base=amount,
        total_before_settlement=amount,
        currency=currency,
    )
