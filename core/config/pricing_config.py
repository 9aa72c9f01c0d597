#!/usr/bin/env python3
"""Pricing policy configuration

Default rate-table constants and settlement rules. These are the fallback
values used when no policy row has been stored by an administrator.
"""
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, Tuple

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _decimal(val: str, default: str) -> Decimal:
    try:
        return Decimal(val) if val else Decimal(default)
    except InvalidOperation:
        return Decimal(default)

def _tiers(val: str, default: Tuple[str, str, str]) -> Tuple[Decimal, Decimal, Decimal]:
    """Parse "260,240,220" into the 1 / 2-4 / 5+ unit prices"""
    parts = [p.strip() for p in (val or "").split(",") if p.strip()]
    if len(parts) != 3:
        parts = list(default)
    try:
        return tuple(Decimal(p) for p in parts)  # type: ignore[return-value]
    except InvalidOperation:
        return tuple(Decimal(p) for p in default)  # type: ignore[return-value]


# Per-drum prices for 1 / 2-4 / 5+ drums
STANDARD_DRUM_TIERS = ("260", "240", "220")
LEGACY_DRUM_TIERS = ("280", "260", "240")


@dataclass
class PricingConfig:
    """Pricing policy defaults"""

    # ===========================================
    # Rate table
    # ===========================================
    policy_name: str = "default"
    pricing_track: str = "standard"
    drum_tracks: Dict[str, Tuple[Decimal, Decimal, Decimal]] = field(default_factory=lambda: {
        "standard": tuple(Decimal(p) for p in STANDARD_DRUM_TIERS),
        "legacy": tuple(Decimal(p) for p in LEGACY_DRUM_TIERS),
    })
    per_kg_rate: Decimal = Decimal("50.00")
    minimum_charge: Decimal = Decimal("95.00")
    door_to_door_fee: Decimal = Decimal("25.00")
    seal_fee: Decimal = Decimal("5.00")
    currency: str = "GBP"

    # ===========================================
    # Settlement rules
    # ===========================================
    # per_unit | flat | percentage
    cash_discount_kind: str = "per_unit"
    cash_discount_value: Decimal = Decimal("20.00")
    pay_on_arrival_premium_rate: Decimal = Decimal("0.20")
    payment_terms_days: int = 30
    mismatch_tolerance: Decimal = Decimal("0.01")
    custom_quote_allow_pay_on_arrival: bool = False

    @classmethod
    def from_env(cls) -> 'PricingConfig':
        """Load pricing defaults from environment variables"""
        return cls(
            policy_name=os.getenv("PRICING_POLICY_NAME", "default"),
            pricing_track=os.getenv("PRICING_TRACK", "standard"),
            drum_tracks={
                "standard": _tiers(os.getenv("DRUM_TIERS_STANDARD", ""), STANDARD_DRUM_TIERS),
                "legacy": _tiers(os.getenv("DRUM_TIERS_LEGACY", ""), LEGACY_DRUM_TIERS),
            },
            per_kg_rate=_decimal(os.getenv("PER_KG_RATE", ""), "50.00"),
            minimum_charge=_decimal(os.getenv("MINIMUM_CHARGE", ""), "95.00"),
            door_to_door_fee=_decimal(os.getenv("DOOR_TO_DOOR_FEE", ""), "25.00"),
            seal_fee=_decimal(os.getenv("SEAL_FEE", ""), "5.00"),
            currency=os.getenv("PRICING_CURRENCY", "GBP"),
            cash_discount_kind=os.getenv("CASH_DISCOUNT_KIND", "per_unit"),
            cash_discount_value=_decimal(os.getenv("CASH_DISCOUNT_VALUE", ""), "20.00"),
            pay_on_arrival_premium_rate=_decimal(os.getenv("PAY_ON_ARRIVAL_PREMIUM_RATE", ""), "0.20"),
            payment_terms_days=_int(os.getenv("PAYMENT_TERMS_DAYS", "30"), 30),
            mismatch_tolerance=_decimal(os.getenv("SETTLEMENT_MISMATCH_TOLERANCE", ""), "0.01"),
            custom_quote_allow_pay_on_arrival=_bool(os.getenv("CUSTOM_QUOTE_ALLOW_PAY_ON_ARRIVAL", "false")),
        )
