"""
Pricing Service Data Models

Shipment descriptions, price breakdowns, settlement selections and rate policies.
The value chain is ShipmentRequest -> PricingBreakdown -> SettlementSelection;
the derived models are frozen once computed.
"""

from enum import Enum
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.config import PricingConfig


# ====================
# Enumerations
# ====================

class ItemClassification(str, Enum):
    """How an item is priced"""
    DRUM = "drum"
    WEIGHT_RATED = "weight_rated"
    CUSTOM = "custom"


class AddOn(str, Enum):
    """Optional services"""
    DOOR_TO_DOOR = "door_to_door"
    METAL_SEAL = "metal_seal"


class PricingRoute(str, Enum):
    """Where a shipment request goes for pricing"""
    RATE_TABLE = "rate_table"
    CUSTOM_QUOTE = "custom_quote"


class SettlementMethod(str, Enum):
    """How and when the customer pays"""
    CARD = "card"
    CASH_ON_COLLECTION = "cash_on_collection"
    PAY_ON_ARRIVAL = "pay_on_arrival"
    STANDARD_30_DAY = "standard_30_day"
    BANK_TRANSFER = "bank_transfer"


class SubMethod(str, Enum):
    """Payment instrument recorded for 30-day terms"""
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    DIRECT_DEBIT = "direct_debit"


class Adjustment(str, Enum):
    """The single price adjustment a settlement choice applies"""
    DISCOUNT = "discount"
    PREMIUM = "premium"
    NONE = "none"


class SettlementClassification(str, Enum):
    """Whether a payment is taken now, and which shipment status results"""
    IMMEDIATE = "immediate"
    DEFERRED_COLLECTION = "deferred_collection"
    DEFERRED_ARRIVAL = "deferred_arrival"
    DEFERRED_30_DAY = "deferred_30_day"


class CashDiscountKind(str, Enum):
    """Shape of the cash-on-collection discount"""
    PER_UNIT = "per_unit"
    FLAT = "flat"
    PERCENTAGE = "percentage"


# ====================
# Shipment Input
# ====================

class ContactDetails(BaseModel):
    """Sender or recipient snapshot"""
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postcode: Optional[str] = None
    country: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ShipmentRequest(BaseModel):
    """Validated shipment description handed over by the booking form"""
    classification: ItemClassification
    quantity: Optional[int] = Field(None, description="Number of drums")
    weight_kg: Optional[Decimal] = Field(None, description="Weight of a weight-rated item")
    addons: List[AddOn] = Field(default_factory=list)
    sender: ContactDetails
    recipient: ContactDetails
    collection_date: Optional[date] = None
    item_category: Optional[str] = None
    item_description: Optional[str] = None

    @field_validator('addons')
    @classmethod
    def dedupe_addons(cls, v):
        # An add-on selected twice is still one add-on
        return list(dict.fromkeys(v))


# ====================
# Derived Values
# ====================

class AddonCharge(BaseModel):
    """One add-on line of a breakdown"""
    model_config = ConfigDict(frozen=True)

    addon: AddOn
    description: str
    amount: Decimal


class PricingBreakdown(BaseModel):
    """Rate table output"""
    model_config = ConfigDict(frozen=True)

    classification: ItemClassification
    quantity: Optional[int] = None
    weight_kg: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    base: Decimal
    addon_charges: List[AddonCharge] = Field(default_factory=list)
    total_before_settlement: Decimal
    currency: str = "GBP"
    pricing_track: Optional[str] = None


class SettlementSelection(BaseModel):
    """Settlement resolver output"""
    model_config = ConfigDict(frozen=True)

    method: SettlementMethod
    sub_method: Optional[SubMethod] = None
    adjustment: Adjustment
    adjustment_amount: Decimal = Decimal("0.00")
    total_before_settlement: Decimal
    final_total: Decimal
    settlement_classification: SettlementClassification
    payment_deadline: Optional[date] = None
    currency: str = "GBP"

    @property
    def creates_payment(self) -> bool:
        return self.settlement_classification == SettlementClassification.IMMEDIATE


# ====================
# Rate Policy
# ====================

class CashDiscountPolicy(BaseModel):
    """Single source of the cash-on-collection discount rule"""
    kind: CashDiscountKind = CashDiscountKind.PER_UNIT
    value: Decimal = Field(default=Decimal("20.00"), ge=0)


class RatePolicy(BaseModel):
    """Administrator-maintained pricing constants"""
    name: str = "default"
    pricing_track: str = "standard"
    drum_tiers: List[Decimal] = Field(
        default_factory=lambda: [Decimal("260"), Decimal("240"), Decimal("220")],
        description="Per-drum price for 1 / 2-4 / 5+ drums",
    )
    per_kg_rate: Optional[Decimal] = Decimal("50.00")
    minimum_charge: Decimal = Decimal("95.00")
    door_to_door_fee: Decimal = Decimal("25.00")
    seal_fee: Decimal = Decimal("5.00")
    currency: str = "GBP"
    cash_discount: CashDiscountPolicy = Field(default_factory=CashDiscountPolicy)
    pay_on_arrival_premium_rate: Decimal = Field(default=Decimal("0.20"), ge=0)
    payment_terms_days: int = Field(default=30, gt=0)
    mismatch_tolerance: Decimal = Field(default=Decimal("0.01"), ge=0)
    custom_quote_allow_pay_on_arrival: bool = False
    updated_at: Optional[datetime] = None

    @field_validator('drum_tiers')
    @classmethod
    def validate_tiers(cls, v):
        if v and len(v) != 3:
            raise ValueError('drum_tiers must list exactly three prices (1, 2-4, 5+)')
        if any(price <= 0 for price in v):
            raise ValueError('drum tier prices must be positive')
        if v and not (v[0] >= v[1] >= v[2]):
            raise ValueError('drum tier prices must not increase with quantity')
        return v

    @classmethod
    def from_config(cls, config: PricingConfig) -> "RatePolicy":
        """Policy built from environment defaults"""
        tiers = config.drum_tracks.get(config.pricing_track) or config.drum_tracks["standard"]
        return cls(
            name=config.policy_name,
            pricing_track=config.pricing_track,
            drum_tiers=list(tiers),
            per_kg_rate=config.per_kg_rate,
            minimum_charge=config.minimum_charge,
            door_to_door_fee=config.door_to_door_fee,
            seal_fee=config.seal_fee,
            currency=config.currency,
            cash_discount=CashDiscountPolicy(
                kind=CashDiscountKind(config.cash_discount_kind),
                value=config.cash_discount_value,
            ),
            pay_on_arrival_premium_rate=config.pay_on_arrival_premium_rate,
            payment_terms_days=config.payment_terms_days,
            mismatch_tolerance=config.mismatch_tolerance,
            custom_quote_allow_pay_on_arrival=config.custom_quote_allow_pay_on_arrival,
        )


# ====================
# Request Models
# ====================

class SettlementPreviewRequest(BaseModel):
    """Price a shipment and resolve a settlement method without persisting"""
    shipment: ShipmentRequest
    method: SettlementMethod
    sub_method: Optional[SubMethod] = None
    displayed_total: Optional[Decimal] = Field(None, description="Total previously shown to the customer")


class RatePolicyUpsertRequest(BaseModel):
    """Create or replace a rate policy (name comes from the path)"""
    pricing_track: str = "standard"
    drum_tiers: List[Decimal]
    per_kg_rate: Optional[Decimal] = None
    minimum_charge: Decimal = Field(..., ge=0)
    door_to_door_fee: Decimal = Field(..., ge=0)
    seal_fee: Decimal = Field(..., ge=0)
    cash_discount: CashDiscountPolicy = Field(default_factory=CashDiscountPolicy)
    pay_on_arrival_premium_rate: Decimal = Field(default=Decimal("0.20"), ge=0)
    payment_terms_days: int = Field(default=30, gt=0)
    mismatch_tolerance: Decimal = Field(default=Decimal("0.01"), ge=0)
    custom_quote_allow_pay_on_arrival: bool = False


# ====================
# Response Models
# ====================

class QuoteResponse(BaseModel):
    """Rate table response"""
    success: bool
    route: PricingRoute = PricingRoute.RATE_TABLE
    breakdown: Optional[PricingBreakdown] = None
    message: str
    error_code: Optional[str] = None


class SettlementPreviewResponse(BaseModel):
    """Settlement preview response"""
    success: bool
    breakdown: Optional[PricingBreakdown] = None
    selection: Optional[SettlementSelection] = None
    message: str
    error_code: Optional[str] = None


class RatePolicyResponse(BaseModel):
    """Rate policy response"""
    success: bool
    policy: Optional[RatePolicy] = None
    message: str
    error_code: Optional[str] = None


class RatePolicyListResponse(BaseModel):
    """Rate policy list"""
    policies: List[RatePolicy]
    count: int
