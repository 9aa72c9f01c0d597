"""
Booking Service Data Models

Persistent booking records (shipments, payments, receipts, notifications,
saga steps) and the request/response models of the booking API.
"""

from enum import Enum
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field

from microservices.pricing_service.models import (
    AddOn, ItemClassification, PricingBreakdown, PricingRoute,
    SettlementMethod, SettlementSelection, SubMethod,
)


# ====================
# Enumerations
# ====================

class ShipmentStatus(str, Enum):
    """Shipment status; settled values map one-to-one onto settlement classifications"""
    PENDING = "pending"
    PENDING_PAYMENT = "pending_payment"
    AWAITING_COLLECTION = "awaiting_collection"
    AWAITING_ARRIVAL = "awaiting_arrival"
    AWAITING_PAYMENT_TERMS = "awaiting_payment_terms"
    AWAITING_QUOTE = "awaiting_quote"
    PENDING_COLLECTION = "pending_collection"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class ReceiptStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class BookingState(str, Enum):
    """Booking workflow states"""
    FORM_CAPTURE = "form_capture"
    PRICING_COMPUTED = "pricing_computed"
    AWAITING_SETTLEMENT_CHOICE = "awaiting_settlement_choice"
    CUSTOM_QUOTE_BRANCH = "custom_quote_branch"
    SETTLEMENT_RECORDED = "settlement_recorded"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class BookingStepName(str, Enum):
    """Persistence steps recorded in the saga log"""
    CREATE_SHIPMENT = "create_shipment"
    CREATE_PAYMENT = "create_payment"
    CREATE_RECEIPT = "create_receipt"
    UPDATE_SHIPMENT_STATUS = "update_shipment_status"
    CREATE_NOTIFICATION = "create_notification"


class StepStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    COMPENSATED = "compensated"


class CompensatingAction(str, Enum):
    """How a completed step is undone"""
    DELETE_SHIPMENT = "delete_shipment"
    DELETE_PAYMENT = "delete_payment"
    DELETE_RECEIPT = "delete_receipt"
    RESTORE_SHIPMENT_STATUS = "restore_shipment_status"
    DELETE_NOTIFICATION = "delete_notification"


# ====================
# Persistent Records
# ====================

class ShipmentDetails(BaseModel):
    """What is being shipped, plus the pricing decisions taken for it"""
    services: List[AddOn] = Field(default_factory=list)
    item_category: Optional[str] = None
    item_description: Optional[str] = None
    classification: ItemClassification
    quantity: Optional[int] = None
    weight_kg: Optional[Decimal] = None
    collection_date: Optional[date] = None
    pricing: Optional[PricingBreakdown] = None
    settlement: Optional[SettlementSelection] = None
    custom_quote_id: Optional[str] = None


class Shipment(BaseModel):
    """Shipment record"""
    id: str
    user_id: Optional[str] = None
    tracking_number: str
    status: ShipmentStatus
    sender_details: Dict[str, Any]
    recipient_details: Dict[str, Any]
    shipment_details: ShipmentDetails
    correlation_id: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class Payment(BaseModel):
    """Payment record, created for immediate settlement only"""
    id: str
    shipment_id: str
    user_id: Optional[str] = None
    amount: Decimal
    currency: str = "GBP"
    payment_method: SettlementMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: str
    idempotency_key: Optional[str] = None
    created_at: datetime


class Receipt(BaseModel):
    """Durable order record, created for every settlement choice"""
    id: str
    shipment_id: str
    payment_id: Optional[str] = None
    receipt_number: str
    amount: Decimal
    currency: str = "GBP"
    payment_method: SettlementMethod
    sub_method: Optional[SubMethod] = None
    status: ReceiptStatus = ReceiptStatus.PENDING
    sender_details: Dict[str, Any]
    recipient_details: Dict[str, Any]
    shipment_details: Dict[str, Any]
    payment_deadline: Optional[date] = None
    idempotency_key: Optional[str] = None
    created_at: datetime


class Notification(BaseModel):
    """In-app notification"""
    id: str
    user_id: str
    title: str
    message: str
    type: str
    related_id: Optional[str] = None
    is_read: bool = False
    created_at: datetime


class BookingStep(BaseModel):
    """Saga log entry for one persistence step of a booking"""
    id: str
    correlation_id: str
    shipment_id: Optional[str] = None
    step: BookingStepName
    record_type: str
    record_id: Optional[str] = None
    status: StepStatus
    compensating_action: Optional[CompensatingAction] = None
    previous_value: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime


# ====================
# Request Models
# ====================

class SettlementChoiceRequest(BaseModel):
    """Customer's settlement choice for a priced shipment"""
    method: SettlementMethod
    sub_method: Optional[SubMethod] = None
    displayed_total: Optional[Decimal] = Field(None, description="Total shown to the customer")
    idempotency_key: Optional[str] = Field(None, max_length=128)


# ====================
# Response Models
# ====================

class BookingResponse(BaseModel):
    """Result of starting a booking"""
    success: bool
    state: BookingState
    route: PricingRoute = PricingRoute.RATE_TABLE
    shipment: Optional[Shipment] = None
    breakdown: Optional[PricingBreakdown] = None
    correlation_id: Optional[str] = None
    message: str
    error_code: Optional[str] = None


class SettlementResponse(BaseModel):
    """Result of recording a settlement choice"""
    success: bool
    state: BookingState
    shipment: Optional[Shipment] = None
    selection: Optional[SettlementSelection] = None
    payment: Optional[Payment] = None
    receipt: Optional[Receipt] = None
    notification: Optional[Notification] = None
    duplicate: bool = False
    correlation_id: Optional[str] = None
    failed_step: Optional[BookingStepName] = None
    completed_steps: List[BookingStepName] = Field(default_factory=list)
    message: str
    error_code: Optional[str] = None


class ReceiptListResponse(BaseModel):
    receipts: List[Receipt]
    count: int


class BookingStepListResponse(BaseModel):
    correlation_id: str
    steps: List[BookingStep]
    count: int


class CompensationResult(BaseModel):
    """Outcome of undoing a booking's completed steps"""
    success: bool
    correlation_id: str
    compensated: List[BookingStep] = Field(default_factory=list)
    skipped: List[BookingStep] = Field(default_factory=list)
    message: str
    error_code: Optional[str] = None
