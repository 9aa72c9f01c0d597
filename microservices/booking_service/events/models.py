"""
Booking Service Event Models

Pydantic models for events published by booking service
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime, timezone
from decimal import Decimal


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingCreatedEvent(BaseModel):
    """Event published when a priced shipment is stored"""
    shipment_id: str
    tracking_number: str
    user_id: Optional[str] = None
    correlation_id: str
    classification: str
    total_before_settlement: Decimal
    currency: str = "GBP"
    timestamp: datetime = Field(default_factory=_utcnow)


class BookingConfirmedEvent(BaseModel):
    """Event published when a settlement choice is recorded"""
    shipment_id: str
    tracking_number: str
    user_id: Optional[str] = None
    correlation_id: str
    shipment_status: str
    payment_method: str
    settlement_classification: str
    adjustment: str
    final_total: Decimal
    currency: str = "GBP"
    receipt_number: str
    payment_id: Optional[str] = None
    payment_deadline: Optional[date] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class PaymentInitiatedEvent(BaseModel):
    """Event published when a pending payment is created"""
    payment_id: str
    shipment_id: str
    user_id: Optional[str] = None
    amount: Decimal
    currency: str = "GBP"
    payment_method: str
    transaction_id: str
    timestamp: datetime = Field(default_factory=_utcnow)


class BookingCompensatedEvent(BaseModel):
    """Event published after an operator undid a booking's steps"""
    correlation_id: str
    shipment_id: Optional[str] = None
    compensated_steps: List[str]
    timestamp: datetime = Field(default_factory=_utcnow)
