"""
Custom Quote Service Event Models

Pydantic models for events published by custom quote service
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone
from decimal import Decimal


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CustomQuoteSubmittedEvent(BaseModel):
    """Event published when a quote request is stored"""
    quote_id: str
    shipment_id: Optional[str] = None
    user_id: Optional[str] = None
    category: Optional[str] = None
    image_count: int = 0
    timestamp: datetime = Field(default_factory=_utcnow)


class CustomQuotePricedEvent(BaseModel):
    """Event published when an administrator prices a quote"""
    quote_id: str
    user_id: Optional[str] = None
    quoted_amount: Decimal
    timestamp: datetime = Field(default_factory=_utcnow)


class CustomQuoteAcceptedEvent(BaseModel):
    """Event published when the customer accepts a priced quote"""
    quote_id: str
    shipment_id: Optional[str] = None
    user_id: Optional[str] = None
    payment_method: str
    final_total: Decimal
    currency: str = "GBP"
    receipt_number: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
