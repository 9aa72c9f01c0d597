"""
Custom Quote Service Data Models

Quote records and the request/response models of the custom quote API.
"""

from enum import Enum
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator

from microservices.booking_service.models import (
    Notification, Payment, Receipt, Shipment,
)
from microservices.pricing_service.models import (
    AddOn, ContactDetails, SettlementMethod, SettlementSelection, SubMethod,
)


class CustomQuoteStatus(str, Enum):
    """Quote lifecycle: pending -> quoted -> accepted"""
    PENDING = "pending"
    QUOTED = "quoted"
    ACCEPTED = "accepted"


class CustomQuote(BaseModel):
    """Custom quote record"""
    id: str
    user_id: Optional[str] = None
    shipment_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    description: str
    category: Optional[str] = None
    image_urls: List[str] = Field(default_factory=list)
    sender_details: Dict[str, Any] = Field(default_factory=dict)
    recipient_details: Optional[Dict[str, Any]] = None
    status: CustomQuoteStatus = CustomQuoteStatus.PENDING
    quoted_amount: Optional[Decimal] = None
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


# ====================
# Request Models
# ====================

class CustomQuoteSubmitRequest(BaseModel):
    """Quote request for an item without a standard rate"""
    description: str = Field(..., min_length=1, max_length=2000)
    category: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    sender: ContactDetails
    recipient: Optional[ContactDetails] = None
    addons: List[AddOn] = Field(default_factory=list)
    collection_date: Optional[date] = None
    image_urls: List[str] = Field(default_factory=list, description="Images already hosted elsewhere")

    @field_validator('description')
    @classmethod
    def strip_description(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("description must not be blank")
        return v


class QuotePriceRequest(BaseModel):
    """Administrator pricing of a quote"""
    quoted_amount: Decimal = Field(..., gt=0)
    admin_notes: Optional[str] = None


class QuoteAcceptRequest(BaseModel):
    """Customer acceptance of a priced quote"""
    method: SettlementMethod
    sub_method: Optional[SubMethod] = None
    displayed_total: Optional[Decimal] = None
    idempotency_key: Optional[str] = Field(None, max_length=128)


class ImageUpload(BaseModel):
    """Binary image handed over by the HTTP layer"""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


# ====================
# Response Models
# ====================

class CustomQuoteResponse(BaseModel):
    """Result of a quote operation"""
    success: bool
    quote: Optional[CustomQuote] = None
    shipment: Optional[Shipment] = None
    message: str
    error_code: Optional[str] = None


class QuoteAcceptResponse(BaseModel):
    """Result of accepting a quote"""
    success: bool
    quote: Optional[CustomQuote] = None
    shipment: Optional[Shipment] = None
    selection: Optional[SettlementSelection] = None
    payment: Optional[Payment] = None
    receipt: Optional[Receipt] = None
    notification: Optional[Notification] = None
    duplicate: bool = False
    correlation_id: Optional[str] = None
    message: str
    error_code: Optional[str] = None


class CustomQuoteListResponse(BaseModel):
    quotes: List[CustomQuote]
    count: int
