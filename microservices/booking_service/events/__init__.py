"""
Booking Service Events Module

Exports all event-related functionality for booking service
"""

from .models import (
    BookingCreatedEvent,
    BookingConfirmedEvent,
    PaymentInitiatedEvent,
    BookingCompensatedEvent,
)

from .publishers import (
    publish_booking_created,
    publish_booking_confirmed,
    publish_payment_initiated,
    publish_booking_compensated,
)

__all__ = [
    # Event Models
    "BookingCreatedEvent",
    "BookingConfirmedEvent",
    "PaymentInitiatedEvent",
    "BookingCompensatedEvent",
    # Publishers
    "publish_booking_created",
    "publish_booking_confirmed",
    "publish_payment_initiated",
    "publish_booking_compensated",
]
