"""
Booking Service Event Publishers

Functions to publish events from booking service
"""

import logging
from typing import List, Optional

from core.nats_client import Event, EventType, ServiceSource
from ..models import Payment, Receipt, Shipment
from microservices.pricing_service.models import PricingBreakdown, SettlementSelection
from .models import (
    BookingCompensatedEvent,
    BookingConfirmedEvent,
    BookingCreatedEvent,
    PaymentInitiatedEvent,
)

logger = logging.getLogger(__name__)


async def publish_booking_created(
    event_bus,
    shipment: Shipment,
    breakdown: PricingBreakdown,
) -> bool:
    """Publish booking.created event"""
    if not event_bus:
        logger.warning("Event bus not available, skipping booking.created event")
        return False

    try:
        event_data = BookingCreatedEvent(
            shipment_id=shipment.id,
            tracking_number=shipment.tracking_number,
            user_id=shipment.user_id,
            correlation_id=shipment.correlation_id,
            classification=breakdown.classification.value,
            total_before_settlement=breakdown.total_before_settlement,
            currency=breakdown.currency,
        )

        event = Event(
            event_type=EventType.BOOKING_CREATED,
            source=ServiceSource.BOOKING_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"✅ Published booking.created event for shipment {shipment.id}")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to publish booking.created event: {e}")
        return False


async def publish_booking_confirmed(
    event_bus,
    shipment: Shipment,
    selection: SettlementSelection,
    receipt: Receipt,
    payment: Optional[Payment] = None,
) -> bool:
    """Publish booking.confirmed event"""
    if not event_bus:
        logger.warning("Event bus not available, skipping booking.confirmed event")
        return False

    try:
        event_data = BookingConfirmedEvent(
            shipment_id=shipment.id,
            tracking_number=shipment.tracking_number,
            user_id=shipment.user_id,
            correlation_id=shipment.correlation_id,
            shipment_status=shipment.status.value,
            payment_method=selection.method.value,
            settlement_classification=selection.settlement_classification.value,
            adjustment=selection.adjustment.value,
            final_total=selection.final_total,
            currency=selection.currency,
            receipt_number=receipt.receipt_number,
            payment_id=payment.id if payment else None,
            payment_deadline=selection.payment_deadline,
        )

        event = Event(
            event_type=EventType.BOOKING_CONFIRMED,
            source=ServiceSource.BOOKING_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"✅ Published booking.confirmed event for shipment {shipment.id}")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to publish booking.confirmed event: {e}")
        return False


async def publish_payment_initiated(event_bus, payment: Payment) -> bool:
    """Publish payment.initiated event"""
    if not event_bus:
        logger.warning("Event bus not available, skipping payment.initiated event")
        return False

    try:
        event_data = PaymentInitiatedEvent(
            payment_id=payment.id,
            shipment_id=payment.shipment_id,
            user_id=payment.user_id,
            amount=payment.amount,
            currency=payment.currency,
            payment_method=payment.payment_method.value,
            transaction_id=payment.transaction_id,
        )

        event = Event(
            event_type=EventType.PAYMENT_INITIATED,
            source=ServiceSource.BOOKING_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"✅ Published payment.initiated event for payment {payment.id}")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to publish payment.initiated event: {e}")
        return False


async def publish_booking_compensated(
    event_bus,
    correlation_id: str,
    shipment_id: Optional[str],
    compensated_steps: List[str],
) -> bool:
    """Publish booking.compensated event"""
    if not event_bus:
        logger.warning("Event bus not available, skipping booking.compensated event")
        return False

    try:
        event_data = BookingCompensatedEvent(
            correlation_id=correlation_id,
            shipment_id=shipment_id,
            compensated_steps=compensated_steps,
        )

        event = Event(
            event_type=EventType.BOOKING_COMPENSATED,
            source=ServiceSource.BOOKING_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"✅ Published booking.compensated event for {correlation_id}")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to publish booking.compensated event: {e}")
        return False
