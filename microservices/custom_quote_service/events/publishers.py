"""
Custom Quote Service Event Publishers

Functions to publish events from custom quote service
"""

import logging
from typing import Optional

from core.nats_client import Event, EventType, ServiceSource
from microservices.booking_service.models import Receipt
from microservices.pricing_service.models import SettlementSelection
from ..models import CustomQuote
from .models import (
    CustomQuoteAcceptedEvent,
    CustomQuotePricedEvent,
    CustomQuoteSubmittedEvent,
)

logger = logging.getLogger(__name__)


async def publish_custom_quote_submitted(event_bus, quote: CustomQuote) -> bool:
    """Publish custom_quote.submitted event"""
    if not event_bus:
        logger.warning("Event bus not available, skipping custom_quote.submitted event")
        return False

    try:
        event_data = CustomQuoteSubmittedEvent(
            quote_id=quote.id,
            shipment_id=quote.shipment_id,
            user_id=quote.user_id,
            category=quote.category,
            image_count=len(quote.image_urls),
        )

        event = Event(
            event_type=EventType.CUSTOM_QUOTE_SUBMITTED,
            source=ServiceSource.CUSTOM_QUOTE_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"✅ Published custom_quote.submitted event for quote {quote.id}")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to publish custom_quote.submitted event: {e}")
        return False


async def publish_custom_quote_priced(event_bus, quote: CustomQuote) -> bool:
    """Publish custom_quote.priced event"""
    if not event_bus:
        logger.warning("Event bus not available, skipping custom_quote.priced event")
        return False

    try:
        event_data = CustomQuotePricedEvent(
            quote_id=quote.id,
            user_id=quote.user_id,
            quoted_amount=quote.quoted_amount,
        )

        event = Event(
            event_type=EventType.CUSTOM_QUOTE_PRICED,
            source=ServiceSource.CUSTOM_QUOTE_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"✅ Published custom_quote.priced event for quote {quote.id}")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to publish custom_quote.priced event: {e}")
        return False


async def publish_custom_quote_accepted(
    event_bus,
    quote: CustomQuote,
    selection: SettlementSelection,
    receipt: Optional[Receipt] = None,
) -> bool:
    """Publish custom_quote.accepted event"""
    if not event_bus:
        logger.warning("Event bus not available, skipping custom_quote.accepted event")
        return False

    try:
        event_data = CustomQuoteAcceptedEvent(
            quote_id=quote.id,
            shipment_id=quote.shipment_id,
            user_id=quote.user_id,
            payment_method=selection.method.value,
            final_total=selection.final_total,
            currency=selection.currency,
            receipt_number=receipt.receipt_number if receipt else None,
        )

        event = Event(
            event_type=EventType.CUSTOM_QUOTE_ACCEPTED,
            source=ServiceSource.CUSTOM_QUOTE_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"✅ Published custom_quote.accepted event for quote {quote.id}")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to publish custom_quote.accepted event: {e}")
        return False
