"""
Custom Quote Service Events Module

Exports all event-related functionality for custom quote service
"""

from .models import (
    CustomQuoteSubmittedEvent,
    CustomQuotePricedEvent,
    CustomQuoteAcceptedEvent,
)

from .publishers import (
    publish_custom_quote_submitted,
    publish_custom_quote_priced,
    publish_custom_quote_accepted,
)

__all__ = [
    # Event Models
    "CustomQuoteSubmittedEvent",
    "CustomQuotePricedEvent",
    "CustomQuoteAcceptedEvent",
    # Publishers
    "publish_custom_quote_submitted",
    "publish_custom_quote_priced",
    "publish_custom_quote_accepted",
]
