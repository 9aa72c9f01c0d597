"""
Booking Service Factory

Factory for creating BookingService with real dependencies.
This is the ONLY module that imports concrete implementations.
"""

import logging
from typing import Optional

from core.config import ShippingConfig, get_settings
from microservices.pricing_service.factory import create_pricing_service
from microservices.pricing_service.pricing_service import PricingService

from .booking_service import BookingService

logger = logging.getLogger(__name__)


def create_booking_service(
    config: Optional[ShippingConfig] = None,
    event_bus=None,
    repository=None,
    pricing_service: Optional[PricingService] = None,
) -> BookingService:
    """
    Create BookingService with real dependencies

    Args:
        config: Optional platform config (global settings if not provided)
        event_bus: Optional event bus instance
        repository: Optional booking repository override
        pricing_service: Optional pricing service override

    Returns:
        Fully initialized BookingService instance
    """
    config = config or get_settings()

    if repository is None:
        # Import real repository here (not at module level)
        from .booking_repository import BookingRepository

        repository = BookingRepository(config=config.infrastructure)

    if pricing_service is None:
        pricing_service = create_pricing_service(config=config)

    return BookingService(
        repository=repository,
        pricing_service=pricing_service,
        event_bus=event_bus,
        config=config,
    )


__all__ = ["create_booking_service"]
