"""
Custom Quote Service Factory

Factory for creating CustomQuoteService with real dependencies.
This is the ONLY module that imports concrete implementations.
"""

import logging
from typing import Optional

from core.config import ShippingConfig, get_settings
from microservices.booking_service.booking_service import BookingService
from microservices.booking_service.factory import create_booking_service

from .custom_quote_service import CustomQuoteService

logger = logging.getLogger(__name__)


def create_custom_quote_service(
    config: Optional[ShippingConfig] = None,
    event_bus=None,
    repository=None,
    booking_service: Optional[BookingService] = None,
    storage_client=None,
) -> CustomQuoteService:
    """
    Create CustomQuoteService with real dependencies

    Args:
        config: Optional platform config (global settings if not provided)
        event_bus: Optional event bus instance
        repository: Optional quote repository override
        booking_service: Optional booking service override
        storage_client: Optional file storage client override

    Returns:
        Fully initialized CustomQuoteService instance
    """
    config = config or get_settings()

    if repository is None:
        # Import real repository here (not at module level)
        from .custom_quote_repository import CustomQuoteRepository

        repository = CustomQuoteRepository(config=config.infrastructure)

    if storage_client is None:
        from .clients.storage_client import StorageClient

        storage_client = StorageClient(config=config.services)

    if booking_service is None:
        booking_service = create_booking_service(config=config, event_bus=event_bus)

    return CustomQuoteService(
        repository=repository,
        booking_service=booking_service,
        storage_client=storage_client,
        event_bus=event_bus,
    )


__all__ = ["create_custom_quote_service"]
