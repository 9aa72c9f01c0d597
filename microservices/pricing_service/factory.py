"""
Pricing Service Factory

Factory for creating PricingService with real dependencies.
This is the ONLY module that imports concrete implementations.
"""

import logging
from typing import Optional

from core.config import ShippingConfig, get_settings

from .pricing_service import PricingService

logger = logging.getLogger(__name__)


def create_pricing_service(
    config: Optional[ShippingConfig] = None,
    repository=None,
) -> PricingService:
    """
    Create PricingService with the Postgres-backed policy store

    Args:
        config: Optional platform config (global settings if not provided)
        repository: Optional policy repository override

    Returns:
        Fully initialized PricingService instance
    """
    config = config or get_settings()

    if repository is None:
        # Import real repository here (not at module level)
        from .rate_policy_repository import RatePolicyRepository

        repository = RatePolicyRepository(config=config.infrastructure)

    return PricingService(repository=repository, config=config.pricing)


__all__ = ["create_pricing_service"]
