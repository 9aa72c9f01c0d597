"""
Pricing Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import List, Optional, Protocol, runtime_checkable
from decimal import Decimal

from .models import RatePolicy


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class PricingServiceError(Exception):
    """Base exception for pricing service errors"""
    pass


class PricingValidationError(PricingServiceError):
    """Invalid quantity/weight, or a method that does not apply to the item"""
    pass


class PricingError(PricingServiceError):
    """No rate available for a classification that should have one"""
    pass


class SettlementMismatchError(PricingServiceError):
    """Recomputed total disagrees with the total shown to the customer"""

    def __init__(self, expected: Decimal, displayed: Decimal, tolerance: Decimal):
        self.expected = expected
        self.displayed = displayed
        self.tolerance = tolerance
        super().__init__(
            f"Displayed total {displayed} does not match current total {expected} "
            f"(tolerance {tolerance}); refresh the quote and try again"
        )


class RatePolicyNotFoundError(PricingServiceError):
    """Rate policy not found"""
    pass


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class RatePolicyRepositoryProtocol(Protocol):
    """
    Interface for the pricing-policy source.

    Replaces in-memory rate tables; administrators edit policies through it.
    """

    async def get_policy(self, name: str) -> Optional[RatePolicy]:
        """Get policy by name"""
        ...

    async def list_policies(self) -> List[RatePolicy]:
        """List all stored policies"""
        ...

    async def upsert_policy(self, policy: RatePolicy) -> RatePolicy:
        """Create or replace a policy"""
        ...

    async def delete_policy(self, name: str) -> bool:
        """Delete a policy, True if one was removed"""
        ...
