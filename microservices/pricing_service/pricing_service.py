"""
Pricing Service Business Logic

Quotes shipments from the rate table, previews settlement choices and manages
rate policies.
"""

import logging
from typing import Optional

from core.config import PricingConfig, get_settings
from .models import (
    PricingBreakdown, PricingRoute, QuoteResponse, RatePolicy,
    RatePolicyListResponse, RatePolicyResponse, RatePolicyUpsertRequest,
    SettlementPreviewRequest, SettlementPreviewResponse, ShipmentRequest,
)
from .protocols import (
    PricingError, PricingValidationError, RatePolicyNotFoundError,
    RatePolicyRepositoryProtocol, SettlementMismatchError,
)
from .rate_table import price_shipment, route_for
from .settlement import resolve_settlement, verify_displayed_total

logger = logging.getLogger(__name__)


class PricingService:
    """
    Pricing business logic

    The active policy is read from the repository on every call; environment
    defaults apply when no policy has been stored.
    """

    def __init__(
        self,
        repository: Optional[RatePolicyRepositoryProtocol] = None,
        config: Optional[PricingConfig] = None,
    ):
        self.repository = repository
        self.config = config or get_settings().pricing

    async def get_active_policy(self) -> RatePolicy:
        """Stored policy for the configured name, else the environment defaults"""
        if self.repository is not None:
            policy = await self.repository.get_policy(self.config.policy_name)
            if policy is not None:
                return policy
            logger.debug(f"No stored rate policy '{self.config.policy_name}', using defaults")
        return RatePolicy.from_config(self.config)

    async def price(self, request: ShipmentRequest) -> PricingBreakdown:
        """Rate table price; raises PricingValidationError / PricingError"""
        policy = await self.get_active_policy()
        return price_shipment(request, policy)

    async def quote(self, request: ShipmentRequest) -> QuoteResponse:
        """Price a shipment, or point it at the custom quote flow"""
        if route_for(request) == PricingRoute.CUSTOM_QUOTE:
            return QuoteResponse(
                success=True,
                route=PricingRoute.CUSTOM_QUOTE,
                message="This item has no standard rate; request a custom quote",
            )

        try:
            breakdown = await self.price(request)
            return QuoteResponse(
                success=True,
                breakdown=breakdown,
                message="Quote calculated",
            )
        except PricingValidationError as e:
            return QuoteResponse(success=False, message=str(e), error_code="VALIDATION_ERROR")
        except PricingError as e:
            logger.warning(f"Rate lookup failed, redirecting to custom quote: {e}")
            return QuoteResponse(
                success=False,
                route=PricingRoute.CUSTOM_QUOTE,
                message=str(e),
                error_code="PRICING_ERROR",
            )
        except Exception as e:
            logger.error(f"Failed to calculate quote: {e}")
            return QuoteResponse(
                success=False,
                message=f"Failed to calculate quote: {str(e)}",
                error_code="QUOTE_ERROR",
            )

    async def preview_settlement(self, request: SettlementPreviewRequest) -> SettlementPreviewResponse:
        """Resolve a settlement method against a fresh price, without persisting"""
        try:
            policy = await self.get_active_policy()
            breakdown = price_shipment(request.shipment, policy)
            selection = resolve_settlement(
                breakdown,
                request.method,
                request.sub_method,
                policy,
                collection_date=request.shipment.collection_date,
            )
            verify_displayed_total(selection, request.displayed_total, policy.mismatch_tolerance)

            return SettlementPreviewResponse(
                success=True,
                breakdown=breakdown,
                selection=selection,
                message="Settlement resolved",
            )
        except PricingValidationError as e:
            return SettlementPreviewResponse(success=False, message=str(e), error_code="VALIDATION_ERROR")
        except SettlementMismatchError as e:
            return SettlementPreviewResponse(success=False, message=str(e), error_code="SETTLEMENT_MISMATCH")
        except PricingError as e:
            return SettlementPreviewResponse(success=False, message=str(e), error_code="PRICING_ERROR")
        except Exception as e:
            logger.error(f"Failed to preview settlement: {e}")
            return SettlementPreviewResponse(
                success=False,
                message=f"Failed to preview settlement: {str(e)}",
                error_code="QUOTE_ERROR",
            )

    # Rate policy administration

    async def get_policy(self, name: str) -> RatePolicy:
        policy = await self._require_repository().get_policy(name)
        if policy is None:
            raise RatePolicyNotFoundError(f"Rate policy not found: {name}")
        return policy

    async def list_policies(self) -> RatePolicyListResponse:
        policies = await self._require_repository().list_policies()
        return RatePolicyListResponse(policies=policies, count=len(policies))

    async def upsert_policy(self, name: str, request: RatePolicyUpsertRequest) -> RatePolicyResponse:
        """Create or replace a rate policy"""
        try:
            policy = RatePolicy(name=name, currency=self.config.currency, **request.model_dump())
        except ValueError as e:
            return RatePolicyResponse(success=False, message=str(e), error_code="VALIDATION_ERROR")

        try:
            stored = await self._require_repository().upsert_policy(policy)
            logger.info(f"Rate policy {name} saved")
            return RatePolicyResponse(success=True, policy=stored, message="Rate policy saved")
        except Exception as e:
            logger.error(f"Failed to save rate policy {name}: {e}")
            return RatePolicyResponse(
                success=False,
                message=f"Failed to save rate policy: {str(e)}",
                error_code="PERSISTENCE_ERROR",
            )

    async def delete_policy(self, name: str) -> bool:
        deleted = await self._require_repository().delete_policy(name)
        if not deleted:
            raise RatePolicyNotFoundError(f"Rate policy not found: {name}")
        logger.info(f"Rate policy {name} deleted")
        return True

    def _require_repository(self) -> RatePolicyRepositoryProtocol:
        if self.repository is None:
            raise RatePolicyNotFoundError("No rate policy store configured")
        return self.repository
