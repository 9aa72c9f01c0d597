"""
Pricing Microservice API

Rate table quotes, settlement previews and rate policy administration.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Path, status

from core.auth_dependencies import require_internal_service
from core.config import get_settings
from core.logger import setup_service_logger
from core.postgres_client import close_postgres_clients

from .factory import create_pricing_service
from .models import (
    QuoteResponse, RatePolicy, RatePolicyListResponse, RatePolicyResponse,
    RatePolicyUpsertRequest, SettlementPreviewRequest,
    SettlementPreviewResponse, ShipmentRequest,
)
from .pricing_service import PricingService
from .protocols import RatePolicyNotFoundError

settings = get_settings()
SERVICE_NAME = "pricing_service"
SERVICE_PORT = settings.services.pricing_service_port

logger = setup_service_logger(SERVICE_NAME)

pricing_service: Optional[PricingService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    global pricing_service

    pricing_service = create_pricing_service(config=settings)
    logger.info(f"✅ {SERVICE_NAME} started on port {SERVICE_PORT}")

    yield

    await close_postgres_clients()
    logger.info(f"{SERVICE_NAME} shutdown completed")


app = FastAPI(
    title="Pricing Service",
    description="Shipment rate table and settlement method resolver",
    version="1.0.0",
    lifespan=lifespan,
)


def get_pricing_service() -> PricingService:
    """Get pricing service instance"""
    if pricing_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pricing service not initialized",
        )
    return pricing_service


@app.get("/health")
async def health_check():
    """Service health check"""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "port": SERVICE_PORT,
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/api/v1/pricing/quote", response_model=QuoteResponse)
async def quote_shipment(
    request: ShipmentRequest,
    service: PricingService = Depends(get_pricing_service),
):
    """Price a shipment from the rate table"""
    result = await service.quote(request)
    if not result.success and result.error_code == "VALIDATION_ERROR":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
    return result


@app.post("/api/v1/pricing/settlement/preview", response_model=SettlementPreviewResponse)
async def preview_settlement(
    request: SettlementPreviewRequest,
    service: PricingService = Depends(get_pricing_service),
):
    """Resolve a settlement method against the current price"""
    result = await service.preview_settlement(request)
    if not result.success:
        if result.error_code == "VALIDATION_ERROR":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
        if result.error_code == "SETTLEMENT_MISMATCH":
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.message)
    return result


@app.get("/api/v1/pricing/policies", response_model=RatePolicyListResponse)
async def list_policies(service: PricingService = Depends(get_pricing_service)):
    """List stored rate policies"""
    return await service.list_policies()


@app.get("/api/v1/pricing/policies/active", response_model=RatePolicy)
async def get_active_policy(service: PricingService = Depends(get_pricing_service)):
    """Policy currently used for pricing"""
    return await service.get_active_policy()


@app.get("/api/v1/pricing/policies/{name}", response_model=RatePolicy)
async def get_policy(
    name: str = Path(..., description="Policy name"),
    service: PricingService = Depends(get_pricing_service),
):
    """Get a stored rate policy"""
    try:
        return await service.get_policy(name)
    except RatePolicyNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@app.put("/api/v1/pricing/policies/{name}", response_model=RatePolicyResponse)
async def upsert_policy(
    request: RatePolicyUpsertRequest,
    name: str = Path(..., description="Policy name"),
    caller: str = Depends(require_internal_service),
    service: PricingService = Depends(get_pricing_service),
):
    """Create or replace a rate policy (admin)"""
    result = await service.upsert_policy(name, request)
    if not result.success and result.error_code == "VALIDATION_ERROR":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
    return result


@app.delete("/api/v1/pricing/policies/{name}")
async def delete_policy(
    name: str = Path(..., description="Policy name"),
    caller: str = Depends(require_internal_service),
    service: PricingService = Depends(get_pricing_service),
):
    """Delete a rate policy (admin)"""
    try:
        await service.delete_policy(name)
        return {"success": True, "message": f"Rate policy {name} deleted"}
    except RatePolicyNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


if __name__ == "__main__":
    uvicorn.run(
        "microservices.pricing_service.main:app",
        host=settings.default_host,
        port=SERVICE_PORT,
        reload=settings.debug,
    )
