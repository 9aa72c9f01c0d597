"""
Booking Microservice API

Shipment booking: pricing, settlement choice, receipts and saga inspection.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Path, status

from core.auth_dependencies import optional_user_id, require_internal_service
from core.config import get_settings
from core.logger import setup_service_logger
from core.nats_client import get_event_bus
from core.postgres_client import close_postgres_clients
from microservices.pricing_service.models import ShipmentRequest

from .booking_service import BookingService
from .factory import create_booking_service
from .models import (
    BookingResponse, BookingStepListResponse, CompensationResult,
    ReceiptListResponse, SettlementChoiceRequest, SettlementResponse, Shipment,
)
from .protocols import BookingServiceError

settings = get_settings()
SERVICE_NAME = "booking_service"
SERVICE_PORT = settings.services.booking_service_port

logger = setup_service_logger(SERVICE_NAME)

booking_service: Optional[BookingService] = None
event_bus = None

SETTLEMENT_ERROR_STATUS = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "SETTLEMENT_MISMATCH": status.HTTP_409_CONFLICT,
    "DUPLICATE_REQUEST": status.HTTP_409_CONFLICT,
    "QUOTE_NOT_PRICED": status.HTTP_409_CONFLICT,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    global booking_service, event_bus

    if settings.infrastructure.nats_enabled:
        try:
            event_bus = await get_event_bus(SERVICE_NAME, settings.infrastructure)
            logger.info("✅ Event bus initialized successfully")
        except Exception as e:
            logger.warning(f"⚠️  Failed to initialize event bus: {e}. Continuing without events.")
            event_bus = None

    booking_service = create_booking_service(config=settings, event_bus=event_bus)
    logger.info(f"✅ {SERVICE_NAME} started on port {SERVICE_PORT}")

    yield

    if event_bus:
        try:
            await event_bus.close()
        except Exception as e:
            logger.error(f"Error closing event bus: {e}")
    await close_postgres_clients()
    logger.info(f"{SERVICE_NAME} shutdown completed")


app = FastAPI(
    title="Booking Service",
    description="Shipment booking workflow with settlement recording",
    version="1.0.0",
    lifespan=lifespan,
)


def get_booking_service() -> BookingService:
    """Get booking service instance"""
    if booking_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Booking service not initialized",
        )
    return booking_service


@app.get("/health")
async def health_check():
    """Service health check"""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "port": SERVICE_PORT,
        "version": "1.0.0",
        "event_bus": bool(event_bus and event_bus.is_connected),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/api/v1/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def start_booking(
    request: ShipmentRequest,
    user_id: Optional[str] = Depends(optional_user_id),
    service: BookingService = Depends(get_booking_service),
):
    """Price and store a shipment; unrated items are routed to custom quotes"""
    result = await service.start_booking(request, user_id=user_id)
    if not result.success:
        if result.error_code == "VALIDATION_ERROR":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
        if result.error_code in ("PERSISTENCE_ERROR", "BOOKING_ERROR"):
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.message)
    return result


@app.post("/api/v1/bookings/{shipment_id}/settlement", response_model=SettlementResponse)
async def choose_settlement(
    request: SettlementChoiceRequest,
    shipment_id: str = Path(..., description="Shipment ID"),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    user_id: Optional[str] = Depends(optional_user_id),
    service: BookingService = Depends(get_booking_service),
):
    """
    Record the settlement choice and confirm the booking.

    A PERSISTENCE_ERROR response is returned as-is so the caller can see
    the failed step and the correlation id to retry or compensate.
    """
    if idempotency_key and not request.idempotency_key:
        request = request.model_copy(update={"idempotency_key": idempotency_key})

    result = await service.choose_settlement(shipment_id, request, user_id=user_id)
    if not result.success and result.error_code in SETTLEMENT_ERROR_STATUS:
        raise HTTPException(status_code=SETTLEMENT_ERROR_STATUS[result.error_code], detail=result.message)
    return result


@app.get("/api/v1/bookings/{shipment_id}", response_model=Shipment)
async def get_booking(
    shipment_id: str = Path(..., description="Shipment ID"),
    service: BookingService = Depends(get_booking_service),
):
    """Get shipment by ID"""
    try:
        shipment = await service.get_booking(shipment_id)
    except BookingServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    if shipment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Shipment not found: {shipment_id}")
    return shipment


@app.get("/api/v1/bookings/{shipment_id}/receipts", response_model=ReceiptListResponse)
async def get_receipts(
    shipment_id: str = Path(..., description="Shipment ID"),
    service: BookingService = Depends(get_booking_service),
):
    """Receipts recorded for a shipment"""
    try:
        return await service.get_receipts(shipment_id)
    except BookingServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@app.get("/api/v1/bookings/saga/{correlation_id}", response_model=BookingStepListResponse)
async def list_booking_steps(
    correlation_id: str = Path(..., description="Booking correlation ID"),
    caller: str = Depends(require_internal_service),
    service: BookingService = Depends(get_booking_service),
):
    """Persistence steps logged for a booking (admin)"""
    try:
        return await service.list_booking_steps(correlation_id)
    except BookingServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@app.post("/api/v1/bookings/saga/{correlation_id}/compensate", response_model=CompensationResult)
async def compensate_booking(
    correlation_id: str = Path(..., description="Booking correlation ID"),
    caller: str = Depends(require_internal_service),
    service: BookingService = Depends(get_booking_service),
):
    """Undo the completed steps of a partially persisted booking (admin)"""
    result = await service.compensate_booking(correlation_id)
    if not result.success and result.error_code == "NOT_FOUND":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.message)
    return result


if __name__ == "__main__":
    uvicorn.run(
        "microservices.booking_service.main:app",
        host=settings.default_host,
        port=SERVICE_PORT,
        reload=settings.debug,
    )
