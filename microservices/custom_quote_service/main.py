"""
Custom Quote Microservice API

Quote requests for unrated items, administrator pricing and acceptance.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Path, Query, UploadFile, status
from pydantic import ValidationError

from core.auth_dependencies import optional_user_id, require_internal_service
from core.config import get_settings
from core.logger import setup_service_logger
from core.nats_client import get_event_bus
from core.postgres_client import close_postgres_clients

from .custom_quote_service import CustomQuoteService
from .factory import create_custom_quote_service
from .models import (
    CustomQuote, CustomQuoteListResponse, CustomQuoteResponse,
    CustomQuoteStatus, CustomQuoteSubmitRequest, ImageUpload,
    QuoteAcceptRequest, QuoteAcceptResponse, QuotePriceRequest,
)
from .protocols import CustomQuoteServiceError

settings = get_settings()
SERVICE_NAME = "custom_quote_service"
SERVICE_PORT = settings.services.custom_quote_service_port

logger = setup_service_logger(SERVICE_NAME)

custom_quote_service: Optional[CustomQuoteService] = None
event_bus = None

ERROR_STATUS = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "QUOTE_NOT_PRICED": status.HTTP_409_CONFLICT,
    "SETTLEMENT_MISMATCH": status.HTTP_409_CONFLICT,
    "DUPLICATE_REQUEST": status.HTTP_409_CONFLICT,
    "UPLOAD_ERROR": status.HTTP_502_BAD_GATEWAY,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    global custom_quote_service, event_bus

    if settings.infrastructure.nats_enabled:
        try:
            event_bus = await get_event_bus(SERVICE_NAME, settings.infrastructure)
            logger.info("✅ Event bus initialized successfully")
        except Exception as e:
            logger.warning(f"⚠️  Failed to initialize event bus: {e}. Continuing without events.")
            event_bus = None

    custom_quote_service = create_custom_quote_service(config=settings, event_bus=event_bus)
    logger.info(f"✅ {SERVICE_NAME} started on port {SERVICE_PORT}")

    yield

    if custom_quote_service and custom_quote_service.storage_client:
        try:
            await custom_quote_service.storage_client.close()
        except Exception as e:
            logger.error(f"Error closing storage client: {e}")
    if event_bus:
        try:
            await event_bus.close()
        except Exception as e:
            logger.error(f"Error closing event bus: {e}")
    await close_postgres_clients()
    logger.info(f"{SERVICE_NAME} shutdown completed")


app = FastAPI(
    title="Custom Quote Service",
    description="Deferred pricing for items without a standard rate",
    version="1.0.0",
    lifespan=lifespan,
)


def get_custom_quote_service() -> CustomQuoteService:
    """Get custom quote service instance"""
    if custom_quote_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Custom quote service not initialized",
        )
    return custom_quote_service


def _raise_for_error(error_code: Optional[str], message: str) -> None:
    if error_code in ERROR_STATUS:
        raise HTTPException(status_code=ERROR_STATUS[error_code], detail=message)
    if error_code:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


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


@app.post("/api/v1/custom-quotes", response_model=CustomQuoteResponse, status_code=status.HTTP_201_CREATED)
async def submit_quote(
    payload: str = Form(..., description="CustomQuoteSubmitRequest as JSON"),
    images: List[UploadFile] = File(default=[]),
    user_id: Optional[str] = Depends(optional_user_id),
    service: CustomQuoteService = Depends(get_custom_quote_service),
):
    """
    Submit a custom quote request

    - **payload**: JSON quote request (description, sender, category, ...)
    - **images**: optional reference images
    """
    try:
        request = CustomQuoteSubmitRequest.model_validate_json(payload)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    uploads = [
        ImageUpload(
            filename=image.filename or "image",
            content=await image.read(),
            content_type=image.content_type or "application/octet-stream",
        )
        for image in images
    ]

    result = await service.submit_quote(request, user_id=user_id, images=uploads)
    if not result.success:
        _raise_for_error(result.error_code, result.message)
    return result


@app.get("/api/v1/custom-quotes", response_model=CustomQuoteListResponse)
async def list_quotes(
    status_filter: Optional[CustomQuoteStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_id: Optional[str] = Depends(optional_user_id),
    service: CustomQuoteService = Depends(get_custom_quote_service),
):
    """List the caller's custom quotes"""
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User id required")
    try:
        return await service.list_user_quotes(user_id, status=status_filter, limit=limit, offset=offset)
    except CustomQuoteServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@app.get("/api/v1/custom-quotes/{quote_id}", response_model=CustomQuote)
async def get_quote(
    quote_id: str = Path(..., description="Quote ID"),
    service: CustomQuoteService = Depends(get_custom_quote_service),
):
    """Get custom quote by ID"""
    try:
        quote = await service.get_quote(quote_id)
    except CustomQuoteServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    if quote is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Custom quote not found: {quote_id}")
    return quote


@app.post("/api/v1/custom-quotes/{quote_id}/price", response_model=CustomQuoteResponse)
async def price_quote(
    request: QuotePriceRequest,
    quote_id: str = Path(..., description="Quote ID"),
    caller: str = Depends(require_internal_service),
    service: CustomQuoteService = Depends(get_custom_quote_service),
):
    """Set the quoted amount (admin)"""
    result = await service.set_quoted_amount(quote_id, request.quoted_amount, request.admin_notes)
    if not result.success:
        _raise_for_error(result.error_code, result.message)
    return result


@app.post("/api/v1/custom-quotes/{quote_id}/accept", response_model=QuoteAcceptResponse)
async def accept_quote(
    request: QuoteAcceptRequest,
    quote_id: str = Path(..., description="Quote ID"),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    user_id: Optional[str] = Depends(optional_user_id),
    service: CustomQuoteService = Depends(get_custom_quote_service),
):
    """
    Accept a priced quote and record the settlement.

    A PERSISTENCE_ERROR response is returned as-is; retry with the same
    idempotency key.
    """
    if idempotency_key and not request.idempotency_key:
        request = request.model_copy(update={"idempotency_key": idempotency_key})

    result = await service.accept_quote(quote_id, request, user_id=user_id)
    if not result.success and result.error_code in ERROR_STATUS:
        raise HTTPException(status_code=ERROR_STATUS[result.error_code], detail=result.message)
    return result


if __name__ == "__main__":
    uvicorn.run(
        "microservices.custom_quote_service.main:app",
        host=settings.default_host,
        port=SERVICE_PORT,
        reload=settings.debug,
    )
