"""
FastAPI Identity Dependencies for the Shipping Services

The identity collaborator supplies the acting user id (or nothing, for
guest bookings) through request headers. Administrative hooks (custom quote
pricing, rate policy edits) are restricted to internal callers.
"""

from fastapi import Header, HTTPException, status, Request
from typing import Optional
import logging
import os

logger = logging.getLogger(__name__)

# Shared secret for internal/admin callers
INTERNAL_SERVICE_SECRET = os.getenv(
    "INTERNAL_SERVICE_SECRET",
    "dev-internal-secret-change-in-production"
)


async def optional_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    user_id: Optional[str] = Header(None, alias="user-id"),
) -> Optional[str]:
    """
    Acting user id, or None for an unauthenticated (guest) booking.

    使用示例：
        @app.post("/api/v1/bookings")
        async def start_booking(
            user_id: Optional[str] = Depends(optional_user_id)
        ):
            ...
    """
    return user_id or x_user_id or None


async def require_internal_service(
    request: Request,
    x_internal_service: Optional[str] = Header(None, alias="X-Internal-Service"),
    x_internal_service_secret: Optional[str] = Header(None, alias="X-Internal-Service-Secret"),
) -> str:
    """
    Admin dependency: only internal services may call the route.

    Raises:
        HTTPException 401: missing or invalid internal credentials
    """
    if x_internal_service == "true" and x_internal_service_secret:
        if x_internal_service_secret == INTERNAL_SERVICE_SECRET:
            logger.debug(f"Internal service request to {request.url.path}")
            return "internal-service"
        client_host = request.client.host if request.client else "unknown"
        logger.warning(f"Invalid internal service secret from {client_host}")

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Internal service authentication required"
    )


__all__ = [
    "INTERNAL_SERVICE_SECRET",
    "optional_user_id",
    "require_internal_service",
]
