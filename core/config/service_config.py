#!/usr/bin/env python3
"""Service configuration for peer services

Ports of the shipping microservices and endpoints of the external
collaborators they call (file storage).
"""
import os
from dataclasses import dataclass

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class ServiceConfig:
    """Service ports and collaborator endpoints"""

    # ===========================================
    # Shipping microservices
    # ===========================================
    pricing_service_port: int = 8301
    booking_service_port: int = 8302
    custom_quote_service_port: int = 8303

    # ===========================================
    # External collaborators
    # ===========================================
    # File storage - accepts binary uploads, returns public URLs
    storage_service_url: str = "http://localhost:8209"
    storage_bucket: str = "custom-quote-images"
    storage_timeout: float = 10.0

    @classmethod
    def from_env(cls) -> 'ServiceConfig':
        """Load service configuration from environment variables"""
        return cls(
            pricing_service_port=_int(os.getenv("PRICING_SERVICE_PORT", "8301"), 8301),
            booking_service_port=_int(os.getenv("BOOKING_SERVICE_PORT", "8302"), 8302),
            custom_quote_service_port=_int(os.getenv("CUSTOM_QUOTE_SERVICE_PORT", "8303"), 8303),
            storage_service_url=os.getenv("STORAGE_SERVICE_URL", "http://localhost:8209"),
            storage_bucket=os.getenv("STORAGE_BUCKET", "custom-quote-images"),
            storage_timeout=float(os.getenv("STORAGE_TIMEOUT", "10") or 10),
        )
