#!/usr/bin/env python3
"""
Core Module for the Shipping Microservices

Shared infrastructure components used by every service.

COMPONENTS:
    - config/: Environment-driven configuration (infra, logging, pricing, services)
    - logger.py: Service logger setup
    - postgres_client.py: asyncpg-backed PostgreSQL client
    - nats_client.py: NATS event bus for event-driven architecture
    - auth_dependencies.py: FastAPI identity dependencies

USAGE:
    from core.config import get_settings
    from core.logger import setup_service_logger

    settings = get_settings()
    logger = setup_service_logger("booking_service")
"""

__version__ = "1.0.0"
