"""
Component Test Layer Configuration

Services are wired with in-memory repositories and a recording event bus.

Structure:
    tests/component/
    ├── pricing/       PricingService
    ├── booking/       BookingService (state machine, saga, idempotency)
    ├── custom_quote/  CustomQuoteService
    └── mocks/         Mock implementations

Usage:
    pytest tests/component -v
"""
import os
import sys

import pytest

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from core.config import PricingConfig, ShippingConfig
from microservices.booking_service.booking_service import BookingService
from microservices.custom_quote_service.custom_quote_service import CustomQuoteService
from microservices.pricing_service.pricing_service import PricingService
from tests.component.mocks import (
    MockBookingRepository,
    MockCustomQuoteRepository,
    MockEventBus,
    MockRatePolicyRepository,
    MockStorageClient,
)


@pytest.fixture
def shipping_config() -> ShippingConfig:
    """Default platform config, independent of the environment"""
    return ShippingConfig()


@pytest.fixture
def event_bus() -> MockEventBus:
    return MockEventBus()


@pytest.fixture
def policy_repository() -> MockRatePolicyRepository:
    """Empty policy store; pricing falls back to the defaults"""
    return MockRatePolicyRepository()


@pytest.fixture
def pricing_service(policy_repository) -> PricingService:
    return PricingService(repository=policy_repository, config=PricingConfig())


@pytest.fixture
def booking_repository() -> MockBookingRepository:
    return MockBookingRepository()


@pytest.fixture
def booking_service(booking_repository, pricing_service, event_bus, shipping_config) -> BookingService:
    return BookingService(
        repository=booking_repository,
        pricing_service=pricing_service,
        event_bus=event_bus,
        config=shipping_config,
    )


@pytest.fixture
def quote_repository() -> MockCustomQuoteRepository:
    return MockCustomQuoteRepository()


@pytest.fixture
def storage_client() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture
def custom_quote_service(quote_repository, booking_service, storage_client, event_bus) -> CustomQuoteService:
    return CustomQuoteService(
        repository=quote_repository,
        booking_service=booking_service,
        storage_client=storage_client,
        event_bus=event_bus,
    )
