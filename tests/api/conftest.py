"""
API Test Layer Configuration

HTTP contract tests against the FastAPI apps, served in-process through
httpx's ASGI transport. Service dependencies are overridden with
services wired to the in-memory repositories from tests/component/mocks.

Usage:
    pytest tests/api -v                    # Run all API tests
    pytest tests/api -v -k "booking"       # Run booking API tests
    pytest tests/api -v --tb=short         # Short traceback
"""

import os
import sys
from typing import AsyncGenerator, Dict

import httpx
import pytest
import pytest_asyncio

# Add project root
sys.path.insert(
    0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)

from core.auth_dependencies import INTERNAL_SERVICE_SECRET
from core.config import PricingConfig, ShippingConfig
from microservices.booking_service import main as booking_main
from microservices.booking_service.booking_service import BookingService
from microservices.custom_quote_service import main as custom_quote_main
from microservices.custom_quote_service.custom_quote_service import CustomQuoteService
from microservices.pricing_service import main as pricing_main
from microservices.pricing_service.pricing_service import PricingService
from tests.component.mocks import (
    MockBookingRepository,
    MockCustomQuoteRepository,
    MockEventBus,
    MockRatePolicyRepository,
    MockStorageClient,
)


# =============================================================================
# Configuration
# =============================================================================


class APITestConfig:
    """API test configuration"""

    BASE_URL = "http://testserver"

    ADMIN_HEADERS: Dict[str, str] = {
        "X-Internal-Service": "true",
        "X-Internal-Service-Secret": INTERNAL_SERVICE_SECRET,
    }

    HTTP_TIMEOUT = 30.0

    @staticmethod
    def user_headers(user_id: str) -> Dict[str, str]:
        return {"X-User-Id": user_id}


# =============================================================================
# Wired services
# =============================================================================


@pytest.fixture
def event_bus() -> MockEventBus:
    return MockEventBus()


@pytest.fixture
def policy_repository() -> MockRatePolicyRepository:
    return MockRatePolicyRepository()


@pytest.fixture
def booking_repository() -> MockBookingRepository:
    return MockBookingRepository()


@pytest.fixture
def quote_repository() -> MockCustomQuoteRepository:
    return MockCustomQuoteRepository()


@pytest.fixture
def storage_client() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture
def pricing_service(policy_repository) -> PricingService:
    return PricingService(repository=policy_repository, config=PricingConfig())


@pytest.fixture
def booking_service(booking_repository, pricing_service, event_bus) -> BookingService:
    return BookingService(
        repository=booking_repository,
        pricing_service=pricing_service,
        event_bus=event_bus,
        config=ShippingConfig(),
    )


@pytest.fixture
def custom_quote_service(quote_repository, booking_service, storage_client, event_bus) -> CustomQuoteService:
    return CustomQuoteService(
        repository=quote_repository,
        booking_service=booking_service,
        storage_client=storage_client,
        event_bus=event_bus,
    )


# =============================================================================
# HTTP Client Fixtures
# =============================================================================


class APIClient:
    """Base API client for service testing"""

    def __init__(self, http_client: httpx.AsyncClient, api_path: str):
        self.client = http_client
        self.api_path = api_path

    async def get(self, path: str = "", **kwargs) -> httpx.Response:
        return await self.client.get(f"{self.api_path}{path}", **kwargs)

    async def post(self, path: str = "", **kwargs) -> httpx.Response:
        return await self.client.post(f"{self.api_path}{path}", **kwargs)

    async def put(self, path: str = "", **kwargs) -> httpx.Response:
        return await self.client.put(f"{self.api_path}{path}", **kwargs)

    async def delete(self, path: str = "", **kwargs) -> httpx.Response:
        return await self.client.delete(f"{self.api_path}{path}", **kwargs)

    async def get_raw(self, path: str = "", **kwargs) -> httpx.Response:
        """GET request to raw path (bypasses api_path)"""
        return await self.client.get(path, **kwargs)


async def _serve(app, dependency, service) -> AsyncGenerator[httpx.AsyncClient, None]:
    app.dependency_overrides[dependency] = lambda: service
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(
            transport=transport,
            base_url=APITestConfig.BASE_URL,
            timeout=APITestConfig.HTTP_TIMEOUT,
        ) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def pricing_api(pricing_service) -> AsyncGenerator[APIClient, None]:
    """Pricing service API client"""
    async for client in _serve(pricing_main.app, pricing_main.get_pricing_service, pricing_service):
        yield APIClient(client, "/api/v1/pricing")


@pytest_asyncio.fixture
async def booking_api(booking_service) -> AsyncGenerator[APIClient, None]:
    """Booking service API client"""
    async for client in _serve(booking_main.app, booking_main.get_booking_service, booking_service):
        yield APIClient(client, "/api/v1/bookings")


@pytest_asyncio.fixture
async def custom_quote_api(custom_quote_service) -> AsyncGenerator[APIClient, None]:
    """Custom quote service API client"""
    async for client in _serve(
        custom_quote_main.app, custom_quote_main.get_custom_quote_service, custom_quote_service,
    ):
        yield APIClient(client, "/api/v1/custom-quotes")


# =============================================================================
# Assertion Helpers
# =============================================================================


class APIAssertions:
    """API-specific assertion helpers"""

    @staticmethod
    def assert_success(response: httpx.Response, expected_status: int = 200):
        """Assert response is successful"""
        assert response.status_code == expected_status, (
            f"Expected {expected_status}, got {response.status_code}: {response.text}"
        )

    @staticmethod
    def assert_created(response: httpx.Response):
        """Assert resource was created"""
        assert response.status_code in [200, 201], (
            f"Expected 200/201, got {response.status_code}: {response.text}"
        )

    @staticmethod
    def assert_not_found(response: httpx.Response):
        """Assert resource not found"""
        assert response.status_code == 404, f"Expected 404, got {response.status_code}"

    @staticmethod
    def assert_conflict(response: httpx.Response):
        assert response.status_code == 409, f"Expected 409, got {response.status_code}: {response.text}"

    @staticmethod
    def assert_validation_error(response: httpx.Response):
        """Assert validation error"""
        assert response.status_code == 422, f"Expected 422, got {response.status_code}"

    @staticmethod
    def assert_unauthorized(response: httpx.Response):
        """Assert unauthorized"""
        assert response.status_code == 401, f"Expected 401, got {response.status_code}"

    @staticmethod
    def assert_has_fields(data: dict, fields: list):
        """Assert response has required fields"""
        missing = [f for f in fields if f not in data]
        assert not missing, f"Missing fields: {missing}"


@pytest.fixture
def api_assert() -> APIAssertions:
    """Provide API assertion helpers"""
    return APIAssertions()


@pytest.fixture
def api_config() -> APITestConfig:
    return APITestConfig()
