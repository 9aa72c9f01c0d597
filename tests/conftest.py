"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers:
    - api/       : HTTP contract tests (FastAPI apps over ASGI transport)
    - component/ : Component tests (services with mocked repositories)
    - unit/      : Unit tests (pure functions, no I/O)
"""
import os
import sys

import pytest

# Set testing environment BEFORE any project imports
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ["NATS_ENABLED"] = "false"

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from tests.contracts.booking.data_contract import ShippingTestDataFactory


# =============================================================================
# Test Configuration
# =============================================================================

class TestConfig:
    """Centralized test configuration"""

    SERVICES = {
        "pricing_service": 8301,
        "booking_service": 8302,
        "custom_quote_service": 8303,
    }

    @classmethod
    def get_service_url(cls, service_name: str) -> str:
        port = cls.SERVICES.get(service_name)
        if not port:
            raise ValueError(f"Unknown service: {service_name}")
        return f"http://localhost:{port}"


@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    """Provide test configuration"""
    return TestConfig()


@pytest.fixture
def data_factory() -> type:
    """Shipping test data factory"""
    return ShippingTestDataFactory


def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "component: marks tests as component tests")
    config.addinivalue_line("markers", "api: marks tests as API contract tests")
