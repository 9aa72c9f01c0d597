"""
Component Test Mocks

Shared mock implementations for component testing.
These mocks replace real I/O dependencies (database, NATS, file storage).
"""

from .nats_mock import MockEventBus
from .repository_mocks import (
    MockBookingRepository,
    MockCustomQuoteRepository,
    MockRatePolicyRepository,
)
from .storage_mock import MockStorageClient

__all__ = [
    'MockEventBus',
    'MockBookingRepository',
    'MockCustomQuoteRepository',
    'MockRatePolicyRepository',
    'MockStorageClient',
]
