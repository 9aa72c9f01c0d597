"""
Booking Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import List, Optional, Protocol, runtime_checkable

from .models import (
    BookingStep, BookingStepName, Notification, Payment, Receipt,
    Shipment, ShipmentStatus, StepStatus,
)


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class BookingServiceError(Exception):
    """Base exception for booking service errors"""
    pass


class BookingValidationError(BookingServiceError):
    """Booking validation error"""
    pass


class BookingNotFoundError(BookingServiceError):
    """Shipment not found"""
    pass


class InvalidBookingStateError(BookingServiceError):
    """Invalid booking state transition"""
    pass


class DuplicateIdempotencyKeyError(BookingServiceError):
    """A payment or receipt with this idempotency key already exists"""

    def __init__(self, idempotency_key: str):
        self.idempotency_key = idempotency_key
        super().__init__(f"Duplicate idempotency key: {idempotency_key}")


class PersistenceError(BookingServiceError):
    """
    A write against the data store failed.

    Earlier writes of the same booking are left in place; the saga log of
    ``correlation_id`` lists them for compensation.
    """

    def __init__(
        self,
        message: str,
        correlation_id: Optional[str] = None,
        step: Optional[BookingStepName] = None,
        completed_steps: Optional[List[BookingStepName]] = None,
    ):
        self.correlation_id = correlation_id
        self.step = step
        self.completed_steps = list(completed_steps or [])
        super().__init__(message)


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class BookingRepositoryProtocol(Protocol):
    """
    Interface for Booking Repository.

    Every method is an independent write or read; there is no transaction
    spanning calls.
    """

    # Shipments
    async def create_shipment(self, shipment: Shipment) -> Shipment: ...

    async def get_shipment(self, shipment_id: str) -> Optional[Shipment]: ...

    async def update_shipment(self, shipment: Shipment) -> Optional[Shipment]: ...

    async def update_shipment_status(self, shipment_id: str, status: ShipmentStatus) -> Optional[Shipment]: ...

    async def delete_shipment(self, shipment_id: str) -> bool: ...

    # Payments
    async def create_payment(self, payment: Payment) -> Payment:
        """Raises DuplicateIdempotencyKeyError on a repeated key"""
        ...

    async def get_payment_by_idempotency_key(self, idempotency_key: str) -> Optional[Payment]: ...

    async def get_payments_for_shipment(self, shipment_id: str) -> List[Payment]: ...

    async def delete_payment(self, payment_id: str) -> bool: ...

    # Receipts
    async def create_receipt(self, receipt: Receipt) -> Receipt:
        """Raises DuplicateIdempotencyKeyError on a repeated key"""
        ...

    async def get_receipt_by_idempotency_key(self, idempotency_key: str) -> Optional[Receipt]: ...

    async def get_receipts_for_shipment(self, shipment_id: str) -> List[Receipt]: ...

    async def delete_receipt(self, receipt_id: str) -> bool: ...

    # Notifications
    async def create_notification(self, notification: Notification) -> Notification: ...

    async def delete_notification(self, notification_id: str) -> bool: ...

    # Saga log
    async def record_step(self, step: BookingStep) -> BookingStep: ...

    async def list_steps(self, correlation_id: str) -> List[BookingStep]: ...

    async def update_step_status(self, step_id: str, status: StepStatus) -> bool: ...


@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus"""

    async def publish_event(self, event) -> bool: ...
