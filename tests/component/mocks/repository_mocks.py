"""
Repository Mocks for Component Testing

In-memory implementations of the booking, rate policy and custom quote
repository protocols. Errors can be injected per method with set_error().
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from microservices.booking_service.models import (
    BookingStep, Notification, Payment, Receipt, Shipment, ShipmentStatus,
    StepStatus,
)
from microservices.booking_service.protocols import DuplicateIdempotencyKeyError
from microservices.custom_quote_service.models import CustomQuote, CustomQuoteStatus
from microservices.pricing_service.models import RatePolicy


class _ErrorInjection:
    """Per-method error injection and call log"""

    def __init__(self):
        self._errors: Dict[str, Exception] = {}
        self._call_log: List[Tuple[str, Any]] = []

    def set_error(self, method: str, error: Exception):
        """Raise error the next time method is called"""
        self._errors[method] = error

    def clear_errors(self):
        self._errors.clear()

    def calls(self, method: str) -> List[Any]:
        return [args for name, args in self._call_log if name == method]

    def _record(self, method: str, *args):
        self._call_log.append((method, args))
        error = self._errors.pop(method, None)
        if error is not None:
            raise error


class MockBookingRepository(_ErrorInjection):
    """Mock implementation of BookingRepositoryProtocol"""

    def __init__(self):
        super().__init__()
        self.shipments: Dict[str, Shipment] = {}
        self.payments: Dict[str, Payment] = {}
        self.receipts: Dict[str, Receipt] = {}
        self.notifications: Dict[str, Notification] = {}
        self.steps: List[BookingStep] = []

    # Shipments

    async def create_shipment(self, shipment: Shipment) -> Shipment:
        self._record("create_shipment", shipment.id)
        self.shipments[shipment.id] = shipment
        return shipment

    async def get_shipment(self, shipment_id: str) -> Optional[Shipment]:
        self._record("get_shipment", shipment_id)
        return self.shipments.get(shipment_id)

    async def update_shipment(self, shipment: Shipment) -> Optional[Shipment]:
        self._record("update_shipment", shipment.id, shipment.status)
        if shipment.id not in self.shipments:
            return None
        updated = shipment.model_copy(update={"updated_at": datetime.now(timezone.utc)})
        self.shipments[shipment.id] = updated
        return updated

    async def update_shipment_status(self, shipment_id: str, status: ShipmentStatus) -> Optional[Shipment]:
        self._record("update_shipment_status", shipment_id, status)
        shipment = self.shipments.get(shipment_id)
        if shipment is None:
            return None
        updated = shipment.model_copy(update={"status": status, "updated_at": datetime.now(timezone.utc)})
        self.shipments[shipment_id] = updated
        return updated

    async def delete_shipment(self, shipment_id: str) -> bool:
        self._record("delete_shipment", shipment_id)
        return self.shipments.pop(shipment_id, None) is not None

    # Payments

    async def create_payment(self, payment: Payment) -> Payment:
        self._record("create_payment", payment.id)
        if payment.idempotency_key and any(
            p.idempotency_key == payment.idempotency_key for p in self.payments.values()
        ):
            raise DuplicateIdempotencyKeyError(payment.idempotency_key)
        self.payments[payment.id] = payment
        return payment

    async def get_payment_by_idempotency_key(self, idempotency_key: str) -> Optional[Payment]:
        self._record("get_payment_by_idempotency_key", idempotency_key)
        return next((p for p in self.payments.values() if p.idempotency_key == idempotency_key), None)

    async def get_payments_for_shipment(self, shipment_id: str) -> List[Payment]:
        self._record("get_payments_for_shipment", shipment_id)
        return [p for p in self.payments.values() if p.shipment_id == shipment_id]

    async def delete_payment(self, payment_id: str) -> bool:
        self._record("delete_payment", payment_id)
        return self.payments.pop(payment_id, None) is not None

    # Receipts

    async def create_receipt(self, receipt: Receipt) -> Receipt:
        self._record("create_receipt", receipt.id)
        if receipt.idempotency_key and any(
            r.idempotency_key == receipt.idempotency_key for r in self.receipts.values()
        ):
            raise DuplicateIdempotencyKeyError(receipt.idempotency_key)
        self.receipts[receipt.id] = receipt
        return receipt

    async def get_receipt_by_idempotency_key(self, idempotency_key: str) -> Optional[Receipt]:
        self._record("get_receipt_by_idempotency_key", idempotency_key)
        return next((r for r in self.receipts.values() if r.idempotency_key == idempotency_key), None)

    async def get_receipts_for_shipment(self, shipment_id: str) -> List[Receipt]:
        self._record("get_receipts_for_shipment", shipment_id)
        return [r for r in self.receipts.values() if r.shipment_id == shipment_id]

    async def delete_receipt(self, receipt_id: str) -> bool:
        self._record("delete_receipt", receipt_id)
        return self.receipts.pop(receipt_id, None) is not None

    # Notifications

    async def create_notification(self, notification: Notification) -> Notification:
        self._record("create_notification", notification.id)
        self.notifications[notification.id] = notification
        return notification

    async def delete_notification(self, notification_id: str) -> bool:
        self._record("delete_notification", notification_id)
        return self.notifications.pop(notification_id, None) is not None

    # Saga log

    async def record_step(self, step: BookingStep) -> BookingStep:
        self._record("record_step", step.step)
        self.steps.append(step)
        return step

    async def list_steps(self, correlation_id: str) -> List[BookingStep]:
        self._record("list_steps", correlation_id)
        return [s for s in self.steps if s.correlation_id == correlation_id]

    async def update_step_status(self, step_id: str, status: StepStatus) -> bool:
        self._record("update_step_status", step_id, status)
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                self.steps[index] = step.model_copy(update={"status": status})
                return True
        return False


class MockRatePolicyRepository(_ErrorInjection):
    """Mock implementation of RatePolicyRepositoryProtocol"""

    def __init__(self, policies: Optional[List[RatePolicy]] = None):
        super().__init__()
        self.policies: Dict[str, RatePolicy] = {p.name: p for p in policies or []}

    async def get_policy(self, name: str) -> Optional[RatePolicy]:
        self._record("get_policy", name)
        return self.policies.get(name)

    async def list_policies(self) -> List[RatePolicy]:
        self._record("list_policies")
        return sorted(self.policies.values(), key=lambda p: p.name)

    async def upsert_policy(self, policy: RatePolicy) -> RatePolicy:
        self._record("upsert_policy", policy.name)
        stored = policy.model_copy(update={"updated_at": datetime.now(timezone.utc)})
        self.policies[policy.name] = stored
        return stored

    async def delete_policy(self, name: str) -> bool:
        self._record("delete_policy", name)
        return self.policies.pop(name, None) is not None


class MockCustomQuoteRepository(_ErrorInjection):
    """Mock implementation of CustomQuoteRepositoryProtocol"""

    def __init__(self):
        super().__init__()
        self.quotes: Dict[str, CustomQuote] = {}

    async def create_quote(self, quote: CustomQuote) -> CustomQuote:
        self._record("create_quote", quote.id)
        self.quotes[quote.id] = quote
        return quote

    async def get_quote(self, quote_id: str) -> Optional[CustomQuote]:
        self._record("get_quote", quote_id)
        return self.quotes.get(quote_id)

    async def list_quotes(
        self,
        user_id: Optional[str] = None,
        status: Optional[CustomQuoteStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[CustomQuote]:
        self._record("list_quotes", user_id, status)
        quotes = [
            q for q in self.quotes.values()
            if (user_id is None or q.user_id == user_id) and (status is None or q.status == status)
        ]
        quotes.sort(key=lambda q: q.created_at, reverse=True)
        return quotes[offset:offset + limit]

    async def set_quoted_amount(
        self,
        quote_id: str,
        amount: Decimal,
        admin_notes: Optional[str] = None,
    ) -> Optional[CustomQuote]:
        self._record("set_quoted_amount", quote_id, amount)
        quote = self.quotes.get(quote_id)
        if quote is None or quote.status != CustomQuoteStatus.PENDING:
            return None
        updated = quote.model_copy(update={
            "quoted_amount": amount,
            "admin_notes": admin_notes or quote.admin_notes,
            "status": CustomQuoteStatus.QUOTED,
            "updated_at": datetime.now(timezone.utc),
        })
        self.quotes[quote_id] = updated
        return updated

    async def update_status(self, quote_id: str, status: CustomQuoteStatus) -> Optional[CustomQuote]:
        self._record("update_status", quote_id, status)
        quote = self.quotes.get(quote_id)
        if quote is None:
            return None
        updated = quote.model_copy(update={"status": status, "updated_at": datetime.now(timezone.utc)})
        self.quotes[quote_id] = updated
        return updated
