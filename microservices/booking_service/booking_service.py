"""
Booking Service Business Logic

Drives a booking through the state machine: price the shipment, store it,
record the customer's settlement choice as payment/receipt/status/notification
writes, and confirm.

The writes are independent round trips. A failure part way through leaves
the earlier rows in place and is reported as a PersistenceError; every step
is logged under the booking's correlation id together with the action that
undoes it, and compensate_booking() applies those actions on request.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from core.config import ShippingConfig, get_settings
from microservices.pricing_service.models import (
    PricingBreakdown, PricingRoute, SettlementSelection, ShipmentRequest,
)
from microservices.pricing_service.pricing_service import PricingService
from microservices.pricing_service.protocols import (
    PricingError, PricingValidationError, SettlementMismatchError,
)
from microservices.pricing_service.rate_table import price_items, quoted_breakdown, route_for
from microservices.pricing_service.settlement import resolve_settlement, verify_displayed_total

from .events.publishers import (
    publish_booking_compensated,
    publish_booking_confirmed,
    publish_booking_created,
    publish_payment_initiated,
)
from .identifiers import (
    generate_receipt_number, generate_tracking_number,
    generate_transaction_id, new_id,
)
from .models import (
    BookingResponse, BookingState, BookingStep, BookingStepListResponse,
    BookingStepName, CompensatingAction, CompensationResult, Notification,
    Payment, PaymentStatus, Receipt, ReceiptListResponse, ReceiptStatus,
    SettlementChoiceRequest, SettlementResponse, Shipment, ShipmentDetails,
    ShipmentStatus, StepStatus,
)
from .protocols import (
    BookingNotFoundError, BookingRepositoryProtocol, BookingServiceError,
    BookingValidationError, DuplicateIdempotencyKeyError,
    InvalidBookingStateError, PersistenceError,
)
from .state_machine import SETTLED_STATUSES, BookingSession, shipment_status_for

logger = logging.getLogger(__name__)

T = TypeVar("T")

METHOD_LABELS = {
    "card": "card payment",
    "bank_transfer": "bank transfer",
    "cash_on_collection": "cash on collection",
    "pay_on_arrival": "pay on arrival",
    "standard_30_day": "30-day payment terms",
}


class BookingService:
    """
    Booking workflow service

    Pricing goes through PricingService (rate policy + pure rate table);
    persistence goes through the injected repository.
    """

    def __init__(
        self,
        repository: BookingRepositoryProtocol,
        pricing_service: PricingService,
        event_bus=None,
        config: Optional[ShippingConfig] = None,
    ):
        self.repository = repository
        self.pricing_service = pricing_service
        self.event_bus = event_bus
        self.config = config or get_settings()

    # ====================
    # Phase 1: capture and price
    # ====================

    async def start_booking(self, request: ShipmentRequest, user_id: Optional[str] = None) -> BookingResponse:
        """
        Price a shipment and store it ahead of the settlement choice.

        Unrated items are sent to the custom quote flow without pricing.
        """
        session = BookingSession()

        try:
            if route_for(request) == PricingRoute.CUSTOM_QUOTE:
                session.transition(BookingState.CUSTOM_QUOTE_BRANCH)
                return BookingResponse(
                    success=True,
                    state=session.state,
                    route=PricingRoute.CUSTOM_QUOTE,
                    correlation_id=session.correlation_id,
                    message="This item has no standard rate; request a custom quote",
                )

            try:
                breakdown = await self.pricing_service.price(request)
            except PricingError as e:
                logger.warning(f"Rate lookup failed for booking {session.correlation_id}: {e}")
                session.transition(BookingState.CUSTOM_QUOTE_BRANCH)
                return BookingResponse(
                    success=False,
                    state=session.state,
                    route=PricingRoute.CUSTOM_QUOTE,
                    correlation_id=session.correlation_id,
                    message=str(e),
                    error_code="PRICING_ERROR",
                )

            session.transition(BookingState.PRICING_COMPUTED)

            now = datetime.now(timezone.utc)
            shipment = Shipment(
                id=new_id(),
                user_id=user_id,
                tracking_number=generate_tracking_number(),
                status=ShipmentStatus.PENDING,
                sender_details=request.sender.model_dump(mode="json"),
                recipient_details=request.recipient.model_dump(mode="json"),
                shipment_details=ShipmentDetails(
                    services=request.addons,
                    item_category=request.item_category,
                    item_description=request.item_description,
                    classification=request.classification,
                    quantity=breakdown.quantity,
                    weight_kg=breakdown.weight_kg,
                    collection_date=request.collection_date,
                    pricing=breakdown,
                ),
                correlation_id=session.correlation_id,
                created_at=now,
                updated_at=now,
            )

            completed: List[BookingStepName] = []
            stored = await self._persist(
                session, completed,
                BookingStepName.CREATE_SHIPMENT, "shipment",
                lambda: self.repository.create_shipment(shipment),
                CompensatingAction.DELETE_SHIPMENT,
                shipment_id=shipment.id,
            )
            session.shipment_id = stored.id
            session.transition(BookingState.AWAITING_SETTLEMENT_CHOICE)

            if self.event_bus:
                try:
                    await publish_booking_created(self.event_bus, stored, breakdown)
                except Exception as e:
                    logger.error(f"Failed to publish booking.created event: {e}")

            logger.info(
                f"Booking {session.correlation_id}: shipment {stored.tracking_number} priced at "
                f"{breakdown.total_before_settlement} {breakdown.currency}"
            )
            return BookingResponse(
                success=True,
                state=session.state,
                shipment=stored,
                breakdown=breakdown,
                correlation_id=session.correlation_id,
                message="Shipment priced; choose a settlement method",
            )

        except PricingValidationError as e:
            return BookingResponse(
                success=False,
                state=session.state,
                correlation_id=session.correlation_id,
                message=str(e),
                error_code="VALIDATION_ERROR",
            )
        except PersistenceError as e:
            session.fail(str(e))
            return BookingResponse(
                success=False,
                state=session.state,
                correlation_id=session.correlation_id,
                message=str(e),
                error_code="PERSISTENCE_ERROR",
            )
        except Exception as e:
            logger.error(f"Failed to start booking {session.correlation_id}: {e}")
            session.fail(str(e))
            return BookingResponse(
                success=False,
                state=session.state,
                correlation_id=session.correlation_id,
                message=f"Failed to start booking: {str(e)}",
                error_code="BOOKING_ERROR",
            )

    async def open_custom_quote_shipment(
        self,
        sender_details: Dict[str, Any],
        recipient_details: Dict[str, Any],
        details: ShipmentDetails,
        user_id: Optional[str] = None,
    ) -> Shipment:
        """
        Store an unpriced shipment that waits for a custom quote.

        Raises:
            PersistenceError: the shipment could not be written
        """
        session = BookingSession()
        session.transition(BookingState.CUSTOM_QUOTE_BRANCH)

        now = datetime.now(timezone.utc)
        shipment = Shipment(
            id=new_id(),
            user_id=user_id,
            tracking_number=generate_tracking_number(),
            status=ShipmentStatus.AWAITING_QUOTE,
            sender_details=sender_details,
            recipient_details=recipient_details,
            shipment_details=details,
            correlation_id=session.correlation_id,
            created_at=now,
            updated_at=now,
        )
        stored = await self._persist(
            session, [],
            BookingStepName.CREATE_SHIPMENT, "shipment",
            lambda: self.repository.create_shipment(shipment),
            CompensatingAction.DELETE_SHIPMENT,
            shipment_id=shipment.id,
        )
        logger.info(f"Shipment {stored.tracking_number} opened for custom quote {details.custom_quote_id}")
        return stored

    async def notify(
        self,
        user_id: Optional[str],
        title: str,
        message: str,
        type: str,
        related_id: Optional[str] = None,
    ) -> Notification:
        """Store a notification; anonymous actors are addressed via the admin placeholder"""
        notification = Notification(
            id=new_id(),
            user_id=user_id or self.config.admin_user_id,
            title=title,
            message=message,
            type=type,
            related_id=related_id,
            is_read=False,
            created_at=datetime.now(timezone.utc),
        )
        return await self.repository.create_notification(notification)

    # ====================
    # Phase 2: settlement
    # ====================

    async def choose_settlement(
        self,
        shipment_id: str,
        request: SettlementChoiceRequest,
        user_id: Optional[str] = None,
    ) -> SettlementResponse:
        """Record the customer's settlement choice for a priced shipment"""
        return await self._settle(shipment_id, request, user_id, quoted_amount=None)

    async def record_custom_quote_settlement(
        self,
        shipment_id: str,
        quoted_amount: Decimal,
        request: SettlementChoiceRequest,
        user_id: Optional[str] = None,
    ) -> SettlementResponse:
        """Settle a custom-quote shipment at its quoted amount"""
        if quoted_amount is None:
            return SettlementResponse(
                success=False,
                state=BookingState.CUSTOM_QUOTE_BRANCH,
                message="Quote has not been priced yet",
                error_code="QUOTE_NOT_PRICED",
            )
        return await self._settle(shipment_id, request, user_id, quoted_amount=quoted_amount)

    async def _settle(
        self,
        shipment_id: str,
        request: SettlementChoiceRequest,
        user_id: Optional[str],
        quoted_amount: Optional[Decimal],
    ) -> SettlementResponse:
        session: Optional[BookingSession] = None
        try:
            shipment = await self._read(
                lambda: self.repository.get_shipment(shipment_id), f"load shipment {shipment_id}"
            )
            if shipment is None:
                raise BookingNotFoundError(f"Shipment not found: {shipment_id}")

            session = BookingSession.resume(shipment)
            existing_payment, existing_receipt = await self._find_existing(shipment, request.idempotency_key)

            if existing_receipt is not None and shipment.status in SETTLED_STATUSES:
                if existing_receipt.payment_method != request.method:
                    raise BookingValidationError(
                        f"Idempotency key was already used for a "
                        f"{existing_receipt.payment_method.value} settlement"
                    )
                return await self._finish_duplicate(session, shipment, existing_receipt, existing_payment, user_id)

            expected = (
                BookingState.CUSTOM_QUOTE_BRANCH if quoted_amount is not None
                else BookingState.AWAITING_SETTLEMENT_CHOICE
            )
            if session.state != expected:
                raise InvalidBookingStateError(
                    f"Shipment {shipment.tracking_number} is {shipment.status.value}; "
                    f"a settlement choice cannot be recorded now"
                )

            policy = await self.pricing_service.get_active_policy()
            details = shipment.shipment_details
            if quoted_amount is None:
                breakdown = price_items(
                    details.classification, details.quantity, details.weight_kg, details.services, policy,
                )
            else:
                breakdown = quoted_breakdown(quoted_amount, policy.currency)

            selection = resolve_settlement(
                breakdown,
                request.method,
                request.sub_method,
                policy,
                collection_date=details.collection_date,
            )
            verify_displayed_total(selection, request.displayed_total, policy.mismatch_tolerance)
            self._check_existing(selection, existing_payment, existing_receipt, policy.mismatch_tolerance)

            if quoted_amount is None:
                target_status = shipment_status_for(selection.settlement_classification)
            else:
                target_status = ShipmentStatus.PENDING_COLLECTION

            return await self._record_settlement(
                session, shipment, breakdown, selection, target_status,
                user_id=user_id,
                idempotency_key=request.idempotency_key,
                existing_payment=existing_payment,
                existing_receipt=existing_receipt,
            )

        except DuplicateIdempotencyKeyError as e:
            return await self._concurrent_duplicate(shipment_id, e.idempotency_key, session)
        except BookingNotFoundError as e:
            return self._settlement_failure(session, str(e), "NOT_FOUND")
        except InvalidBookingStateError as e:
            return self._settlement_failure(session, str(e), "INVALID_STATE")
        except (PricingValidationError, BookingValidationError) as e:
            return self._settlement_failure(session, str(e), "VALIDATION_ERROR")
        except SettlementMismatchError as e:
            logger.warning(f"Settlement mismatch on shipment {shipment_id}: {e}")
            return self._settlement_failure(session, str(e), "SETTLEMENT_MISMATCH")
        except PricingError as e:
            return self._settlement_failure(session, str(e), "PRICING_ERROR")
        except PersistenceError as e:
            if session is not None:
                session.fail(str(e))
            return SettlementResponse(
                success=False,
                state=session.state if session else BookingState.FAILED,
                correlation_id=e.correlation_id,
                failed_step=e.step,
                completed_steps=e.completed_steps,
                message=str(e),
                error_code="PERSISTENCE_ERROR",
            )
        except Exception as e:
            logger.error(f"Failed to record settlement for shipment {shipment_id}: {e}")
            return self._settlement_failure(session, f"Failed to record settlement: {str(e)}", "BOOKING_ERROR")

    async def _record_settlement(
        self,
        session: BookingSession,
        shipment: Shipment,
        breakdown: PricingBreakdown,
        selection: SettlementSelection,
        target_status: ShipmentStatus,
        user_id: Optional[str],
        idempotency_key: Optional[str],
        existing_payment: Optional[Payment],
        existing_receipt: Optional[Receipt],
    ) -> SettlementResponse:
        """
        Payment (immediate only) -> receipt -> shipment status -> notification.

        Records left behind by an earlier attempt with the same idempotency
        key are reused instead of written again.
        """
        session.transition(BookingState.SETTLEMENT_RECORDED)
        completed: List[BookingStepName] = []
        now = datetime.now(timezone.utc)
        details = shipment.shipment_details.model_copy(update={"pricing": breakdown, "settlement": selection})
        owner_id = user_id or shipment.user_id

        payment = existing_payment
        if selection.creates_payment and payment is None:
            new_payment = Payment(
                id=new_id(),
                shipment_id=shipment.id,
                user_id=owner_id,
                amount=selection.final_total,
                currency=selection.currency,
                payment_method=selection.method,
                payment_status=PaymentStatus.PENDING,
                transaction_id=generate_transaction_id(),
                idempotency_key=idempotency_key,
                created_at=now,
            )
            payment = await self._persist(
                session, completed,
                BookingStepName.CREATE_PAYMENT, "payment",
                lambda: self.repository.create_payment(new_payment),
                CompensatingAction.DELETE_PAYMENT,
                shipment_id=shipment.id,
            )

        receipt = existing_receipt
        if receipt is None:
            new_receipt = Receipt(
                id=new_id(),
                shipment_id=shipment.id,
                payment_id=payment.id if payment else None,
                receipt_number=generate_receipt_number(),
                amount=payment.amount if payment else selection.final_total,
                currency=selection.currency,
                payment_method=selection.method,
                sub_method=selection.sub_method,
                status=ReceiptStatus.PENDING,
                sender_details=shipment.sender_details,
                recipient_details=shipment.recipient_details,
                shipment_details=details.model_dump(mode="json"),
                payment_deadline=selection.payment_deadline,
                idempotency_key=idempotency_key,
                created_at=now,
            )
            receipt = await self._persist(
                session, completed,
                BookingStepName.CREATE_RECEIPT, "receipt",
                lambda: self.repository.create_receipt(new_receipt),
                CompensatingAction.DELETE_RECEIPT,
                shipment_id=shipment.id,
            )

        settled = shipment.model_copy(update={"status": target_status, "shipment_details": details})
        stored = await self._persist(
            session, completed,
            BookingStepName.UPDATE_SHIPMENT_STATUS, "shipment",
            lambda: self._save_shipment(settled),
            CompensatingAction.RESTORE_SHIPMENT_STATUS,
            shipment_id=shipment.id,
            previous_value=shipment.status.value,
        )

        notification = await self._create_confirmation(session, completed, stored, selection, receipt, owner_id)

        session.transition(BookingState.CONFIRMED)

        if self.event_bus:
            try:
                if payment is not None and BookingStepName.CREATE_PAYMENT in completed:
                    await publish_payment_initiated(self.event_bus, payment)
                await publish_booking_confirmed(self.event_bus, stored, selection, receipt, payment)
            except Exception as e:
                logger.error(f"Failed to publish booking events: {e}")

        logger.info(
            f"Booking {session.correlation_id} confirmed: {stored.tracking_number} "
            f"{selection.method.value} {selection.final_total} -> {stored.status.value}"
        )
        return SettlementResponse(
            success=True,
            state=session.state,
            shipment=stored,
            selection=selection,
            payment=payment,
            receipt=receipt,
            notification=notification,
            correlation_id=session.correlation_id,
            completed_steps=completed,
            message="Booking confirmed",
        )

    # ====================
    # Queries
    # ====================

    async def get_booking(self, shipment_id: str) -> Optional[Shipment]:
        """Get shipment by ID"""
        try:
            return await self.repository.get_shipment(shipment_id)
        except Exception as e:
            logger.error(f"Failed to get shipment {shipment_id}: {e}")
            raise BookingServiceError(f"Failed to get shipment: {str(e)}")

    async def get_receipts(self, shipment_id: str) -> ReceiptListResponse:
        try:
            receipts = await self.repository.get_receipts_for_shipment(shipment_id)
        except Exception as e:
            logger.error(f"Failed to get receipts for shipment {shipment_id}: {e}")
            raise BookingServiceError(f"Failed to get receipts: {str(e)}")
        return ReceiptListResponse(receipts=receipts, count=len(receipts))

    async def list_booking_steps(self, correlation_id: str) -> BookingStepListResponse:
        try:
            steps = await self.repository.list_steps(correlation_id)
        except Exception as e:
            logger.error(f"Failed to list booking steps for {correlation_id}: {e}")
            raise BookingServiceError(f"Failed to list booking steps: {str(e)}")
        return BookingStepListResponse(correlation_id=correlation_id, steps=steps, count=len(steps))

    # ====================
    # Compensation
    # ====================

    async def compensate_booking(self, correlation_id: str) -> CompensationResult:
        """
        Undo the completed steps of a booking, newest first.

        Operator-invoked only. Stops at the first failing action and reports
        what was undone so far.
        """
        try:
            steps = await self.repository.list_steps(correlation_id)
        except Exception as e:
            logger.error(f"Failed to load saga log for {correlation_id}: {e}")
            return CompensationResult(
                success=False,
                correlation_id=correlation_id,
                message=f"Failed to load booking steps: {str(e)}",
                error_code="PERSISTENCE_ERROR",
            )

        if not steps:
            return CompensationResult(
                success=False,
                correlation_id=correlation_id,
                message=f"No booking steps recorded for {correlation_id}",
                error_code="NOT_FOUND",
            )

        compensated: List[BookingStep] = []
        skipped: List[BookingStep] = []
        for step in reversed([s for s in steps if s.status == StepStatus.COMPLETED]):
            try:
                handled = await self._compensate_step(step)
                if handled:
                    await self.repository.update_step_status(step.id, StepStatus.COMPENSATED)
            except Exception as e:
                logger.error(f"Compensation of {step.step.value} ({step.record_id}) failed: {e}")
                return CompensationResult(
                    success=False,
                    correlation_id=correlation_id,
                    compensated=compensated,
                    skipped=skipped,
                    message=f"Compensation stopped at {step.step.value}: {str(e)}",
                    error_code="PERSISTENCE_ERROR",
                )
            if handled:
                compensated.append(step.model_copy(update={"status": StepStatus.COMPENSATED}))
            else:
                skipped.append(step)

        shipment_id = next((s.shipment_id for s in steps if s.shipment_id), None)
        if self.event_bus and compensated:
            try:
                await publish_booking_compensated(
                    self.event_bus, correlation_id, shipment_id, [s.step.value for s in compensated],
                )
            except Exception as e:
                logger.error(f"Failed to publish booking.compensated event: {e}")

        logger.info(f"Booking {correlation_id} compensated: {len(compensated)} steps undone")
        return CompensationResult(
            success=True,
            correlation_id=correlation_id,
            compensated=compensated,
            skipped=skipped,
            message=f"Undid {len(compensated)} booking steps",
        )

    async def _compensate_step(self, step: BookingStep) -> bool:
        action = step.compensating_action
        if action is None or step.record_id is None:
            return False
        if action == CompensatingAction.DELETE_SHIPMENT:
            await self.repository.delete_shipment(step.record_id)
        elif action == CompensatingAction.DELETE_PAYMENT:
            await self.repository.delete_payment(step.record_id)
        elif action == CompensatingAction.DELETE_RECEIPT:
            await self.repository.delete_receipt(step.record_id)
        elif action == CompensatingAction.DELETE_NOTIFICATION:
            await self.repository.delete_notification(step.record_id)
        elif action == CompensatingAction.RESTORE_SHIPMENT_STATUS:
            if step.previous_value is None:
                return False
            await self.repository.update_shipment_status(step.record_id, ShipmentStatus(step.previous_value))
        else:
            return False
        return True

    # ====================
    # Helpers
    # ====================

    async def _persist(
        self,
        session: BookingSession,
        completed: List[BookingStepName],
        step: BookingStepName,
        record_type: str,
        write: Callable[[], Awaitable[T]],
        compensating_action: CompensatingAction,
        shipment_id: Optional[str] = None,
        previous_value: Optional[str] = None,
    ) -> T:
        """Run one write and log it in the saga log"""
        try:
            record = await write()
        except DuplicateIdempotencyKeyError:
            raise
        except Exception as e:
            logger.error(f"Booking {session.correlation_id}: {step.value} failed: {e}")
            await self._log_step(session, step, record_type, None, StepStatus.FAILED,
                                 shipment_id=shipment_id, error=str(e))
            raise PersistenceError(
                f"Failed to {step.value.replace('_', ' ')}: {e}. "
                f"Completed steps were kept; retry with the same idempotency key to continue the booking.",
                correlation_id=session.correlation_id,
                step=step,
                completed_steps=completed,
            )

        await self._log_step(session, step, record_type, getattr(record, "id", None), StepStatus.COMPLETED,
                             shipment_id=shipment_id, compensating_action=compensating_action,
                             previous_value=previous_value)
        completed.append(step)
        return record

    async def _log_step(
        self,
        session: BookingSession,
        step: BookingStepName,
        record_type: str,
        record_id: Optional[str],
        status: StepStatus,
        shipment_id: Optional[str] = None,
        compensating_action: Optional[CompensatingAction] = None,
        previous_value: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        entry = BookingStep(
            id=new_id(),
            correlation_id=session.correlation_id,
            shipment_id=shipment_id,
            step=step,
            record_type=record_type,
            record_id=record_id,
            status=status,
            compensating_action=compensating_action,
            previous_value=previous_value,
            error=error,
            created_at=datetime.now(timezone.utc),
        )
        try:
            await self.repository.record_step(entry)
        except Exception as e:
            # The log line keeps the compensation data when the saga log is unreachable
            logger.error(
                f"Failed to record saga step {entry.model_dump_json()}: {e}"
            )

    async def _read(self, read: Callable[[], Awaitable[T]], what: str) -> T:
        try:
            return await read()
        except Exception as e:
            logger.error(f"Failed to {what}: {e}")
            raise PersistenceError(f"Failed to {what}: {e}")

    async def _save_shipment(self, shipment: Shipment) -> Shipment:
        stored = await self.repository.update_shipment(shipment)
        if stored is None:
            raise BookingNotFoundError(f"Shipment not found: {shipment.id}")
        return stored

    async def _find_existing(
        self,
        shipment: Shipment,
        idempotency_key: Optional[str],
    ) -> Tuple[Optional[Payment], Optional[Receipt]]:
        """Records written by an earlier attempt with the same idempotency key"""
        if not idempotency_key:
            return None, None

        payment = await self._read(
            lambda: self.repository.get_payment_by_idempotency_key(idempotency_key), "look up payment"
        )
        receipt = await self._read(
            lambda: self.repository.get_receipt_by_idempotency_key(idempotency_key), "look up receipt"
        )
        for record in (payment, receipt):
            if record is not None and record.shipment_id != shipment.id:
                raise BookingValidationError("Idempotency key was already used for a different shipment")
        return payment, receipt

    def _check_existing(
        self,
        selection: SettlementSelection,
        payment: Optional[Payment],
        receipt: Optional[Receipt],
        tolerance: Decimal,
    ) -> None:
        """Records reused from an earlier attempt must describe the same settlement"""
        if payment is not None and not selection.creates_payment:
            raise BookingValidationError(
                f"Idempotency key already holds a {payment.payment_method.value} payment; "
                f"{selection.method.value} takes no payment up front"
            )
        for record in (payment, receipt):
            if record is None:
                continue
            if record.payment_method != selection.method:
                raise BookingValidationError(
                    f"Idempotency key was already used for a {record.payment_method.value} settlement"
                )
            if abs(record.amount - selection.final_total) > tolerance:
                raise SettlementMismatchError(selection.final_total, record.amount, tolerance)
        if receipt is not None and receipt.sub_method != selection.sub_method:
            raise BookingValidationError("Idempotency key was already used with a different sub-method")

    async def _create_confirmation(
        self,
        session: BookingSession,
        completed: List[BookingStepName],
        shipment: Shipment,
        selection: SettlementSelection,
        receipt: Receipt,
        owner_id: Optional[str],
    ) -> Notification:
        notification = Notification(
            id=new_id(),
            user_id=owner_id or self.config.admin_user_id,
            title="Booking Confirmed",
            message=self._confirmation_message(shipment, selection, receipt),
            type="booking",
            related_id=shipment.id,
            is_read=False,
            created_at=datetime.now(timezone.utc),
        )
        return await self._persist(
            session, completed,
            BookingStepName.CREATE_NOTIFICATION, "notification",
            lambda: self.repository.create_notification(notification),
            CompensatingAction.DELETE_NOTIFICATION,
            shipment_id=shipment.id,
        )

    async def _finish_duplicate(
        self,
        session: BookingSession,
        shipment: Shipment,
        receipt: Receipt,
        payment: Optional[Payment],
        user_id: Optional[str],
    ) -> SettlementResponse:
        """
        Replay of a settled booking.

        An earlier attempt may have stopped after the status update; the
        confirmation notification is written now when the saga log holds no
        completed one for the booking.
        """
        steps = await self._read(
            lambda: self.repository.list_steps(session.correlation_id), "load booking steps"
        )
        notified = any(
            s.step == BookingStepName.CREATE_NOTIFICATION and s.status == StepStatus.COMPLETED
            for s in steps
        )
        selection = shipment.shipment_details.settlement
        if notified or selection is None:
            return self._duplicate_response(shipment, receipt, payment)

        completed: List[BookingStepName] = []
        notification = await self._create_confirmation(
            session, completed, shipment, selection, receipt, user_id or shipment.user_id,
        )

        if self.event_bus:
            try:
                await publish_booking_confirmed(self.event_bus, shipment, selection, receipt, payment)
            except Exception as e:
                logger.error(f"Failed to publish booking.confirmed event: {e}")

        logger.info(f"Booking {session.correlation_id} confirmed on retry: {shipment.tracking_number}")
        response = self._duplicate_response(shipment, receipt, payment)
        return response.model_copy(update={
            "notification": notification,
            "completed_steps": completed,
            "message": "Booking confirmed",
        })

    async def _concurrent_duplicate(
        self,
        shipment_id: str,
        idempotency_key: str,
        session: Optional[BookingSession],
    ) -> SettlementResponse:
        """Another request with the same key won the insert race"""
        try:
            shipment = await self.repository.get_shipment(shipment_id)
            receipt = await self.repository.get_receipt_by_idempotency_key(idempotency_key)
            payment = await self.repository.get_payment_by_idempotency_key(idempotency_key)
        except Exception as e:
            logger.error(f"Failed to load duplicate settlement for {shipment_id}: {e}")
            return self._settlement_failure(session, f"Failed to load existing settlement: {str(e)}", "PERSISTENCE_ERROR")

        if shipment is not None and receipt is not None:
            return self._duplicate_response(shipment, receipt, payment)
        return SettlementResponse(
            success=False,
            state=session.state if session else BookingState.AWAITING_SETTLEMENT_CHOICE,
            duplicate=True,
            correlation_id=session.correlation_id if session else None,
            message="This settlement is already being processed",
            error_code="DUPLICATE_REQUEST",
        )

    def _duplicate_response(
        self,
        shipment: Shipment,
        receipt: Receipt,
        payment: Optional[Payment],
    ) -> SettlementResponse:
        logger.info(f"Duplicate settlement for shipment {shipment.id} ignored (receipt {receipt.receipt_number})")
        return SettlementResponse(
            success=True,
            state=BookingState.CONFIRMED,
            shipment=shipment,
            selection=shipment.shipment_details.settlement,
            payment=payment,
            receipt=receipt,
            duplicate=True,
            correlation_id=shipment.correlation_id,
            message="Settlement already recorded",
        )

    def _settlement_failure(
        self,
        session: Optional[BookingSession],
        message: str,
        error_code: str,
    ) -> SettlementResponse:
        return SettlementResponse(
            success=False,
            state=session.state if session else BookingState.FAILED,
            correlation_id=session.correlation_id if session else None,
            message=message,
            error_code=error_code,
        )

    def _confirmation_message(self, shipment: Shipment, selection: SettlementSelection, receipt: Receipt) -> str:
        label = METHOD_LABELS.get(selection.method.value, selection.method.value)
        message = (
            f"Your shipment {shipment.tracking_number} is booked. "
            f"Total {selection.currency} {selection.final_total} by {label} "
            f"(receipt {receipt.receipt_number})."
        )
        if selection.payment_deadline:
            message += f" Payment due by {selection.payment_deadline.isoformat()}."
        return message
