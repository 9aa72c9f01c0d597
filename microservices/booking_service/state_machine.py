"""
Booking State Machine

    form_capture -> pricing_computed -> awaiting_settlement_choice
        -> {custom_quote_branch | settlement_recorded} -> confirmed

Unrated items jump from form_capture straight to custom_quote_branch. Any
state except a terminal one may move to failed.
"""

import uuid
from typing import Dict, List, Optional

from microservices.pricing_service.models import SettlementClassification

from .models import BookingState, Shipment, ShipmentStatus
from .protocols import InvalidBookingStateError

VALID_TRANSITIONS: Dict[BookingState, List[BookingState]] = {
    BookingState.FORM_CAPTURE: [BookingState.PRICING_COMPUTED, BookingState.CUSTOM_QUOTE_BRANCH, BookingState.FAILED],
    BookingState.PRICING_COMPUTED: [BookingState.AWAITING_SETTLEMENT_CHOICE, BookingState.FAILED],
    BookingState.AWAITING_SETTLEMENT_CHOICE: [
        BookingState.SETTLEMENT_RECORDED, BookingState.CUSTOM_QUOTE_BRANCH, BookingState.FAILED,
    ],
    BookingState.CUSTOM_QUOTE_BRANCH: [BookingState.SETTLEMENT_RECORDED, BookingState.FAILED],
    BookingState.SETTLEMENT_RECORDED: [BookingState.CONFIRMED, BookingState.FAILED],
    BookingState.CONFIRMED: [],  # Terminal state
    BookingState.FAILED: [],  # Terminal state
}

# One shipment status per settlement classification, and no two share one
SHIPMENT_STATUS_BY_CLASSIFICATION: Dict[SettlementClassification, ShipmentStatus] = {
    SettlementClassification.IMMEDIATE: ShipmentStatus.PENDING_PAYMENT,
    SettlementClassification.DEFERRED_COLLECTION: ShipmentStatus.AWAITING_COLLECTION,
    SettlementClassification.DEFERRED_ARRIVAL: ShipmentStatus.AWAITING_ARRIVAL,
    SettlementClassification.DEFERRED_30_DAY: ShipmentStatus.AWAITING_PAYMENT_TERMS,
}

SETTLED_STATUSES = frozenset(SHIPMENT_STATUS_BY_CLASSIFICATION.values()) | {ShipmentStatus.PENDING_COLLECTION}


def shipment_status_for(classification: SettlementClassification) -> ShipmentStatus:
    return SHIPMENT_STATUS_BY_CLASSIFICATION[classification]


def state_for_shipment(shipment: Shipment) -> BookingState:
    """Workflow state implied by a stored shipment"""
    if shipment.status == ShipmentStatus.PENDING:
        return BookingState.AWAITING_SETTLEMENT_CHOICE
    if shipment.status == ShipmentStatus.AWAITING_QUOTE:
        return BookingState.CUSTOM_QUOTE_BRANCH
    if shipment.status in SETTLED_STATUSES:
        return BookingState.CONFIRMED
    return BookingState.FAILED


class BookingSession:
    """
    One booking's progress through the workflow.

    The correlation id tags every persistence step of the booking in the
    saga log.
    """

    def __init__(
        self,
        correlation_id: Optional[str] = None,
        state: BookingState = BookingState.FORM_CAPTURE,
        shipment_id: Optional[str] = None,
    ):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.state = state
        self.shipment_id = shipment_id
        self.history: List[BookingState] = [state]
        self.error: Optional[str] = None

    @classmethod
    def resume(cls, shipment: Shipment) -> "BookingSession":
        """Session for a shipment persisted by an earlier request"""
        return cls(
            correlation_id=shipment.correlation_id,
            state=state_for_shipment(shipment),
            shipment_id=shipment.id,
        )

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self.state]

    def can_transition(self, target: BookingState) -> bool:
        return target in VALID_TRANSITIONS.get(self.state, [])

    def transition(self, target: BookingState) -> BookingState:
        if not self.can_transition(target):
            raise InvalidBookingStateError(
                f"Cannot move booking {self.correlation_id} from {self.state.value} to {target.value}"
            )
        self.state = target
        self.history.append(target)
        return target

    def fail(self, error: str) -> None:
        self.error = error
        if not self.is_terminal:
            self.transition(BookingState.FAILED)
