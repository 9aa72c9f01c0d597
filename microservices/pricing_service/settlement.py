"""
Settlement Method Resolver

Pure function from (PricingBreakdown, settlement method) to SettlementSelection.
Exactly one adjustment applies per choice:

    card / bank_transfer    -> none      (immediate)
    cash_on_collection      -> discount  (deferred_collection, drums only)
    pay_on_arrival          -> premium   (deferred_arrival)
    standard_30_day         -> none      (deferred_30_day, deadline + sub-method)

Custom-quote breakdowns use a reduced method set, receive no drum discount,
and always settle as immediate because a payment is taken on acceptance.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import FrozenSet, Iterable, Optional

from .models import (
    Adjustment, CashDiscountKind, ItemClassification, PricingBreakdown,
    RatePolicy, SettlementClassification, SettlementMethod,
    SettlementSelection, SubMethod,
)
from .protocols import PricingValidationError, SettlementMismatchError
from .rate_table import to_money

STANDARD_METHODS: FrozenSet[SettlementMethod] = frozenset({
    SettlementMethod.CARD,
    SettlementMethod.CASH_ON_COLLECTION,
    SettlementMethod.PAY_ON_ARRIVAL,
    SettlementMethod.STANDARD_30_DAY,
})

CLASSIFICATION_BY_METHOD = {
    SettlementMethod.CARD: SettlementClassification.IMMEDIATE,
    SettlementMethod.BANK_TRANSFER: SettlementClassification.IMMEDIATE,
    SettlementMethod.CASH_ON_COLLECTION: SettlementClassification.DEFERRED_COLLECTION,
    SettlementMethod.PAY_ON_ARRIVAL: SettlementClassification.DEFERRED_ARRIVAL,
    SettlementMethod.STANDARD_30_DAY: SettlementClassification.DEFERRED_30_DAY,
}


def custom_quote_methods(policy: RatePolicy) -> FrozenSet[SettlementMethod]:
    """Methods offered when accepting a custom quote"""
    methods = {
        SettlementMethod.CARD,
        SettlementMethod.BANK_TRANSFER,
        SettlementMethod.CASH_ON_COLLECTION,
    }
    if policy.custom_quote_allow_pay_on_arrival:
        methods.add(SettlementMethod.PAY_ON_ARRIVAL)
    return frozenset(methods)


def allowed_methods_for(breakdown: PricingBreakdown, policy: RatePolicy) -> FrozenSet[SettlementMethod]:
    if breakdown.classification == ItemClassification.CUSTOM:
        return custom_quote_methods(policy)
    return STANDARD_METHODS


def cash_discount(breakdown: PricingBreakdown, policy: RatePolicy) -> Decimal:
    """Cash-on-collection discount, never more than the total"""
    rule = policy.cash_discount
    if rule.kind == CashDiscountKind.PER_UNIT:
        amount = rule.value * (breakdown.quantity or 0)
    elif rule.kind == CashDiscountKind.FLAT:
        amount = rule.value
    else:
        amount = breakdown.base * rule.value / Decimal("100")
    return to_money(min(amount, breakdown.total_before_settlement))


def resolve_settlement(
    breakdown: PricingBreakdown,
    method: SettlementMethod,
    sub_method: Optional[SubMethod],
    policy: RatePolicy,
    *,
    collection_date: Optional[date] = None,
    allowed_methods: Optional[Iterable[SettlementMethod]] = None,
) -> SettlementSelection:
    """
    Apply the settlement rule for the chosen method.

    Args:
        breakdown: Rate table output (or a custom-quote breakdown)
        method: Chosen settlement method
        sub_method: Instrument for 30-day terms
        policy: Active rate policy
        collection_date: Start of the 30-day term (defaults to today, UTC)
        allowed_methods: Override of the method set for this breakdown

    Raises:
        PricingValidationError: method unavailable, cash on a non-drum item,
            or 30-day terms without a sub-method
    """
    allowed = frozenset(allowed_methods) if allowed_methods is not None else allowed_methods_for(breakdown, policy)
    if method not in allowed:
        raise PricingValidationError(f"Settlement method '{method.value}' is not available for this booking")

    is_custom = breakdown.classification == ItemClassification.CUSTOM
    total = to_money(breakdown.total_before_settlement)
    adjustment = Adjustment.NONE
    adjustment_amount = Decimal("0.00")
    deadline = None
    recorded_sub_method = None

    if method == SettlementMethod.CASH_ON_COLLECTION and not is_custom:
        if breakdown.classification != ItemClassification.DRUM:
            raise PricingValidationError("Cash on collection is only available for drum shipments")
        adjustment = Adjustment.DISCOUNT
        adjustment_amount = cash_discount(breakdown, policy)
    elif method == SettlementMethod.PAY_ON_ARRIVAL:
        adjustment = Adjustment.PREMIUM
        adjustment_amount = to_money(total * policy.pay_on_arrival_premium_rate)
    elif method == SettlementMethod.STANDARD_30_DAY:
        if sub_method is None:
            raise PricingValidationError("30-day terms require a payment sub-method")
        recorded_sub_method = sub_method
        start = collection_date or datetime.now(timezone.utc).date()
        deadline = start + timedelta(days=policy.payment_terms_days)

    if adjustment == Adjustment.DISCOUNT:
        final_total = total - adjustment_amount
    elif adjustment == Adjustment.PREMIUM:
        final_total = total + adjustment_amount
    else:
        final_total = total

    classification = (
        SettlementClassification.IMMEDIATE if is_custom else CLASSIFICATION_BY_METHOD[method]
    )

    return SettlementSelection(
        method=method,
        sub_method=recorded_sub_method,
        adjustment=adjustment,
        adjustment_amount=adjustment_amount,
        total_before_settlement=total,
        final_total=to_money(max(final_total, Decimal("0"))),
        settlement_classification=classification,
        payment_deadline=deadline,
        currency=breakdown.currency,
    )


def verify_displayed_total(
    selection: SettlementSelection,
    displayed_total: Optional[Decimal],
    tolerance: Decimal,
) -> None:
    """Reject a stale total shown to the customer"""
    if displayed_total is None:
        return
    if abs(selection.final_total - displayed_total) > tolerance:
        raise SettlementMismatchError(selection.final_total, displayed_total, tolerance)
