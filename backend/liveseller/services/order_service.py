# Overview: Order totals recalculation and order-level edits (fees, discount, status).

"""
Order Totals

All amounts are integer cents, so payment status is an exact comparison:

    subtotal      = sum(line_total)
    discount      = sum(line_discount)
    grand_total   = subtotal - discount - promo_discount + shipping + cod + other
    amount_paid   = sum(POSTED payments)
    balance_due   = max(0, grand_total - amount_paid)

    payment_status: UNPAID if amount_paid <= 0
                    PARTIAL if amount_paid < grand_total
                    PAID otherwise

Order status follows payment (PENDING_PAYMENT / PARTIALLY_PAID / PAID) only
while the order is not terminal; see order_lifecycle.

Every recalculation ends by refreshing the customer's aggregates.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Order, OrderLine, Payment, Shipment, Customer
from ..validation import NotFoundError, ValidationError, require_cents
from .concurrency import lock_for_update, run_with_retry
from .customer_service import _recompute_customer_stats_inner
from .ledger_service import append_ledger_event, format_payload
from .order_lifecycle import (
    ORDER_PAID,
    ORDER_PARTIALLY_PAID,
    ORDER_PENDING_PAYMENT,
    is_terminal,
    transition_order_status,
    validate_status,
)


# =============================================================================
# PAYMENT STATUS (CONSTANTS)
# =============================================================================

PAYMENT_STATUS_UNPAID = "UNPAID"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_PAID = "PAID"

PAYMENT_POSTED = "POSTED"
PAYMENT_VOIDED = "VOIDED"

FEE_FIELDS = (
    "shipping_fee_cents",
    "cod_fee_cents",
    "other_fees_cents",
    "promo_discount_total_cents",
)


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    discount_total_cents: int
    promo_discount_total_cents: int
    shipping_fee_cents: int
    cod_fee_cents: int
    other_fees_cents: int
    grand_total_cents: int
    amount_paid_cents: int
    balance_due_cents: int
    payment_status: str
    status: str


def derive_payment_status(amount_paid_cents: int, grand_total_cents: int) -> str:
    if amount_paid_cents <= 0:
        return PAYMENT_STATUS_UNPAID
    if amount_paid_cents < grand_total_cents:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_PAID


_STATUS_FOR_PAYMENT = {
    PAYMENT_STATUS_UNPAID: ORDER_PENDING_PAYMENT,
    PAYMENT_STATUS_PARTIAL: ORDER_PARTIALLY_PAID,
    PAYMENT_STATUS_PAID: ORDER_PAID,
}


def compute_order_totals(order: Order, lines: list[OrderLine], payments: list[Payment]) -> OrderTotals:
    """Pure derivation of an order's totals and statuses. Nothing is written."""
    subtotal = sum(line.line_total_cents or 0 for line in lines)
    discount = sum(line.line_discount_cents or 0 for line in lines)
    promo = order.promo_discount_total_cents or 0
    shipping = order.shipping_fee_cents or 0
    cod = order.cod_fee_cents or 0
    other = order.other_fees_cents or 0

    grand_total = subtotal - discount - promo + shipping + cod + other
    amount_paid = sum(p.amount_cents or 0 for p in payments if p.status == PAYMENT_POSTED)
    payment_status = derive_payment_status(amount_paid, grand_total)

    status = order.status
    if not is_terminal(status):
        status = _STATUS_FOR_PAYMENT[payment_status]

    return OrderTotals(
        subtotal_cents=subtotal,
        discount_total_cents=discount,
        promo_discount_total_cents=promo,
        shipping_fee_cents=shipping,
        cod_fee_cents=cod,
        other_fees_cents=other,
        grand_total_cents=grand_total,
        amount_paid_cents=amount_paid,
        balance_due_cents=max(0, grand_total - amount_paid),
        payment_status=payment_status,
        status=status,
    )


def _get_order_locked(order_id: int) -> Order:
    if not order_id:
        raise ValidationError("order_id is required")
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def _recalculate_order_totals_inner(order: Order) -> Order:
    """
    Recompute and persist derived fields without retry or commit (flush only),
    then refresh the customer's aggregates.
    """
    lines = db.session.query(OrderLine).filter_by(order_id=order.id).all()
    payments = db.session.query(Payment).filter_by(order_id=order.id).all()
    totals = compute_order_totals(order, lines, payments)

    order.subtotal_cents = totals.subtotal_cents
    order.discount_total_cents = totals.discount_total_cents
    order.grand_total_cents = totals.grand_total_cents
    order.amount_paid_cents = totals.amount_paid_cents
    order.balance_due_cents = totals.balance_due_cents
    order.payment_status = totals.payment_status

    previous = order.status
    if transition_order_status(order, totals.status):
        append_ledger_event(
            event_type="order.status_changed",
            event_category="order",
            entity_type="order",
            entity_id=order.id,
            order_id=order.id,
            live_session_id=order.live_session_id,
            payload=format_payload(from_status=previous, to_status=order.status, cause="payment"),
        )

    db.session.flush()
    _recompute_customer_stats_inner(order.customer_id)
    return order


def recalculate_order_totals(order_id: int) -> Order:
    def _op():
        order = _get_order_locked(order_id)
        _recalculate_order_totals_inner(order)
        db.session.commit()
        return order

    return run_with_retry(_op)


# =============================================================================
# ORDER EDITS
# =============================================================================

def update_order_fees(
    order_id: int,
    *,
    shipping_fee_cents: int | None = None,
    cod_fee_cents: int | None = None,
    other_fees_cents: int | None = None,
    promo_discount_total_cents: int | None = None,
) -> Order:
    """
    Patch fee/discount fields and recalculate.

    Omitted (None) fields are unchanged; negative values are rejected.
    Terminal orders keep their status.
    """
    patch = {
        "shipping_fee_cents": shipping_fee_cents,
        "cod_fee_cents": cod_fee_cents,
        "other_fees_cents": other_fees_cents,
        "promo_discount_total_cents": promo_discount_total_cents,
    }

    def _op():
        order = _get_order_locked(order_id)
        changes = {}
        for field, value in patch.items():
            if value is None:
                continue
            changes[field] = require_cents(field, value)
        for field, value in changes.items():
            setattr(order, field, value)

        if changes:
            append_ledger_event(
                event_type="order.fees_updated",
                event_category="order",
                entity_type="order",
                entity_id=order.id,
                order_id=order.id,
                payload=format_payload(**changes),
            )
        _recalculate_order_totals_inner(order)
        db.session.commit()
        return order

    return run_with_retry(_op)


def update_order_discount(order_id: int, amount_cents: int) -> Order:
    """Set the promo discount; negative amounts clamp to zero."""
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise ValidationError("amount_cents must be an integer amount in cents")
    return update_order_fees(order_id, promo_discount_total_cents=max(0, amount_cents))


def update_order_status(order_id: int, status: str, *, note: str | None = None) -> Order:
    """
    Manual status change (e.g. cancel, mark packing/delivered/returned).

    Illegal moves raise OrderTransitionError.
    """
    def _op():
        validate_status(status)
        order = _get_order_locked(order_id)
        previous = order.status
        if transition_order_status(order, status):
            append_ledger_event(
                event_type="order.status_changed",
                event_category="order",
                entity_type="order",
                entity_id=order.id,
                order_id=order.id,
                live_session_id=order.live_session_id,
                note=note,
                payload=format_payload(from_status=previous, to_status=status, cause="manual"),
            )
            db.session.flush()
            _recompute_customer_stats_inner(order.customer_id)
        db.session.commit()
        return order

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def get_order_detail(order_id: int) -> dict:
    order = get_order(order_id)
    lines = db.session.query(OrderLine).filter_by(order_id=order_id).order_by(OrderLine.id).all()
    payments = (
        db.session.query(Payment)
        .filter_by(order_id=order_id)
        .order_by(Payment.paid_at.asc(), Payment.id.asc())
        .all()
    )
    shipment = db.session.query(Shipment).filter_by(order_id=order_id).first()
    customer = db.session.get(Customer, order.customer_id)
    return {
        "order": order.to_dict(),
        "customer": customer.to_dict() if customer else None,
        "lines": [line.to_dict() for line in lines],
        "payments": [p.to_dict() for p in payments],
        "shipment": shipment.to_dict() if shipment else None,
    }


def list_orders_for_session(live_session_id: int) -> list[Order]:
    """Orders of a live session, newest first."""
    return (
        db.session.query(Order)
        .filter(Order.live_session_id == live_session_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def list_orders(
    *,
    status: str | None = None,
    payment_status: str | None = None,
    customer_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Order], int]:
    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    if payment_status:
        query = query.filter(Order.payment_status == payment_status)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)

    total = query.count()
    limit = max(1, min(limit, 500))
    offset = max(0, offset)
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(limit).all()
    return orders, total
