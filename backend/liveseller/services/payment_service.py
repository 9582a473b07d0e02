# Overview: Payment ledger operations; append-only posted/voided payments against orders.

"""
Payment Ledger

DESIGN PRINCIPLES:
- Payments are separate from orders (many-to-one relationship)
- Split and partial payments: an order may have any number of payments
- Append-only: a mistaken payment is VOIDED, never deleted or edited
- Every payment change re-derives the order's totals and statuses in the
  same transaction (order_service._recalculate_order_totals_inner)
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Payment
from ..validation import NotFoundError, ValidationError, require_cents, require_choice
from liveseller.time_utils import parse_iso_datetime, utcnow
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import append_ledger_event, format_payload
from .order_service import (
    PAYMENT_POSTED,
    PAYMENT_VOIDED,
    _get_order_locked,
    _recalculate_order_totals_inner,
)


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_GCASH = "GCASH"
METHOD_MAYA = "MAYA"
METHOD_BANK = "BANK"
METHOD_COD = "COD"
METHOD_CASH = "CASH"
METHOD_OTHER = "OTHER"

VALID_PAYMENT_METHODS = {
    METHOD_GCASH,
    METHOD_MAYA,
    METHOD_BANK,
    METHOD_COD,
    METHOD_CASH,
    METHOD_OTHER,
}


def _parse_paid_at(value) -> datetime:
    """None -> now; datetime passes through; ISO strings are normalized to UTC-naive."""
    if value is None:
        return utcnow()
    if isinstance(value, datetime):
        return value
    try:
        parsed = parse_iso_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError("paid_at must be an ISO-8601 datetime")
    return parsed or utcnow()


def record_payment(
    order_id: int,
    amount_cents: int,
    method: str,
    *,
    paid_at=None,
    reference_number: str | None = None,
    notes: str | None = None,
) -> dict:
    """
    Post a payment against an order and recalculate the order.

    Raises:
        ValidationError: missing order id, non-positive amount, unknown method
        NotFoundError: order does not exist

    Returns {"payment": Payment, "order": Order}.
    """
    def _op():
        if not order_id:
            raise ValidationError("order_id is required")
        amount = require_cents("amount_cents", amount_cents, allow_zero=False)
        require_choice("method", method, VALID_PAYMENT_METHODS)
        when = _parse_paid_at(paid_at)

        order = _get_order_locked(order_id)

        payment = Payment(
            order_id=order.id,
            amount_cents=amount,
            method=method,
            reference_number=(reference_number or "").strip() or None,
            notes=notes,
            status=PAYMENT_POSTED,
            paid_at=when,
        )
        db.session.add(payment)
        db.session.flush()

        append_ledger_event(
            event_type="payment.posted",
            event_category="payment",
            entity_type="payment",
            entity_id=payment.id,
            order_id=order.id,
            live_session_id=order.live_session_id,
            occurred_at=when,
            payload=format_payload(amount_cents=amount, method=method),
        )

        _recalculate_order_totals_inner(order)
        db.session.commit()
        return {"payment": payment, "order": order}

    return run_with_retry(_op)


def void_payment(payment_id: int, *, reason: str | None = None) -> dict:
    """
    Void a payment (status flip, never a delete) and recalculate the order.

    Voiding an already VOIDED payment only recalculates.
    Raises NotFoundError for an unknown payment.
    """
    def _op():
        if not payment_id:
            raise ValidationError("payment_id is required")
        payment = lock_for_update(db.session.query(Payment).filter_by(id=payment_id)).first()
        if not payment:
            raise NotFoundError(f"Payment {payment_id} not found")

        order = _get_order_locked(payment.order_id)

        if payment.status != PAYMENT_VOIDED:
            payment.status = PAYMENT_VOIDED
            payment.voided_at = utcnow()
            db.session.flush()
            append_ledger_event(
                event_type="payment.voided",
                event_category="payment",
                entity_type="payment",
                entity_id=payment.id,
                order_id=order.id,
                live_session_id=order.live_session_id,
                note=reason,
                payload=format_payload(amount_cents=payment.amount_cents, method=payment.method),
            )

        _recalculate_order_totals_inner(order)
        db.session.commit()
        return {"payment": payment, "order": order}

    return run_with_retry(_op)


def get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError(f"Payment {payment_id} not found")
    return payment


def list_payments_for_order(order_id: int, *, include_voided: bool = True) -> list[Payment]:
    """Payments for an order, oldest first."""
    query = db.session.query(Payment).filter(Payment.order_id == order_id)
    if not include_voided:
        query = query.filter(Payment.status == PAYMENT_POSTED)
    return query.order_by(Payment.paid_at.asc(), Payment.id.asc()).all()
