# Overview: Shipment upsert and status sync; cascades shipment state into order state.

"""
Shipment Status Synchronizer

One shipment per order. Saving a shipment mirrors its fee onto the order
(order.shipping_fee_cents) and recalculates the order.

CASCADE (shipment status -> order status), checked in order:
    DELIVERED                               -> order DELIVERED
    IN_TRANSIT and payment_status PAID      -> order SHIPPED
    PENDING/BOOKED and PENDING_PAYMENT      -> order PACKING

The cascade only moves an order forward (order_lifecycle.STATUS_RANK); a
target behind the order's current progress is skipped. CANCELLED/RETURNED
orders are never moved by the cascade; the shipment itself still saves.
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Order, Shipment
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    require_cents,
    require_choice,
    validate_payload,
)
from liveseller.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .customer_service import _recompute_customer_stats_inner
from .ledger_service import append_ledger_event, format_payload
from .order_lifecycle import (
    ORDER_DELIVERED,
    ORDER_PACKING,
    ORDER_PENDING_PAYMENT,
    ORDER_SHIPPED,
    is_advance,
    is_final,
    transition_order_status,
)
from .order_service import PAYMENT_STATUS_PAID, _get_order_locked, _recalculate_order_totals_inner


# =============================================================================
# SHIPMENT STATUS (CONSTANTS)
# =============================================================================

SHIPMENT_PENDING = "PENDING"
SHIPMENT_BOOKED = "BOOKED"
SHIPMENT_IN_TRANSIT = "IN_TRANSIT"
SHIPMENT_DELIVERED = "DELIVERED"
SHIPMENT_RETURNED = "RETURNED"
SHIPMENT_LOST = "LOST"

VALID_SHIPMENT_STATUSES = {
    SHIPMENT_PENDING,
    SHIPMENT_BOOKED,
    SHIPMENT_IN_TRANSIT,
    SHIPMENT_DELIVERED,
    SHIPMENT_RETURNED,
    SHIPMENT_LOST,
}

SHIPMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "courier",
        "tracking_number",
        "shipping_fee_cents",
        "status",
        "booking_date",
        "ship_date",
        "delivery_date",
        "notes",
    },
)


def cascade_target(shipment_status: str, order: Order) -> str | None:
    """Order status implied by a shipment status, or None."""
    if shipment_status == SHIPMENT_DELIVERED:
        return ORDER_DELIVERED
    if shipment_status == SHIPMENT_IN_TRANSIT and order.payment_status == PAYMENT_STATUS_PAID:
        return ORDER_SHIPPED
    if shipment_status in {SHIPMENT_PENDING, SHIPMENT_BOOKED} and order.status == ORDER_PENDING_PAYMENT:
        return ORDER_PACKING
    return None


def _apply_cascade_inner(order: Order, shipment: Shipment) -> bool:
    """Apply the shipment -> order cascade (flush only). Returns True if status changed."""
    target = cascade_target(shipment.status, order)
    if target is None or target == order.status:
        return False
    if is_final(order.status) or not is_advance(order.status, target):
        return False

    previous = order.status
    transition_order_status(order, target)
    append_ledger_event(
        event_type="order.status_changed",
        event_category="order",
        entity_type="order",
        entity_id=order.id,
        order_id=order.id,
        live_session_id=order.live_session_id,
        payload=format_payload(
            from_status=previous,
            to_status=target,
            cause="shipment",
            shipment_status=shipment.status,
        ),
    )
    db.session.flush()
    _recompute_customer_stats_inner(order.customer_id)
    return True


def _autofill_dates(shipment: Shipment, *, now: datetime) -> None:
    """Fill ship/delivery dates the first time the status implies them."""
    if shipment.status in {SHIPMENT_IN_TRANSIT, SHIPMENT_DELIVERED} and shipment.ship_date is None:
        shipment.ship_date = now
    if shipment.status == SHIPMENT_DELIVERED and shipment.delivery_date is None:
        shipment.delivery_date = now


def create_or_update_shipment(order_id: int, payload: dict) -> dict:
    """
    Upsert the order's shipment, mirror its fee onto the order, recalculate,
    then cascade shipment status into order status.

    Returns {"shipment": Shipment, "order": Order}.
    """
    def _op():
        if not order_id:
            raise ValidationError("order_id is required")
        patch = validate_payload(
            model=Shipment, payload=payload, policy=SHIPMENT_POLICY, partial=True
        )
        if patch.get("shipping_fee_cents") is not None:
            patch["shipping_fee_cents"] = require_cents("shipping_fee_cents", patch["shipping_fee_cents"])
        if "status" in patch:
            require_choice("status", patch["status"], VALID_SHIPMENT_STATUSES)

        order = _get_order_locked(order_id)

        shipment = lock_for_update(db.session.query(Shipment).filter_by(order_id=order.id)).first()
        created = shipment is None
        if created:
            shipment = Shipment(order_id=order.id, status=SHIPMENT_PENDING, shipping_fee_cents=0)
            db.session.add(shipment)

        for key, value in patch.items():
            if value is None and key in {"status", "shipping_fee_cents"}:
                continue
            setattr(shipment, key, value)
        _autofill_dates(shipment, now=utcnow())
        db.session.flush()

        append_ledger_event(
            event_type="shipment.created" if created else "shipment.updated",
            event_category="shipment",
            entity_type="shipment",
            entity_id=shipment.id,
            order_id=order.id,
            live_session_id=order.live_session_id,
            payload=format_payload(
                status=shipment.status,
                shipping_fee_cents=shipment.shipping_fee_cents,
                courier=shipment.courier,
            ),
        )

        order.shipping_fee_cents = shipment.shipping_fee_cents or 0
        _recalculate_order_totals_inner(order)
        _apply_cascade_inner(order, shipment)

        db.session.commit()
        return {"shipment": shipment, "order": order}

    return run_with_retry(_op)


def update_shipment_status(
    shipment_id: int,
    status: str,
    *,
    ship_date: datetime | None = None,
    delivery_date: datetime | None = None,
) -> dict:
    """
    One-click shipment status change with the same order cascade.

    Explicit dates win; otherwise ship/delivery dates are filled the first
    time the new status implies them.
    """
    def _op():
        require_choice("status", status, VALID_SHIPMENT_STATUSES)
        shipment = lock_for_update(db.session.query(Shipment).filter_by(id=shipment_id)).first()
        if not shipment:
            raise NotFoundError(f"Shipment {shipment_id} not found")

        order = _get_order_locked(shipment.order_id)

        previous = shipment.status
        shipment.status = status
        if ship_date is not None:
            shipment.ship_date = ship_date
        if delivery_date is not None:
            shipment.delivery_date = delivery_date
        _autofill_dates(shipment, now=utcnow())
        db.session.flush()

        append_ledger_event(
            event_type="shipment.status_changed",
            event_category="shipment",
            entity_type="shipment",
            entity_id=shipment.id,
            order_id=order.id,
            live_session_id=order.live_session_id,
            payload=format_payload(from_status=previous, to_status=status),
        )

        _apply_cascade_inner(order, shipment)
        db.session.commit()
        return {"shipment": shipment, "order": order}

    return run_with_retry(_op)


def get_shipment(shipment_id: int) -> Shipment:
    shipment = db.session.get(Shipment, shipment_id)
    if not shipment:
        raise NotFoundError(f"Shipment {shipment_id} not found")
    return shipment


def get_shipment_for_order(order_id: int) -> Shipment | None:
    if not order_id:
        return None
    return db.session.query(Shipment).filter_by(order_id=order_id).first()
