# Overview: Turns accepted live-session claims into orders, and unwinds them when claims are withdrawn.

"""
Claim -> Order Reconciliation

BUILD (build_orders_from_claims):
- Only ACCEPTED claims produce order lines.
- A claim is materialized at most once: its id is stored on the order line
  (order_lines.claim_id is unique). Lines created before claim linking
  existed carry no claim id; those are matched per customer by
  (inventory_item_id, variant_id, quantity), counting occurrences.
- Rerunning the build with no new claims creates nothing.
- New lines go on the customer's open order in the session (not PAID, not
  terminal) or on a new PENDING_PAYMENT order.
- Building consumes the reservation placed at claim acceptance:
  current_delta = -qty, reserved_delta = -qty.

DESYNC (remove_order_lines_for_claim / sync_unpaid_orders_for_session):
- Only orders whose payment_status is UNPAID (and not terminal) are touched.
  PARTIAL/PAID orders are never edited; collected money stays attached.
- A removed line returns its units to stock (current_delta = +qty).
- An order left without lines is deleted, or CANCELLED when it already has
  payment or shipment history.

Each public operation is one DB transaction.
"""

from __future__ import annotations

from collections import Counter, defaultdict

from flask import current_app

from ..extensions import db
from ..models import Claim, Customer, InventoryItem, LiveSession, Order, OrderLine, Payment, Shipment
from ..validation import NotFoundError, ValidationError
from liveseller.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .customer_service import (
    _find_customer_by_display_name,
    _get_or_create_customer_inner,
    _recompute_customer_stats_inner,
    normalize_display_name,
)
from .document_service import next_order_number_inner
from .inventory_service import _adjust_stock_inner, resolve_effective_price
from .ledger_service import append_ledger_event, format_payload
from .order_lifecycle import (
    ORDER_CANCELLED,
    ORDER_PENDING_PAYMENT,
    is_terminal,
    transition_order_status,
)
from .order_service import (
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_UNPAID,
    _recalculate_order_totals_inner,
)


CLAIM_ACCEPTED = "ACCEPTED"


def line_key(inventory_item_id: int, variant_id: int | None, quantity: int) -> tuple:
    """Composite key matching legacy (claim-less) lines to claims."""
    return (inventory_item_id, variant_id, quantity)


def _require_session(live_session_id: int) -> LiveSession:
    if not live_session_id:
        raise ValidationError("live_session_id is required")
    session = db.session.get(LiveSession, live_session_id)
    if not session:
        raise NotFoundError(f"Live session {live_session_id} not found")
    return session


def _is_editable_unpaid(order: Order) -> bool:
    return order.payment_status == PAYMENT_STATUS_UNPAID and not is_terminal(order.status)


def _resolve_existing_customer(claim: Claim) -> Customer | None:
    """Claim's customer without creating one (explicit id, else display name)."""
    if claim.customer_id is not None:
        customer = db.session.get(Customer, claim.customer_id)
        if customer:
            return customer
    return _find_customer_by_display_name(normalize_display_name(claim.temporary_name))


def _linked_claim_ids(claim_ids: list[int]) -> set[int]:
    if not claim_ids:
        return set()
    rows = (
        db.session.query(OrderLine.claim_id)
        .filter(OrderLine.claim_id.in_(claim_ids))
        .all()
    )
    return {row[0] for row in rows}


def _session_orders(live_session_id: int) -> list[Order]:
    return lock_for_update(
        db.session.query(Order).filter(Order.live_session_id == live_session_id)
    ).order_by(Order.id.asc()).all()


def _lines_by_order(orders: list[Order]) -> dict[int, list[OrderLine]]:
    by_order: dict[int, list[OrderLine]] = defaultdict(list)
    if not orders:
        return by_order
    lines = (
        db.session.query(OrderLine)
        .filter(OrderLine.order_id.in_([o.id for o in orders]))
        .order_by(OrderLine.id.asc())
        .all()
    )
    for line in lines:
        by_order[line.order_id].append(line)
    return by_order


# =============================================================================
# BUILD
# =============================================================================

def _create_order_inner(customer: Customer, live_session_id: int) -> Order:
    created_at = utcnow()
    order = Order(
        order_number=next_order_number_inner(created_at),
        customer_id=customer.id,
        live_session_id=live_session_id,
        status=ORDER_PENDING_PAYMENT,
        payment_status=PAYMENT_STATUS_UNPAID,
        created_at=created_at,
    )
    db.session.add(order)
    db.session.flush()

    append_ledger_event(
        event_type="order.created",
        event_category="order",
        entity_type="order",
        entity_id=order.id,
        order_id=order.id,
        live_session_id=live_session_id,
        note=order.order_number,
        payload=format_payload(customer_id=customer.id),
    )
    return order


def _add_claim_line_inner(order: Order, claim: Claim, item: InventoryItem) -> OrderLine:
    _, unit_price = resolve_effective_price(item, claim.variant_id)
    quantity = claim.quantity or 0
    subtotal = unit_price * quantity

    line = OrderLine(
        order_id=order.id,
        claim_id=claim.id,
        inventory_item_id=item.id,
        variant_id=claim.variant_id,
        item_code_snapshot=item.item_code,
        name_snapshot=item.name,
        unit_price_cents=unit_price,
        quantity=quantity,
        line_subtotal_cents=subtotal,
        line_discount_cents=0,
        line_total_cents=subtotal,
    )
    db.session.add(line)
    db.session.flush()

    _adjust_stock_inner(
        item,
        current_delta=-quantity,
        reserved_delta=-quantity,
        variant_id=claim.variant_id,
        reason=f"claim {claim.id} built into {order.order_number}",
        order_id=order.id,
    )
    return line


def build_orders_from_claims(live_session_id: int) -> dict:
    """
    Build orders and lines for the session's ACCEPTED claims.

    Idempotent: claims already materialized (by claim id, or by legacy
    composite-key occurrence) are skipped. Claims whose inventory item no
    longer exists are skipped with a warning.

    Returns {"created_orders": int, "created_lines": int}.
    """
    def _op():
        _require_session(live_session_id)

        existing_orders = _session_orders(live_session_id)
        lines_by_order = _lines_by_order(existing_orders)

        # Legacy lines without claim ids, counted per customer
        legacy_counts: dict[int, Counter] = defaultdict(Counter)
        for order in existing_orders:
            for line in lines_by_order.get(order.id, []):
                if line.claim_id is None:
                    legacy_counts[order.customer_id][
                        line_key(line.inventory_item_id, line.variant_id, line.quantity)
                    ] += 1

        claims = (
            db.session.query(Claim)
            .filter(Claim.live_session_id == live_session_id, Claim.status == CLAIM_ACCEPTED)
            .order_by(Claim.id.asc())
            .all()
        )
        linked = _linked_claim_ids([c.id for c in claims])

        # Group by resolved customer
        customers: dict[int, Customer] = {}
        groups: dict[int, list[Claim]] = {}
        for claim in claims:
            customer = None
            if claim.customer_id is not None:
                customer = db.session.get(Customer, claim.customer_id)
            if customer is None:
                customer = _get_or_create_customer_inner(normalize_display_name(claim.temporary_name))
            customers[customer.id] = customer
            groups.setdefault(customer.id, []).append(claim)

        created_orders = 0
        created_lines = 0
        touched: dict[int, Order] = {}

        for customer_id, group in groups.items():
            new_claims = []
            for claim in group:
                if claim.id in linked:
                    continue
                key = line_key(claim.inventory_item_id, claim.variant_id, claim.quantity)
                if legacy_counts[customer_id][key] > 0:
                    legacy_counts[customer_id][key] -= 1
                    continue
                new_claims.append(claim)

            buildable = []
            for claim in new_claims:
                item = lock_for_update(
                    db.session.query(InventoryItem).filter_by(id=claim.inventory_item_id)
                ).first()
                if item is None:
                    current_app.logger.warning(
                        "Skipping claim %s: inventory item %s not found",
                        claim.id, claim.inventory_item_id,
                    )
                    continue
                buildable.append((claim, item))

            if not buildable:
                continue

            order = next(
                (
                    o for o in existing_orders
                    if o.customer_id == customer_id
                    and o.payment_status != PAYMENT_STATUS_PAID
                    and not is_terminal(o.status)
                ),
                None,
            )
            if order is None:
                order = _create_order_inner(customers[customer_id], live_session_id)
                existing_orders.append(order)
                created_orders += 1

            for claim, item in buildable:
                _add_claim_line_inner(order, claim, item)
                created_lines += 1
            touched[order.id] = order

        for order in touched.values():
            _recalculate_order_totals_inner(order)

        db.session.commit()

        if created_orders or created_lines:
            current_app.logger.info(
                "Built orders for session %s: %s orders, %s lines",
                live_session_id, created_orders, created_lines,
            )
        return {"created_orders": created_orders, "created_lines": created_lines}

    return run_with_retry(_op)


# =============================================================================
# DESYNC
# =============================================================================

def _remove_line_inner(order: Order, line: OrderLine) -> None:
    """Delete a line and return its units to stock (flush only)."""
    item = lock_for_update(
        db.session.query(InventoryItem).filter_by(id=line.inventory_item_id)
    ).first()
    if item is not None:
        _adjust_stock_inner(
            item,
            current_delta=line.quantity or 0,
            variant_id=line.variant_id,
            reason=f"line removed from {order.order_number}",
            order_id=order.id,
        )

    append_ledger_event(
        event_type="order.line_removed",
        event_category="order",
        entity_type="order_line",
        entity_id=line.id,
        order_id=order.id,
        live_session_id=order.live_session_id,
        payload=format_payload(
            claim_id=line.claim_id,
            inventory_item_id=line.inventory_item_id,
            variant_id=line.variant_id,
            quantity=line.quantity,
        ),
    )
    db.session.delete(line)
    db.session.flush()
    db.session.expire(order, ["lines"])


def _has_money_or_shipping_history(order: Order) -> bool:
    has_payment = db.session.query(Payment.id).filter_by(order_id=order.id).first() is not None
    has_shipment = db.session.query(Shipment.id).filter_by(order_id=order.id).first() is not None
    return has_payment or has_shipment


def _settle_order_after_removal_inner(order: Order) -> None:
    """Recalculate a shrunk order, or drop it once it has no lines left."""
    remaining = db.session.query(OrderLine.id).filter_by(order_id=order.id).first()
    if remaining is not None:
        _recalculate_order_totals_inner(order)
        return

    if _has_money_or_shipping_history(order):
        transition_order_status(order, ORDER_CANCELLED)
        append_ledger_event(
            event_type="order.cancelled_empty",
            event_category="order",
            entity_type="order",
            entity_id=order.id,
            order_id=order.id,
            live_session_id=order.live_session_id,
            note=order.order_number,
        )
        _recalculate_order_totals_inner(order)
        return

    customer_id = order.customer_id
    append_ledger_event(
        event_type="order.deleted_empty",
        event_category="order",
        entity_type="order",
        entity_id=order.id,
        order_id=order.id,
        live_session_id=order.live_session_id,
        note=order.order_number,
    )
    db.session.delete(order)
    db.session.flush()
    _recompute_customer_stats_inner(customer_id)


def remove_order_lines_for_claim(claim_id: int) -> int:
    """
    Remove the order line built from a claim that is no longer accepted.

    Looks for the line by claim id, falling back to a legacy (claim-less)
    line of the claim's customer in the claim's session with the same item,
    variant and quantity. Only UNPAID, non-terminal orders are touched.
    A claim that is still ACCEPTED keeps its line.

    Returns the number of orders affected (0 or 1).
    """
    def _op():
        if not claim_id:
            raise ValidationError("claim_id is required")
        claim = db.session.get(Claim, claim_id)
        if not claim:
            raise NotFoundError(f"Claim {claim_id} not found")
        if claim.status == CLAIM_ACCEPTED:
            current_app.logger.info("Claim %s is still accepted; order lines kept", claim.id)
            return 0

        target_order = None
        target_line = None

        line = db.session.query(OrderLine).filter(OrderLine.claim_id == claim.id).first()
        if line is not None:
            order = lock_for_update(db.session.query(Order).filter_by(id=line.order_id)).first()
            if order is not None and _is_editable_unpaid(order):
                target_order, target_line = order, line
        else:
            customer = _resolve_existing_customer(claim)
            if customer is not None:
                key = line_key(claim.inventory_item_id, claim.variant_id, claim.quantity)
                orders = lock_for_update(
                    db.session.query(Order).filter(
                        Order.live_session_id == claim.live_session_id,
                        Order.customer_id == customer.id,
                    )
                ).order_by(Order.id.asc()).all()
                for order in orders:
                    if not _is_editable_unpaid(order):
                        continue
                    target_line = next(
                        (
                            l for l in order.lines
                            if l.claim_id is None
                            and line_key(l.inventory_item_id, l.variant_id, l.quantity) == key
                        ),
                        None,
                    )
                    if target_line is not None:
                        target_order = order
                        break

        if target_line is None:
            db.session.commit()
            return 0

        _remove_line_inner(target_order, target_line)
        _settle_order_after_removal_inner(target_order)
        db.session.commit()
        return 1

    return run_with_retry(_op)


def sync_unpaid_orders_for_session(live_session_id: int) -> int:
    """
    Reconcile every UNPAID order of a session against its ACCEPTED claims.

    Claim-linked lines whose claim is no longer ACCEPTED are removed. Legacy
    lines are kept only up to the number of accepted, not-yet-linked claims
    with the same (item, variant, quantity) for that customer; lines on
    PARTIAL/PAID or terminal orders count first and are never removed.

    Returns the number of orders affected.
    """
    def _op():
        _require_session(live_session_id)

        orders = _session_orders(live_session_id)
        lines_by_order = _lines_by_order(orders)

        accepted = (
            db.session.query(Claim)
            .filter(Claim.live_session_id == live_session_id, Claim.status == CLAIM_ACCEPTED)
            .all()
        )
        accepted_ids = {c.id for c in accepted}
        linked = _linked_claim_ids(list(accepted_ids))

        unmatched: dict[int, Counter] = defaultdict(Counter)
        for claim in accepted:
            if claim.id in linked:
                continue
            customer = _resolve_existing_customer(claim)
            if customer is None:
                continue
            unmatched[customer.id][line_key(claim.inventory_item_id, claim.variant_id, claim.quantity)] += 1

        # Protected orders consume legacy matches first
        for order in orders:
            if _is_editable_unpaid(order):
                continue
            for line in lines_by_order.get(order.id, []):
                if line.claim_id is None:
                    key = line_key(line.inventory_item_id, line.variant_id, line.quantity)
                    if unmatched[order.customer_id][key] > 0:
                        unmatched[order.customer_id][key] -= 1

        affected = 0
        for order in orders:
            if not _is_editable_unpaid(order):
                continue

            removed = 0
            for line in lines_by_order.get(order.id, []):
                if line.claim_id is not None:
                    if line.claim_id in accepted_ids:
                        continue
                else:
                    key = line_key(line.inventory_item_id, line.variant_id, line.quantity)
                    if unmatched[order.customer_id][key] > 0:
                        unmatched[order.customer_id][key] -= 1
                        continue
                _remove_line_inner(order, line)
                removed += 1

            if removed:
                _settle_order_after_removal_inner(order)
                affected += 1

        db.session.commit()

        if affected:
            current_app.logger.info(
                "Synced unpaid orders for session %s: %s orders affected",
                live_session_id, affected,
            )
        return affected

    return run_with_retry(_op)
