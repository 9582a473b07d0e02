# Overview: Order status state machine; explicit transition table with named terminal states.

"""
Order Status State Machine

================================================================================
PURPOSE: Single authority over which order status changes are legal
================================================================================

STATES:
    DRAFT, PENDING_PAYMENT, PARTIALLY_PAID, PAID   payment-driven
    PACKING                                        fulfilment started
    SHIPPED, DELIVERED                             fulfilment (terminal)
    CANCELLED, RETURNED                            closed (terminal, final)

TERMINAL states are payment-locked: recalculation never overwrites them
with a payment-derived status. Only numeric/payment fields still change.

FINAL states (CANCELLED, RETURNED) have no outgoing transitions at all.

TRANSITIONS:
    open (DRAFT..PACKING) -> any payment-derived status
    open                  -> CANCELLED, DELIVERED
    PENDING_PAYMENT, PARTIALLY_PAID, PAID -> PACKING
    PAID, PACKING         -> SHIPPED
    SHIPPED               -> DELIVERED, RETURNED
    DELIVERED             -> RETURNED

An illegal move raises OrderTransitionError rather than being ignored.
Moving to the current status is a no-op.
================================================================================
"""

from __future__ import annotations

from ..validation import ConflictError, ValidationError


# =============================================================================
# ORDER STATUS (CONSTANTS)
# =============================================================================

ORDER_DRAFT = "DRAFT"
ORDER_PENDING_PAYMENT = "PENDING_PAYMENT"
ORDER_PARTIALLY_PAID = "PARTIALLY_PAID"
ORDER_PAID = "PAID"
ORDER_PACKING = "PACKING"
ORDER_SHIPPED = "SHIPPED"
ORDER_DELIVERED = "DELIVERED"
ORDER_CANCELLED = "CANCELLED"
ORDER_RETURNED = "RETURNED"

VALID_ORDER_STATUSES = {
    ORDER_DRAFT,
    ORDER_PENDING_PAYMENT,
    ORDER_PARTIALLY_PAID,
    ORDER_PAID,
    ORDER_PACKING,
    ORDER_SHIPPED,
    ORDER_DELIVERED,
    ORDER_CANCELLED,
    ORDER_RETURNED,
}

PAYMENT_DRIVEN_STATUSES = {ORDER_PENDING_PAYMENT, ORDER_PARTIALLY_PAID, ORDER_PAID}
OPEN_STATUSES = {ORDER_DRAFT, ORDER_PACKING} | PAYMENT_DRIVEN_STATUSES
TERMINAL_STATUSES = {ORDER_CANCELLED, ORDER_RETURNED, ORDER_SHIPPED, ORDER_DELIVERED}
FINAL_STATUSES = {ORDER_CANCELLED, ORDER_RETURNED}

# Fulfilment progress rank; shipment cascades never move an order to a lower rank.
STATUS_RANK = {
    ORDER_DRAFT: 0,
    ORDER_PENDING_PAYMENT: 1,
    ORDER_PARTIALLY_PAID: 1,
    ORDER_PAID: 1,
    ORDER_PACKING: 2,
    ORDER_SHIPPED: 3,
    ORDER_DELIVERED: 4,
    ORDER_RETURNED: 5,
    ORDER_CANCELLED: 5,
}


def _build_transitions() -> frozenset[tuple[str, str]]:
    pairs = set()
    for src in OPEN_STATUSES:
        for dst in PAYMENT_DRIVEN_STATUSES | {ORDER_CANCELLED, ORDER_DELIVERED}:
            pairs.add((src, dst))
    for src in PAYMENT_DRIVEN_STATUSES:
        pairs.add((src, ORDER_PACKING))
    pairs.add((ORDER_PAID, ORDER_SHIPPED))
    pairs.add((ORDER_PACKING, ORDER_SHIPPED))
    pairs.add((ORDER_SHIPPED, ORDER_DELIVERED))
    pairs.add((ORDER_SHIPPED, ORDER_RETURNED))
    pairs.add((ORDER_DELIVERED, ORDER_RETURNED))
    return frozenset((src, dst) for src, dst in pairs if src != dst)


VALID_TRANSITIONS = _build_transitions()


class OrderTransitionError(ConflictError):
    """
    Raised when an illegal order status transition is attempted.

    This is a domain error: the requested move violates the order lifecycle.
    """
    pass


def validate_status(status: str) -> None:
    if status not in VALID_ORDER_STATUSES:
        raise ValidationError(
            f"Invalid order status '{status}'. Must be one of: {', '.join(sorted(VALID_ORDER_STATUSES))}"
        )


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def is_final(status: str) -> bool:
    return status in FINAL_STATUSES


def can_transition(from_status: str, to_status: str) -> bool:
    validate_status(from_status)
    validate_status(to_status)
    if from_status == to_status:
        return True
    return (from_status, to_status) in VALID_TRANSITIONS


def is_advance(from_status: str, to_status: str) -> bool:
    """True when to_status is strictly further along fulfilment than from_status."""
    return STATUS_RANK[to_status] > STATUS_RANK[from_status]


def transition_order_status(order, to_status: str) -> bool:
    """
    Move order to to_status (no flush/commit).

    Returns True when the status changed, False for a same-state no-op.
    Raises OrderTransitionError for illegal moves.
    """
    if not can_transition(order.status, to_status):
        raise OrderTransitionError(
            f"Cannot transition order {order.id} from {order.status} to {to_status}"
        )
    if order.status == to_status:
        return False
    order.status = to_status
    return True
