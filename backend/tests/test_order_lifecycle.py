# Overview: Pytest coverage for the order status state machine.

import pytest

from liveseller.services.order_lifecycle import (
    OrderTransitionError,
    can_transition,
    is_advance,
    is_final,
    is_terminal,
    transition_order_status,
)
from liveseller.validation import ValidationError


class _Order:
    def __init__(self, status):
        self.id = 1
        self.status = status


@pytest.mark.parametrize("src,dst", [
    ("PENDING_PAYMENT", "PARTIALLY_PAID"),
    ("PARTIALLY_PAID", "PAID"),
    ("PAID", "PENDING_PAYMENT"),
    ("PACKING", "PAID"),
    ("PENDING_PAYMENT", "PACKING"),
    ("PAID", "SHIPPED"),
    ("PACKING", "SHIPPED"),
    ("SHIPPED", "DELIVERED"),
    ("SHIPPED", "RETURNED"),
    ("DELIVERED", "RETURNED"),
    ("PENDING_PAYMENT", "CANCELLED"),
    ("DRAFT", "PENDING_PAYMENT"),
])
def test_allowed_transitions(src, dst):
    assert can_transition(src, dst)


@pytest.mark.parametrize("src,dst", [
    ("CANCELLED", "PENDING_PAYMENT"),
    ("RETURNED", "DELIVERED"),
    ("DELIVERED", "PAID"),
    ("SHIPPED", "PACKING"),
    ("PENDING_PAYMENT", "SHIPPED"),
    ("PENDING_PAYMENT", "RETURNED"),
])
def test_rejected_transitions(src, dst):
    assert not can_transition(src, dst)


def test_same_state_is_noop():
    order = _Order("PAID")
    assert transition_order_status(order, "PAID") is False
    assert order.status == "PAID"


def test_illegal_move_raises_and_leaves_status():
    order = _Order("CANCELLED")
    with pytest.raises(OrderTransitionError):
        transition_order_status(order, "PAID")
    assert order.status == "CANCELLED"


def test_unknown_status_rejected():
    with pytest.raises(ValidationError):
        can_transition("PAID", "ON_HOLD")


def test_terminal_and_final_sets():
    assert is_terminal("SHIPPED") and not is_final("SHIPPED")
    assert is_terminal("CANCELLED") and is_final("CANCELLED")
    assert not is_terminal("PACKING")


def test_advance_ranks():
    assert is_advance("PAID", "SHIPPED")
    assert not is_advance("DELIVERED", "SHIPPED")
    assert not is_advance("PAID", "PENDING_PAYMENT")
