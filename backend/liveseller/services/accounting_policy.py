# Overview: Configurable "paid order" and "no-pay" predicates shared by customer stats and finance.

"""
Accounting Policy

One definition of "paid" and one of "no-pay" apply everywhere, chosen by
configuration:

PAID_ORDER_DEFINITION
    FULLY_PAID   payment_status PAID, or amount_paid >= grand_total > 0 (default)
    ANY_PAYMENT  payment_status PAID, or any posted money (amount_paid > 0)

NO_PAY_DEFINITION
    UNPAID            nothing paid and payment_status is not PAID (default)
    CANCELLED_UNPAID  order CANCELLED with nothing paid

NO_PAY_INCLUDE_JOY_RESERVE_CLAIMS
    When true, claims flagged joy_reserve also count toward no_pay_count.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from .order_lifecycle import ORDER_CANCELLED


PAID_FULLY_PAID = "FULLY_PAID"
PAID_ANY_PAYMENT = "ANY_PAYMENT"
VALID_PAID_DEFINITIONS = {PAID_FULLY_PAID, PAID_ANY_PAYMENT}

NO_PAY_UNPAID = "UNPAID"
NO_PAY_CANCELLED_UNPAID = "CANCELLED_UNPAID"
VALID_NO_PAY_DEFINITIONS = {NO_PAY_UNPAID, NO_PAY_CANCELLED_UNPAID}

PAYMENT_STATUS_PAID = "PAID"


class AccountingPolicyError(ValueError):
    """Raised for an unknown accounting definition in configuration."""


@dataclass(frozen=True)
class AccountingPolicy:
    paid_definition: str = PAID_FULLY_PAID
    no_pay_definition: str = NO_PAY_UNPAID
    include_joy_reserve_claims: bool = True

    def __post_init__(self):
        if self.paid_definition not in VALID_PAID_DEFINITIONS:
            raise AccountingPolicyError(
                f"Unknown PAID_ORDER_DEFINITION '{self.paid_definition}'"
            )
        if self.no_pay_definition not in VALID_NO_PAY_DEFINITIONS:
            raise AccountingPolicyError(
                f"Unknown NO_PAY_DEFINITION '{self.no_pay_definition}'"
            )

    def is_paid_order(self, order) -> bool:
        paid = order.amount_paid_cents or 0
        grand = order.grand_total_cents or 0
        if order.payment_status == PAYMENT_STATUS_PAID:
            return True
        if self.paid_definition == PAID_ANY_PAYMENT:
            return paid > 0
        return grand > 0 and paid >= grand

    def is_no_pay_order(self, order) -> bool:
        paid = order.amount_paid_cents or 0
        if self.no_pay_definition == NO_PAY_CANCELLED_UNPAID:
            return order.status == ORDER_CANCELLED and paid <= 0
        return paid <= 0 and order.payment_status != PAYMENT_STATUS_PAID


def get_accounting_policy() -> AccountingPolicy:
    """Policy from the active app config."""
    cfg = current_app.config
    return AccountingPolicy(
        paid_definition=cfg.get("PAID_ORDER_DEFINITION", PAID_FULLY_PAID),
        no_pay_definition=cfg.get("NO_PAY_DEFINITION", NO_PAY_UNPAID),
        include_joy_reserve_claims=bool(cfg.get("NO_PAY_INCLUDE_JOY_RESERVE_CLAIMS", True)),
    )


def is_paid_order(order) -> bool:
    return get_accounting_policy().is_paid_order(order)


def is_no_pay_order(order) -> bool:
    return get_accounting_policy().is_no_pay_order(order)
