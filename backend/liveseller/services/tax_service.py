# Overview: Included-tax breakdown helpers (tax already inside the gross price).

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..models import Order
from ..validation import NotFoundError

MAX_RATE_PCT = 30


@dataclass(frozen=True)
class IncludedTax:
    gross_taxable_cents: int
    tax_cents: int
    net_cents: int

    def to_dict(self) -> dict:
        return {
            "gross_taxable_cents": self.gross_taxable_cents,
            "tax_cents": self.tax_cents,
            "net_cents": self.net_cents,
        }


def clamp_rate_pct(rate_pct) -> Decimal:
    try:
        rate = Decimal(str(rate_pct))
    except (ArithmeticError, ValueError, TypeError):
        return Decimal(0)
    if not rate.is_finite():
        return Decimal(0)
    return min(max(rate, Decimal(0)), Decimal(MAX_RATE_PCT))


def calc_included_tax_breakdown(gross_cents: int, rate_pct) -> tuple[int, int]:
    """
    Split a tax-inclusive gross amount into (tax_cents, net_cents).

    tax = round(gross * rate / (100 + rate)), half up. Negative gross counts as 0.
    """
    gross = max(0, int(gross_cents or 0))
    rate = clamp_rate_pct(rate_pct)
    if gross <= 0 or rate <= 0:
        return 0, gross

    tax = (Decimal(gross) * rate / (Decimal(100) + rate)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    tax_cents = int(tax)
    return tax_cents, gross - tax_cents


def calc_included_tax_from_totals(
    *,
    items_subtotal_cents: int,
    discount_total_cents: int = 0,
    promo_discount_total_cents: int = 0,
    shipping_fee_cents: int = 0,
    cod_fee_cents: int = 0,
    shipping_taxable: bool = False,
    cod_taxable: bool = False,
    enabled: bool = True,
    rate_pct=0,
) -> IncludedTax:
    gross_taxable = max(
        0,
        (items_subtotal_cents or 0)
        - (discount_total_cents or 0)
        - (promo_discount_total_cents or 0)
        + ((shipping_fee_cents or 0) if shipping_taxable else 0)
        + ((cod_fee_cents or 0) if cod_taxable else 0),
    )
    if not enabled:
        return IncludedTax(gross_taxable, 0, gross_taxable)

    tax_cents, net_cents = calc_included_tax_breakdown(gross_taxable, rate_pct)
    return IncludedTax(gross_taxable, tax_cents, net_cents)


def get_order_tax_breakdown(order_id: int) -> dict:
    """Included-tax breakdown of an order using the app's TAX_* settings."""
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")

    cfg = current_app.config
    result = calc_included_tax_from_totals(
        items_subtotal_cents=order.subtotal_cents,
        discount_total_cents=order.discount_total_cents,
        promo_discount_total_cents=order.promo_discount_total_cents,
        shipping_fee_cents=order.shipping_fee_cents,
        cod_fee_cents=order.cod_fee_cents,
        shipping_taxable=cfg.get("TAX_SHIPPING_TAXABLE", False),
        cod_taxable=cfg.get("TAX_COD_TAXABLE", False),
        enabled=cfg.get("TAX_INCLUDED_ENABLED", False),
        rate_pct=cfg.get("TAX_RATE_PCT", 0),
    )
    data = result.to_dict()
    data["order_id"] = order.id
    data["enabled"] = bool(cfg.get("TAX_INCLUDED_ENABLED", False))
    data["rate_pct"] = float(clamp_rate_pct(cfg.get("TAX_RATE_PCT", 0)))
    return data
