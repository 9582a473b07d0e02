# Overview: Pytest coverage for included-tax breakdowns.

import pytest

from liveseller.models import Order
from liveseller.services import claim_order_service, tax_service
from liveseller.validation import NotFoundError


@pytest.mark.parametrize("gross,rate,expected", [
    (1120, 12, (120, 1000)),
    (1000, 12, (107, 893)),
    (1, 12, (0, 1)),
    (0, 12, (0, 0)),
    (-50, 12, (0, 0)),
    (1000, 0, (0, 1000)),
    (1300, 50, (300, 1000)),
    (1000, "not-a-rate", (0, 1000)),
])
def test_included_breakdown(gross, rate, expected):
    assert tax_service.calc_included_tax_breakdown(gross, rate) == expected


def test_clamp_rate():
    assert tax_service.clamp_rate_pct(-5) == 0
    assert tax_service.clamp_rate_pct(45) == 30
    assert tax_service.clamp_rate_pct("12.5") == tax_service.clamp_rate_pct(12.5)


def test_from_totals_taxable_fees():
    kwargs = dict(
        items_subtotal_cents=1000,
        discount_total_cents=0,
        promo_discount_total_cents=0,
        shipping_fee_cents=120,
        cod_fee_cents=0,
        rate_pct=12,
    )
    without = tax_service.calc_included_tax_from_totals(**kwargs)
    assert without.gross_taxable_cents == 1000

    with_shipping = tax_service.calc_included_tax_from_totals(shipping_taxable=True, **kwargs)
    assert with_shipping.to_dict() == {"gross_taxable_cents": 1120, "tax_cents": 120, "net_cents": 1000}


def test_disabled_returns_gross_as_net():
    result = tax_service.calc_included_tax_from_totals(items_subtotal_cents=1120, enabled=False, rate_pct=12)
    assert (result.tax_cents, result.net_cents) == (0, 1120)


def test_discount_cannot_push_taxable_below_zero():
    result = tax_service.calc_included_tax_from_totals(
        items_subtotal_cents=100, promo_discount_total_cents=500, rate_pct=12
    )
    assert result.gross_taxable_cents == 0


def test_order_breakdown_uses_config(app, db_session, live_session, make_item, make_claim, monkeypatch):
    item = make_item(price=560, reserved=2)
    make_claim(live_session, item, qty=2)
    claim_order_service.build_orders_from_claims(live_session.id)
    order = db_session.query(Order).one()

    monkeypatch.setitem(app.config, "TAX_INCLUDED_ENABLED", True)
    monkeypatch.setitem(app.config, "TAX_RATE_PCT", 12)

    data = tax_service.get_order_tax_breakdown(order.id)
    assert data["order_id"] == order.id
    assert data["enabled"] is True
    assert data["rate_pct"] == 12.0
    assert data["tax_cents"] == 120
    assert data["net_cents"] == 1000


def test_order_breakdown_unknown_order(db_session):
    with pytest.raises(NotFoundError):
        tax_service.get_order_tax_breakdown(1)
