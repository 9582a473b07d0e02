# Overview: Pytest coverage for finance snapshots, the daily profit series and the dashboard summary.

from datetime import datetime

import pytest

from liveseller.models import LiveSession, Order
from liveseller.services import (
    claim_order_service,
    finance_service,
    order_service,
    payment_service,
    shipment_service,
)
from liveseller.services.finance_service import FinanceError
from liveseller.validation import NotFoundError


@pytest.fixture
def books(db_session, live_session, make_item, make_claim):
    """
    Facebook session: Ana pays in full (120 shipping, 30 other fees), Ben pays 400 of 1000.
    TikTok session: Cara pays 500 in full.
    """
    item_a = make_item("A", cost=100, price=500, reserved=3)
    item_b = make_item("B", cost=200, price=1000, reserved=1)
    make_item("C", current=2, threshold=5)

    tiktok = LiveSession(title="Sunday TikTok", platform="TIKTOK", status="ENDED")
    db_session.add(tiktok)
    db_session.commit()

    make_claim(live_session, item_a, name="Ana", qty=2)
    make_claim(live_session, item_b, name="Ben", qty=1)
    make_claim(tiktok, item_a, name="Cara", qty=1)
    claim_order_service.build_orders_from_claims(live_session.id)
    claim_order_service.build_orders_from_claims(tiktok.id)

    orders = {o.customer.display_name: o for o in db_session.query(Order).all()}
    orders["Ana"].created_at = datetime(2026, 3, 1, 10, 0)
    orders["Ben"].created_at = datetime(2026, 3, 1, 11, 0)
    orders["Cara"].created_at = datetime(2026, 3, 2, 9, 0)
    db_session.commit()

    shipment_service.create_or_update_shipment(orders["Ana"].id, {"shipping_fee_cents": 120})
    order_service.update_order_fees(orders["Ana"].id, other_fees_cents=30)
    payment_service.record_payment(orders["Ana"].id, 1150, "GCASH", paid_at="2026-03-01T12:00:00Z")
    payment_service.record_payment(orders["Ben"].id, 400, "BANK", paid_at="2026-03-01T13:00:00Z")
    payment_service.record_payment(orders["Cara"].id, 500, "MAYA", paid_at="2026-03-02T10:00:00Z")

    return {"orders": orders, "facebook": live_session, "tiktok": tiktok, "item_a": item_a}


class TestRangeSnapshot:
    def test_figures(self, books):
        snap = finance_service.get_finance_snapshot_for_range("2026-03-01", "2026-03-02")

        assert snap["paid_orders"] == 2
        assert snap["total_sales_cents"] == 1650
        assert snap["total_cost_of_goods_cents"] == 300
        assert snap["total_shipping_cost_cents"] == 120
        assert snap["total_other_expenses_cents"] == 30
        assert snap["gross_profit_cents"] == 1350
        assert snap["net_profit_cents"] == 1200
        assert snap["profit_margin_percent"] == 72.73
        assert snap["period_label"] == "2026-03-01 to 2026-03-02"

    def test_cash_flow(self, books):
        flow = finance_service.get_cash_flow("2026-03-01", "2026-03-02")
        assert flow == {"cash_in_cents": 2050, "cash_out_cents": 450, "balance_change_cents": 1600}

    def test_top_products_use_line_revenue(self, books):
        snap = finance_service.get_finance_snapshot_for_range("2026-03-01", "2026-03-02")
        [product] = snap["top_products"]
        assert product["item_code"] == "A"
        assert product["qty_sold"] == 3
        assert product["revenue_cents"] == 1500
        assert product["cost_cents"] == 300

    def test_top_sessions(self, books):
        snap = finance_service.get_finance_snapshot_for_range("2026-03-01", "2026-03-02")
        assert [(s["title"], s["revenue_cents"], s["profit_cents"]) for s in snap["top_sessions"]] == [
            ("Friday Live", 1150, 800),
            ("Sunday TikTok", 500, 400),
        ]

    def test_top_n_limits_rows(self, books):
        snap = finance_service.get_finance_snapshot_for_range("2026-03-01", "2026-03-02", top_n=1)
        assert len(snap["top_sessions"]) == 1

    def test_platform_filter(self, books):
        snap = finance_service.get_finance_snapshot_for_range("2026-03-01", "2026-03-02", "tiktok")
        assert snap["platform"] == "TIKTOK"
        assert snap["total_sales_cents"] == 500
        assert snap["net_profit_cents"] == 400
        assert snap["cash_in_cents"] == 500

    def test_date_only_upper_bound_covers_the_day(self, books):
        snap = finance_service.get_finance_snapshot_for_range("2026-03-01", "2026-03-01")
        assert snap["total_sales_cents"] == 1150

    def test_unpaid_orders_do_not_count(self, books):
        payment_service.record_payment(books["orders"]["Ben"].id, 600, "BANK", paid_at="2026-03-01T14:00:00Z")
        snap = finance_service.get_finance_snapshot_for_range("2026-03-01", "2026-03-02")
        assert snap["paid_orders"] == 3
        assert snap["total_sales_cents"] == 2650

    def test_empty_range(self, books):
        snap = finance_service.get_finance_snapshot_for_range("2025-01-01", "2025-01-31")
        assert snap["paid_orders"] == 0
        assert snap["profit_margin_percent"] == 0.0
        assert snap["top_products"] == []


class TestInputErrors:
    @pytest.mark.parametrize("from_,to", [
        ("2026-03-02", "2026-03-01"),
        ("yesterday", "2026-03-01"),
        (None, "2026-03-01"),
    ])
    def test_bad_range(self, db_session, from_, to):
        with pytest.raises(FinanceError):
            finance_service.get_finance_snapshot_for_range(from_, to)

    def test_bad_platform(self, db_session):
        with pytest.raises(FinanceError):
            finance_service.get_finance_snapshot_for_range("2026-03-01", "2026-03-02", "MYSPACE")


class TestSeries:
    def test_daily_series_sums_to_net_profit(self, books):
        series = finance_service.get_net_profit_series("2026-03-01", "2026-03-02")
        assert series == [
            {"date": "2026-03-01", "label": "2026-03-01", "net_profit_cents": 800},
            {"date": "2026-03-02", "label": "2026-03-02", "net_profit_cents": 400},
        ]
        snap = finance_service.get_finance_snapshot_for_range("2026-03-01", "2026-03-02")
        assert sum(p["net_profit_cents"] for p in series) == snap["net_profit_cents"]

    def test_product_performance_lists_all(self, books):
        rows = finance_service.get_product_performance("2026-03-01", "2026-03-02")
        assert [r["item_code"] for r in rows] == ["A"]


class TestSessionSnapshot:
    def test_session_snapshot(self, books):
        snap = finance_service.get_finance_snapshot_for_live_session(books["facebook"].id)
        assert snap["period_label"] == "Friday Live"
        assert snap["paid_orders"] == 1
        assert snap["total_sales_cents"] == 1150
        assert snap["net_profit_cents"] == 800
        # Ben's partial payment is still cash received for the session
        assert snap["cash_in_cents"] == 1550

    def test_unknown_session(self, db_session):
        with pytest.raises(NotFoundError):
            finance_service.get_finance_snapshot_for_live_session(999)


class TestDashboard:
    def test_summary(self, books):
        summary = finance_service.get_dashboard_summary(now=datetime(2026, 3, 2, 15, 0))

        assert summary["today"] == "2026-03-02"
        assert summary["today_sales_cents"] == 500
        assert summary["today_orders_count"] == 1
        assert summary["pending_payments_count"] == 1
        assert summary["pending_payments_cents"] == 600
        assert summary["to_ship_count"] == 2
        assert summary["low_stock_count"] == 1
        assert summary["low_stock_items"][0]["item_code"] == "C"
        assert {s["title"] for s in summary["recent_sessions"]} == {"Friday Live", "Sunday TikTok"}
