# Overview: Pytest coverage for customer aggregates, joy-reserve counting and the ranked overview.

import pytest

from liveseller.models import Order
from liveseller.services import claim_order_service, customer_service, order_service, payment_service
from liveseller.services.accounting_policy import AccountingPolicy, AccountingPolicyError
from liveseller.validation import NotFoundError, ValidationError


@pytest.fixture
def built(db_session, live_session, make_item, make_claim):
    """Ana owes 1000 and pays it, Ben owes 500 and pays nothing."""
    item = make_item(reserved=3, price=500)
    make_claim(live_session, item, name="Ana", qty=2)
    make_claim(live_session, item, name="Ben", qty=1)
    claim_order_service.build_orders_from_claims(live_session.id)

    orders = {o.customer.display_name: o for o in db_session.query(Order).all()}
    payment_service.record_payment(orders["Ana"].id, 1000, "GCASH")
    return orders


def _row(rows, name):
    return next(r for r in rows if r["customer"]["display_name"] == name)


class TestStoredAggregates:
    def test_paid_and_unpaid_customers(self, built):
        ana = customer_service.get_customer(built["Ana"].customer_id)
        ben = customer_service.get_customer(built["Ben"].customer_id)

        assert ana.total_orders == 1
        assert ana.total_paid_orders == 1
        assert ana.total_spent_cents == 1000
        assert ana.no_pay_count == 0
        assert ana.last_order_status == "PAID"

        assert ben.total_orders == 1
        assert ben.total_spent_cents == 0
        assert ben.no_pay_count == 1

    def test_partial_payment_is_not_no_pay(self, built):
        payment_service.record_payment(built["Ben"].id, 100, "CASH")
        ben = customer_service.get_customer(built["Ben"].customer_id)
        assert ben.no_pay_count == 0
        assert ben.total_paid_orders == 0

    def test_joy_reserve_claim_matched_by_name(self, built, live_session, make_item, make_claim):
        item = make_item("ITEM-2")
        make_claim(live_session, item, name="  ana ", status="CANCELLED", joy_reserve=True)

        ana = customer_service.recompute_customer_stats(built["Ana"].customer_id)
        assert ana.no_pay_count == 1

    def test_joy_reserve_claim_matched_by_non_ascii_name(self, make_customer, live_session, make_item, make_claim):
        customer = make_customer("ÉLODIE")
        make_claim(live_session, make_item(), name=" élodie", status="CANCELLED", joy_reserve=True)

        assert customer_service.recompute_customer_stats(customer.id).no_pay_count == 1
        row = customer_service.get_customer_overview_list()[0]
        assert row["customer"]["id"] == customer.id
        assert row["is_joy_reserve"] is True

    def test_joy_reserve_claims_excluded_by_config(self, app, built, live_session, make_item, make_claim, monkeypatch):
        item = make_item("ITEM-2")
        make_claim(live_session, item, name="Ana", status="CANCELLED", joy_reserve=True)
        monkeypatch.setitem(app.config, "NO_PAY_INCLUDE_JOY_RESERVE_CLAIMS", False)

        ana = customer_service.recompute_customer_stats(built["Ana"].customer_id)
        assert ana.no_pay_count == 0

    def test_cancelled_unpaid_definition(self, app, built, monkeypatch):
        monkeypatch.setitem(app.config, "NO_PAY_DEFINITION", "CANCELLED_UNPAID")
        ben = customer_service.recompute_customer_stats(built["Ben"].customer_id)
        assert ben.no_pay_count == 0

        order_service.update_order_status(built["Ben"].id, "CANCELLED")
        ben = customer_service.get_customer(built["Ben"].customer_id)
        assert ben.no_pay_count == 1

    def test_any_payment_definition(self, app, built, monkeypatch):
        monkeypatch.setitem(app.config, "PAID_ORDER_DEFINITION", "ANY_PAYMENT")
        payment_service.record_payment(built["Ben"].id, 100, "CASH")

        ben = customer_service.get_customer(built["Ben"].customer_id)
        assert ben.total_paid_orders == 1
        assert ben.total_spent_cents == 500

    def test_unknown_policy_rejected(self):
        with pytest.raises(AccountingPolicyError):
            AccountingPolicy(paid_definition="SOMETIMES")

    def test_recompute_all(self, built, make_customer):
        make_customer("Nobody")
        assert customer_service.recompute_all_customer_stats() == 3

    def test_recompute_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            customer_service.recompute_customer_stats(404)


class TestOverview:
    def test_ranking_no_pay_then_spend_then_name(self, built, make_customer, make_item, make_claim, live_session):
        carla = make_customer("Carla")
        make_claim(live_session, make_item("ITEM-2"), name="carla", status="CANCELLED", joy_reserve=True)

        rows = customer_service.get_customer_overview_list()
        assert [r["customer"]["display_name"] for r in rows] == ["Ben", "Carla", "Ana"]
        assert _row(rows, "Carla")["customer"]["id"] == carla.id
        assert _row(rows, "Carla")["is_joy_reserve"] is True
        assert _row(rows, "Ana")["total_spent_cents"] == 1000

    def test_joy_only_filter(self, built):
        rows = customer_service.get_customer_overview_list(joy_filter="JOY_ONLY")
        assert [r["customer"]["display_name"] for r in rows] == ["Ben"]

    def test_search_matches_real_name(self, built):
        customer_service.update_customer(built["Ana"].customer_id, {"real_name": "Ana Santos"})
        rows = customer_service.get_customer_overview_list(search="santos")
        assert [r["customer"]["display_name"] for r in rows] == ["Ana"]

    def test_invalid_joy_filter(self, db_session):
        with pytest.raises(ValidationError):
            customer_service.get_customer_overview_list(joy_filter="SOME")


class TestLookup:
    def test_get_or_create_is_case_insensitive(self, make_customer):
        existing = make_customer("Ana")
        assert customer_service.get_or_create_customer_by_display_name("  ANA ").id == existing.id

    def test_get_or_create_folds_non_ascii_case(self, make_customer):
        existing = make_customer("JOSÉ")
        assert customer_service.get_or_create_customer_by_display_name("josé").id == existing.id

    def test_rename_updates_lookup_key(self, make_customer):
        customer = make_customer("Ana")
        customer_service.update_customer(customer.id, {"display_name": "Ñora"})

        assert customer.display_name_key == "ñora"
        assert customer_service.get_or_create_customer_by_display_name("ÑORA").id == customer.id

    def test_blank_name_rejected(self, db_session):
        with pytest.raises(ValidationError):
            customer_service.get_or_create_customer_by_display_name("   ")

    def test_aggregates_not_writable(self, make_customer):
        customer = make_customer("Ana")
        with pytest.raises(ValidationError):
            customer_service.update_customer(customer.id, {"total_spent_cents": 10})

    def test_history_and_basics(self, built):
        history = customer_service.get_customer_with_history(built["Ana"].customer_id)
        assert [o["id"] for o in history["orders"]] == [built["Ana"].id]

        basics = customer_service.list_customer_basics()
        assert [b["display_name"] for b in basics] == ["Ana", "Ben"]
