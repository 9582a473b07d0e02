# Overview: Pytest coverage for the flask CLI command groups.

from liveseller.models import Order


def test_orders_build(app, db_session, live_session, make_item, make_claim):
    make_claim(live_session, make_item(reserved=1))
    runner = app.test_cli_runner()

    result = runner.invoke(args=["orders", "build", "--session-id", str(live_session.id)])
    assert result.exit_code == 0
    assert "Built 1 order(s), 1 line(s)" in result.output
    assert db_session.query(Order).count() == 1


def test_orders_build_unknown_session(app, db_session):
    result = app.test_cli_runner().invoke(args=["orders", "build", "--session-id", "999"])
    assert result.exit_code != 0
    assert "not found" in result.output


def test_customers_recompute_all(app, make_customer):
    make_customer("Ana")
    make_customer("Ben")
    result = app.test_cli_runner().invoke(args=["customers", "recompute"])
    assert result.exit_code == 0
    assert "Recomputed 2 customer(s)" in result.output


def test_finance_snapshot_bad_range(app, db_session):
    result = app.test_cli_runner().invoke(
        args=["finance", "snapshot", "--from", "2026-02-01", "--to", "2026-01-01"]
    )
    assert result.exit_code != 0


def test_finance_snapshot_session(app, live_session):
    result = app.test_cli_runner().invoke(args=["finance", "snapshot", "--session-id", str(live_session.id)])
    assert result.exit_code == 0
    assert "Period: Friday Live" in result.output
