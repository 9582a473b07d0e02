# Overview: Flask CLI command groups for bootstrap, reconciliation and reporting.

# backend/liveseller/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent; use "flask db upgrade" for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Claim reconciliation:
# - python -m flask orders build --session-id 3
#   Build orders from the session's ACCEPTED claims (safe to repeat).
# - python -m flask orders sync --session-id 3
#   Re-align UNPAID orders with the session's current ACCEPTED claims.
#
# Customers:
# - python -m flask customers recompute [--customer-id 7]
#   Rebuild stored customer aggregates (all customers when no id is given).
#
# Finance:
# - python -m flask finance snapshot --from 2026-01-01 --to 2026-01-31 [--platform TIKTOK]
# - python -m flask finance snapshot --session-id 3

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import claim_order_service, customer_service, finance_service
from .validation import NotFoundError, ValidationError


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('orders')
def orders_group():
    """Claim-to-order reconciliation."""


@orders_group.command('build')
@click.option('--session-id', type=int, required=True, help='Live session ID')
@with_appcontext
def build_orders_cli(session_id):
    try:
        result = claim_order_service.build_orders_from_claims(session_id)
    except (NotFoundError, ValidationError) as e:
        raise click.ClickException(str(e))
    click.echo(
        f"PASS Built {result['created_orders']} order(s), {result['created_lines']} line(s) "
        f"for session {session_id}."
    )


@orders_group.command('sync')
@click.option('--session-id', type=int, required=True, help='Live session ID')
@with_appcontext
def sync_orders_cli(session_id):
    try:
        affected = claim_order_service.sync_unpaid_orders_for_session(session_id)
    except (NotFoundError, ValidationError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Synced session {session_id}: {affected} order(s) changed.")


@click.group('customers')
def customers_group():
    """Customer aggregate maintenance."""


@customers_group.command('recompute')
@click.option('--customer-id', type=int, default=None, help='Only this customer')
@with_appcontext
def recompute_customers_cli(customer_id):
    if customer_id is not None:
        try:
            customer = customer_service.recompute_customer_stats(customer_id)
        except NotFoundError as e:
            raise click.ClickException(str(e))
        click.echo(
            f"PASS {customer.display_name}: orders={customer.total_orders} "
            f"spent={_money(customer.total_spent_cents)} no_pay={customer.no_pay_count}"
        )
        return

    count = customer_service.recompute_all_customer_stats()
    click.echo(f"PASS Recomputed {count} customer(s).")


@click.group('finance')
def finance_group():
    """Finance reporting."""


@finance_group.command('snapshot')
@click.option('--from', 'from_', default=None, help='Start date/datetime (inclusive)')
@click.option('--to', 'to', default=None, help='End date/datetime (inclusive)')
@click.option('--platform', default='ALL', show_default=True)
@click.option('--session-id', type=int, default=None, help='Snapshot one live session instead of a range')
@with_appcontext
def finance_snapshot_cli(from_, to, platform, session_id):
    try:
        if session_id is not None:
            snap = finance_service.get_finance_snapshot_for_live_session(session_id)
        else:
            snap = finance_service.get_finance_snapshot_for_range(from_, to, platform)
    except (NotFoundError, ValidationError) as e:
        raise click.ClickException(str(e))

    click.echo(f"Period: {snap['period_label']}")
    click.echo(f"  Paid orders:     {snap['paid_orders']}")
    click.echo(f"  Sales:           {_money(snap['total_sales_cents'])}")
    click.echo(f"  Cost of goods:   {_money(snap['total_cost_of_goods_cents'])}")
    click.echo(f"  Shipping:        {_money(snap['total_shipping_cost_cents'])}")
    click.echo(f"  Other expenses:  {_money(snap['total_other_expenses_cents'])}")
    click.echo(f"  Gross profit:    {_money(snap['gross_profit_cents'])}")
    click.echo(f"  Net profit:      {_money(snap['net_profit_cents'])} ({snap['profit_margin_percent']}%)")
    click.echo(f"  Cash in / out:   {_money(snap['cash_in_cents'])} / {_money(snap['cash_out_cents'])}")

    if snap["top_products"]:
        click.echo("Top products:")
        for row in snap["top_products"]:
            click.echo(f"  {row['item_code'] or '-':<12} x{row['qty_sold']:<4} {_money(row['revenue_cents'])}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orders_group)
    app.cli.add_command(customers_group)
    app.cli.add_command(finance_group)
