# Overview: Finance rollups over paid orders; range/session snapshots, daily profit series, dashboard.

"""
Finance Aggregation

Every figure is derived from the same per-order economics:

    revenue   = order.grand_total
    cogs      = sum(effective cost * qty) over the order's lines
                (inventory_service.resolve_effective_price)
    shipping  = shipment fee of the order
    other     = order.other_fees
    net       = revenue - cogs - shipping - other

Only orders satisfying the configured paid predicate
(accounting_policy.is_paid_order) are counted. The daily series buckets
the same orders by creation day, so its sum equals the snapshot net profit.

Range bounds are inclusive. A date-only upper bound ("2026-01-31") covers the
whole day. Snapshots are computed, never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..models import InventoryItem, LiveSession, Order, OrderLine, Payment, Shipment
from ..validation import NotFoundError, ValidationError
from liveseller.time_utils import day_key, end_of_day, parse_iso_datetime, start_of_day, to_utc_z, utcnow
from .accounting_policy import get_accounting_policy
from .inventory_service import list_low_stock_items, resolve_effective_price
from .order_lifecycle import ORDER_CANCELLED, ORDER_PACKING, ORDER_PAID, ORDER_RETURNED
from .order_service import PAYMENT_POSTED, PAYMENT_STATUS_PAID


class FinanceError(ValidationError):
    """Raised for invalid finance query input."""
    pass


PLATFORM_ALL = "ALL"
VALID_PLATFORMS = {"ALL", "FACEBOOK", "TIKTOK", "SHOPEE", "OTHER"}
NO_SESSION_TITLE = "No session"


@dataclass
class _OrderEconomics:
    order: Order
    revenue: int
    cogs: int
    shipping: int
    other: int
    lines: list

    @property
    def net(self) -> int:
        return self.revenue - self.cogs - self.shipping - self.other


# =============================================================================
# INPUT PARSING
# =============================================================================

def _parse_bound(value, *, end: bool) -> datetime:
    if value is None or value == "":
        raise FinanceError(f"'{'to' if end else 'from'}' is required")
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return end_of_day(value) if end else start_of_day(value)
    if isinstance(value, str):
        raw = value.strip()
        try:
            if len(raw) == 10:
                d = date.fromisoformat(raw)
                return end_of_day(d) if end else start_of_day(d)
            parsed = parse_iso_datetime(raw)
        except ValueError:
            raise FinanceError(f"Invalid datetime '{value}'")
        if parsed is None:
            raise FinanceError(f"Invalid datetime '{value}'")
        return parsed
    raise FinanceError(f"Invalid datetime '{value}'")


def parse_range(from_, to) -> tuple[datetime, datetime]:
    start = _parse_bound(from_, end=False)
    finish = _parse_bound(to, end=True)
    if start > finish:
        raise FinanceError("'from' must not be after 'to'")
    return start, finish


def _validate_platform(platform: str | None) -> str:
    platform = (platform or PLATFORM_ALL).upper()
    if platform not in VALID_PLATFORMS:
        raise FinanceError(
            f"Invalid platform '{platform}'. Must be one of: {', '.join(sorted(VALID_PLATFORMS))}"
        )
    return platform


def _top_n(top_n: int | None) -> int:
    if top_n is None:
        top_n = current_app.config.get("FINANCE_TOP_N", 10)
    if top_n < 1:
        raise FinanceError("top_n must be >= 1")
    return top_n


# =============================================================================
# LOADING
# =============================================================================

def _orders_in_range(start: datetime, finish: datetime, platform: str) -> list[Order]:
    query = db.session.query(Order).filter(Order.created_at >= start, Order.created_at <= finish)
    if platform != PLATFORM_ALL:
        query = query.join(LiveSession, LiveSession.id == Order.live_session_id).filter(
            LiveSession.platform == platform
        )
    return query.order_by(Order.created_at.asc(), Order.id.asc()).all()


def _economics_for(orders: list[Order]) -> list[_OrderEconomics]:
    """Per-order revenue/cost/fees for already-filtered orders."""
    if not orders:
        return []
    order_ids = [o.id for o in orders]

    lines_by_order: dict[int, list[OrderLine]] = {}
    for line in db.session.query(OrderLine).filter(OrderLine.order_id.in_(order_ids)).all():
        lines_by_order.setdefault(line.order_id, []).append(line)

    shipping_by_order: dict[int, int] = {}
    for shipment in db.session.query(Shipment).filter(Shipment.order_id.in_(order_ids)).all():
        shipping_by_order[shipment.order_id] = shipping_by_order.get(shipment.order_id, 0) + (shipment.shipping_fee_cents or 0)

    item_ids = {line.inventory_item_id for lines in lines_by_order.values() for line in lines}
    items = {
        item.id: item
        for item in db.session.query(InventoryItem).filter(InventoryItem.id.in_(item_ids)).all()
    } if item_ids else {}

    result = []
    for order in orders:
        lines = lines_by_order.get(order.id, [])
        cogs = 0
        for line in lines:
            item = items.get(line.inventory_item_id)
            if item is None:
                continue
            cost, _ = resolve_effective_price(item, line.variant_id)
            cogs += cost * (line.quantity or 0)
        result.append(
            _OrderEconomics(
                order=order,
                revenue=order.grand_total_cents or 0,
                cogs=cogs,
                shipping=shipping_by_order.get(order.id, 0),
                other=order.other_fees_cents or 0,
                lines=lines,
            )
        )
    return result


def _paid_only(orders: list[Order]) -> list[Order]:
    policy = get_accounting_policy()
    return [o for o in orders if policy.is_paid_order(o)]


# =============================================================================
# AGGREGATION
# =============================================================================

def _margin_pct(net: int, sales: int) -> float:
    if sales <= 0:
        return 0.0
    pct = (Decimal(net) * 100 / Decimal(sales)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(pct)


def _product_rows(economics: list[_OrderEconomics]) -> list[dict]:
    items: dict[int, InventoryItem] = {}
    products: dict[int, dict] = {}
    for econ in economics:
        for line in econ.lines:
            item = items.get(line.inventory_item_id)
            if item is None and line.inventory_item_id not in items:
                item = db.session.get(InventoryItem, line.inventory_item_id)
                items[line.inventory_item_id] = item
            cost_unit = resolve_effective_price(item, line.variant_id)[0] if item is not None else 0
            qty = line.quantity or 0
            revenue = line.line_total_cents or 0
            cost = cost_unit * qty

            row = products.get(line.inventory_item_id)
            if row is None:
                row = {
                    "inventory_item_id": line.inventory_item_id,
                    "item_code": line.item_code_snapshot,
                    "name": line.name_snapshot,
                    "qty_sold": 0,
                    "revenue_cents": 0,
                    "cost_cents": 0,
                    "profit_cents": 0,
                }
                products[line.inventory_item_id] = row
            row["qty_sold"] += qty
            row["revenue_cents"] += revenue
            row["cost_cents"] += cost
            row["profit_cents"] += revenue - cost

    return sorted(products.values(), key=lambda r: (-r["revenue_cents"], r["inventory_item_id"]))


def _session_rows(economics: list[_OrderEconomics]) -> list[dict]:
    titles = {
        s.id: s.title
        for s in db.session.query(LiveSession).filter(
            LiveSession.id.in_({e.order.live_session_id for e in economics if e.order.live_session_id})
        ).all()
    } if economics else {}

    sessions: dict = {}
    for econ in economics:
        session_id = econ.order.live_session_id
        row = sessions.get(session_id)
        if row is None:
            row = {
                "live_session_id": session_id,
                "title": titles.get(session_id, NO_SESSION_TITLE) if session_id else NO_SESSION_TITLE,
                "revenue_cents": 0,
                "profit_cents": 0,
                "orders": 0,
            }
            sessions[session_id] = row
        row["revenue_cents"] += econ.revenue
        row["profit_cents"] += econ.net
        row["orders"] += 1

    return sorted(sessions.values(), key=lambda r: (-r["revenue_cents"], r["live_session_id"] or 0))


def _snapshot(
    economics: list[_OrderEconomics],
    *,
    period_label: str,
    cash_in: int,
    top_n: int,
) -> dict:
    total_sales = sum(e.revenue for e in economics)
    cogs = sum(e.cogs for e in economics)
    shipping = sum(e.shipping for e in economics)
    other = sum(e.other for e in economics)
    gross = total_sales - cogs
    net = gross - shipping - other
    cash_out = cogs + shipping + other

    return {
        "period_label": period_label,
        "paid_orders": len(economics),
        "total_sales_cents": total_sales,
        "total_cost_of_goods_cents": cogs,
        "total_shipping_cost_cents": shipping,
        "total_other_expenses_cents": other,
        "gross_profit_cents": gross,
        "net_profit_cents": net,
        "profit_margin_percent": _margin_pct(net, total_sales),
        "top_products": _product_rows(economics)[:top_n],
        "top_sessions": _session_rows(economics)[:top_n],
        "cash_in_cents": cash_in,
        "cash_out_cents": cash_out,
        "balance_change_cents": cash_in - cash_out,
    }


def _cash_in_for_range(start: datetime, finish: datetime, platform: str) -> int:
    query = db.session.query(db.func.coalesce(db.func.sum(Payment.amount_cents), 0)).filter(
        Payment.status == PAYMENT_POSTED,
        Payment.paid_at >= start,
        Payment.paid_at <= finish,
    )
    if platform != PLATFORM_ALL:
        query = (
            query.join(Order, Order.id == Payment.order_id)
            .join(LiveSession, LiveSession.id == Order.live_session_id)
            .filter(LiveSession.platform == platform)
        )
    return int(query.scalar() or 0)


# =============================================================================
# PUBLIC API
# =============================================================================

def get_finance_snapshot_for_range(from_, to, platform: str = PLATFORM_ALL, *, top_n: int | None = None) -> dict:
    start, finish = parse_range(from_, to)
    platform = _validate_platform(platform)
    top_n = _top_n(top_n)

    paid = _paid_only(_orders_in_range(start, finish, platform))
    snapshot = _snapshot(
        _economics_for(paid),
        period_label=f"{day_key(start)} to {day_key(finish)}",
        cash_in=_cash_in_for_range(start, finish, platform),
        top_n=top_n,
    )
    snapshot.update({"from": to_utc_z(start), "to": to_utc_z(finish), "platform": platform})
    return snapshot


def get_finance_snapshot_for_live_session(live_session_id: int, *, top_n: int | None = None) -> dict:
    """
    Snapshot over one session's paid orders. Cash in is every posted payment
    on the session's orders, whatever its date.
    """
    session = db.session.get(LiveSession, live_session_id)
    if not session:
        raise NotFoundError(f"Live session {live_session_id} not found")
    top_n = _top_n(top_n)

    orders = db.session.query(Order).filter(Order.live_session_id == live_session_id).all()
    cash_in = int(
        db.session.query(db.func.coalesce(db.func.sum(Payment.amount_cents), 0))
        .join(Order, Order.id == Payment.order_id)
        .filter(Order.live_session_id == live_session_id, Payment.status == PAYMENT_POSTED)
        .scalar()
        or 0
    )
    snapshot = _snapshot(
        _economics_for(_paid_only(orders)),
        period_label=session.title,
        cash_in=cash_in,
        top_n=top_n,
    )
    snapshot["live_session_id"] = live_session_id
    return snapshot


def get_product_performance(from_, to, platform: str = PLATFORM_ALL) -> list[dict]:
    """All products (not only the top N) for the range, by revenue."""
    start, finish = parse_range(from_, to)
    platform = _validate_platform(platform)
    paid = _paid_only(_orders_in_range(start, finish, platform))
    return _product_rows(_economics_for(paid))


def get_cash_flow(from_, to, platform: str = PLATFORM_ALL) -> dict:
    snapshot = get_finance_snapshot_for_range(from_, to, platform)
    return {
        "cash_in_cents": snapshot["cash_in_cents"],
        "cash_out_cents": snapshot["cash_out_cents"],
        "balance_change_cents": snapshot["balance_change_cents"],
    }


def get_net_profit_series(from_, to, platform: str = PLATFORM_ALL) -> list[dict]:
    """Daily net profit (YYYY-MM-DD buckets by order creation day), days with orders only."""
    start, finish = parse_range(from_, to)
    platform = _validate_platform(platform)
    paid = _paid_only(_orders_in_range(start, finish, platform))

    per_day: dict[str, int] = {}
    for econ in _economics_for(paid):
        key = day_key(econ.order.created_at)
        per_day[key] = per_day.get(key, 0) + econ.net

    return [
        {"date": key, "label": key, "net_profit_cents": per_day[key]}
        for key in sorted(per_day)
    ]


def get_dashboard_summary(*, now: datetime | None = None, recent_sessions: int = 5) -> dict:
    """Today's sales, pending payments, orders to ship, low stock and recent sessions."""
    now = now or utcnow()
    today_start = start_of_day(now.date())
    today_end = end_of_day(now.date())
    policy = get_accounting_policy()

    today_paid = [
        o for o in db.session.query(Order).filter(
            Order.created_at >= today_start, Order.created_at <= today_end
        ).all()
        if policy.is_paid_order(o)
    ]

    pending = (
        db.session.query(Order)
        .filter(Order.payment_status != PAYMENT_STATUS_PAID)
        .filter(Order.status.notin_([ORDER_CANCELLED, ORDER_RETURNED]))
        .all()
    )
    to_ship = (
        db.session.query(Order)
        .filter(Order.payment_status == PAYMENT_STATUS_PAID)
        .filter(Order.status.in_([ORDER_PAID, ORDER_PACKING]))
        .count()
    )
    low_stock = list_low_stock_items()

    session_rows = {
        row["live_session_id"]: row
        for row in _session_rows(
            _economics_for(
                _paid_only(db.session.query(Order).filter(Order.live_session_id.isnot(None)).all())
            )
        )
    }
    sessions = (
        db.session.query(LiveSession)
        .filter(LiveSession.id.in_(list(session_rows)))
        .order_by(LiveSession.start_time.desc(), LiveSession.id.desc())
        .limit(recent_sessions)
        .all()
    ) if session_rows else []

    return {
        "today": day_key(now),
        "today_sales_cents": sum(o.grand_total_cents or 0 for o in today_paid),
        "today_orders_count": len(today_paid),
        "pending_payments_count": len(pending),
        "pending_payments_cents": sum(o.balance_due_cents or 0 for o in pending),
        "to_ship_count": to_ship,
        "low_stock_count": len(low_stock),
        "low_stock_items": [
            {
                "id": item.id,
                "item_code": item.item_code,
                "name": item.name,
                "available_stock": item.available_stock,
                "low_stock_threshold": item.low_stock_threshold,
            }
            for item in low_stock[:5]
        ],
        "recent_sessions": [
            {
                "id": s.id,
                "title": s.title,
                "platform": s.platform,
                "status": s.status,
                "start_time": to_utc_z(s.start_time),
                "revenue_cents": session_rows[s.id]["revenue_cents"],
                "profit_cents": session_rows[s.id]["profit_cents"],
            }
            for s in sessions
        ],
    }
