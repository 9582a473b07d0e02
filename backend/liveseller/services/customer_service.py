# Overview: Customer lookup and aggregate recomputation (spend, counts, joy-reserve flag).

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime

from ..extensions import db
from ..models import Customer, Order, Claim
from ..models.customers import display_name_key
from ..validation import ModelValidationPolicy, NotFoundError, ValidationError, validate_payload
from liveseller.time_utils import to_utc_z
from .accounting_policy import AccountingPolicy, get_accounting_policy
from .concurrency import run_with_retry
from .ledger_service import append_ledger_event


UNKNOWN_DISPLAY_NAME = "Unknown"

JOY_FILTER_ALL = "ALL"
JOY_FILTER_JOY_ONLY = "JOY_ONLY"
VALID_JOY_FILTERS = {JOY_FILTER_ALL, JOY_FILTER_JOY_ONLY}

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "display_name",
        "real_name",
        "phone",
        "email",
        "address_line1",
        "address_line2",
        "city",
        "province",
        "postal_code",
        "notes",
    },
)


@dataclass
class CustomerStats:
    total_orders: int = 0
    total_paid_orders: int = 0
    total_spent_cents: int = 0
    no_pay_count: int = 0
    first_order_date: datetime | None = None
    last_order_date: datetime | None = None
    last_order_status: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["first_order_date"] = to_utc_z(self.first_order_date)
        data["last_order_date"] = to_utc_z(self.last_order_date)
        return data


def normalize_display_name(name: str | None) -> str:
    trimmed = (name or "").strip()
    return trimmed or UNKNOWN_DISPLAY_NAME


# =============================================================================
# LOOKUP / CREATE
# =============================================================================

def _find_customer_by_display_name(display_name: str) -> Customer | None:
    return (
        db.session.query(Customer)
        .filter(Customer.display_name_key == display_name_key(display_name))
        .order_by(Customer.id.asc())
        .first()
    )


def _get_or_create_customer_inner(display_name: str) -> Customer:
    """Lookup-or-create by display name (case-insensitive), flush only."""
    trimmed = display_name.strip()
    if not trimmed:
        raise ValidationError("display_name is required to create a customer")

    existing = _find_customer_by_display_name(trimmed)
    if existing:
        return existing

    customer = Customer(display_name=trimmed)
    db.session.add(customer)
    db.session.flush()

    append_ledger_event(
        event_type="customer.created",
        event_category="customer",
        entity_type="customer",
        entity_id=customer.id,
        note=trimmed,
    )
    return customer


def get_or_create_customer_by_display_name(display_name: str) -> Customer:
    def _op():
        customer = _get_or_create_customer_inner(display_name or "")
        db.session.commit()
        return customer

    return run_with_retry(_op)


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def update_customer(customer_id: int, payload: dict) -> Customer:
    """Patch contact/address fields. Aggregates are not writable."""
    def _op():
        customer = get_customer(customer_id)
        patch = validate_payload(
            model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True
        )
        for key, value in patch.items():
            setattr(customer, key, value)
        db.session.commit()
        return customer

    return run_with_retry(_op)


# =============================================================================
# AGGREGATES
# =============================================================================

def compute_customer_stats(
    orders: list[Order],
    joy_reserve_claim_count: int = 0,
    *,
    policy: AccountingPolicy | None = None,
) -> CustomerStats:
    """
    Pure aggregate over a customer's orders.

    Paid/no-pay use the configured accounting policy; joy-reserve claims
    are added to no_pay_count when the policy includes them.
    """
    policy = policy or get_accounting_policy()
    ordered = sorted(orders, key=lambda o: (o.created_at or datetime.min, o.id or 0))

    paid = [o for o in orders if policy.is_paid_order(o)]
    no_pay = sum(1 for o in orders if policy.is_no_pay_order(o))
    if policy.include_joy_reserve_claims:
        no_pay += joy_reserve_claim_count

    return CustomerStats(
        total_orders=len(orders),
        total_paid_orders=len(paid),
        total_spent_cents=sum(o.grand_total_cents or 0 for o in paid),
        no_pay_count=no_pay,
        first_order_date=ordered[0].created_at if ordered else None,
        last_order_date=ordered[-1].created_at if ordered else None,
        last_order_status=ordered[-1].status if ordered else None,
    )


def _count_joy_reserve_claims(customer: Customer) -> int:
    """Flagged claims linked by id, or unlinked claims typed with the same name."""
    claims = (
        db.session.query(Claim)
        .filter(Claim.joy_reserve.is_(True))
        .filter(db.or_(Claim.customer_id == customer.id, Claim.customer_id.is_(None)))
        .all()
    )
    # Names compared in Python; SQLite lower() folds ASCII only
    return sum(
        1 for c in claims
        if c.customer_id == customer.id or display_name_key(c.temporary_name) == customer.display_name_key
    )


def _apply_stats(customer: Customer, stats: CustomerStats) -> None:
    customer.total_orders = stats.total_orders
    customer.total_paid_orders = stats.total_paid_orders
    customer.total_spent_cents = stats.total_spent_cents
    customer.no_pay_count = stats.no_pay_count
    customer.first_order_date = stats.first_order_date
    customer.last_order_date = stats.last_order_date
    customer.last_order_status = stats.last_order_status


def _recompute_customer_stats_inner(customer_id: int) -> Customer | None:
    """
    Rewrite the customer's stored aggregates (flush only).

    Returns None when the customer no longer exists.
    """
    customer = db.session.get(Customer, customer_id)
    if not customer:
        return None

    orders = db.session.query(Order).filter(Order.customer_id == customer_id).all()
    stats = compute_customer_stats(orders, _count_joy_reserve_claims(customer))
    _apply_stats(customer, stats)
    db.session.flush()
    return customer


def recompute_customer_stats(customer_id: int) -> Customer:
    def _op():
        customer = _recompute_customer_stats_inner(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        db.session.commit()
        return customer

    return run_with_retry(_op)


def recompute_all_customer_stats() -> int:
    """Rebuild every customer's aggregates; returns the number updated."""
    def _op():
        ids = [row[0] for row in db.session.query(Customer.id).all()]
        for customer_id in ids:
            _recompute_customer_stats_inner(customer_id)
        db.session.commit()
        return len(ids)

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_customer_overview_list(
    *,
    search: str | None = None,
    joy_filter: str = JOY_FILTER_ALL,
) -> list[dict]:
    """
    Ranked customer summaries computed live from orders and claims.

    Ranking: no_pay_count desc, then total_spent desc, then display name.
    """
    if joy_filter not in VALID_JOY_FILTERS:
        raise ValidationError(
            f"Invalid joy_filter '{joy_filter}'. Must be one of: {', '.join(sorted(VALID_JOY_FILTERS))}"
        )

    policy = get_accounting_policy()
    customers = db.session.query(Customer).all()

    id_by_name: dict[str, int] = {}
    for customer in sorted(customers, key=lambda c: c.id):
        id_by_name.setdefault(customer.display_name_key, customer.id)

    orders_by_customer: dict[int, list[Order]] = {}
    for order in db.session.query(Order).all():
        orders_by_customer.setdefault(order.customer_id, []).append(order)

    joy_counts: dict[int, int] = {}
    for claim in db.session.query(Claim).filter(Claim.joy_reserve.is_(True)).all():
        customer_id = claim.customer_id
        if customer_id is None and claim.temporary_name:
            customer_id = id_by_name.get(display_name_key(claim.temporary_name))
        if customer_id is None:
            continue
        joy_counts[customer_id] = joy_counts.get(customer_id, 0) + 1

    term = (search or "").strip().casefold()
    rows = []
    for customer in customers:
        if term:
            display = (customer.display_name or "").casefold()
            real = (customer.real_name or "").casefold()
            if term not in display and term not in real:
                continue

        stats = compute_customer_stats(
            orders_by_customer.get(customer.id, []),
            joy_counts.get(customer.id, 0),
            policy=policy,
        )
        if joy_filter == JOY_FILTER_JOY_ONLY and stats.no_pay_count <= 0:
            continue

        row = {"customer": customer.to_dict()}
        row.update(stats.to_dict())
        row["is_joy_reserve"] = stats.no_pay_count > 0
        rows.append(row)

    rows.sort(key=lambda r: (-r["no_pay_count"], -r["total_spent_cents"], r["customer"]["display_name"].casefold()))
    return rows


def get_customer_with_history(customer_id: int) -> dict:
    customer = get_customer(customer_id)
    orders = (
        db.session.query(Order)
        .filter(Order.customer_id == customer_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return {
        "customer": customer.to_dict(),
        "orders": [o.to_dict() for o in orders],
    }


def list_customer_basics() -> list[dict]:
    """Lightweight id + names list for pickers."""
    customers = db.session.query(Customer).order_by(Customer.display_name_key, Customer.id).all()
    return [
        {"id": c.id, "display_name": c.display_name, "real_name": c.real_name}
        for c in customers
    ]
