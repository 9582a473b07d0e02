from __future__ import annotations

from ..extensions import db
from liveseller.time_utils import to_utc_z


class Order(db.Model):
    """
    Customer order built from accepted live-session claims.

    DERIVED FIELDS (written only by order_service.recalculate_order_totals):
    - subtotal_cents, discount_total_cents, grand_total_cents
    - amount_paid_cents, balance_due_cents
    - payment_status (UNPAID, PARTIAL, PAID)
    - status, while the order is not in a terminal state

    grand_total = subtotal - discount_total - promo_discount_total
                  + shipping_fee + cod_fee + other_fees
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_session_customer", "live_session_id", "customer_id"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    live_session_id = db.Column(db.Integer, db.ForeignKey("live_sessions.id"), nullable=True, index=True)

    # DRAFT, PENDING_PAYMENT, PARTIALLY_PAID, PAID, PACKING, SHIPPED, DELIVERED, CANCELLED, RETURNED
    status = db.Column(db.String(16), nullable=False, default="PENDING_PAYMENT", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID", index=True)

    # Money (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_total_cents = db.Column(db.Integer, nullable=False, default=0)
    promo_discount_total_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    cod_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    other_fees_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_due_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    live_session = db.relationship("LiveSession", backref=db.backref("orders", lazy=True))
    lines = db.relationship("OrderLine", backref="order", lazy=True, order_by="OrderLine.id")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} order_number={self.order_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "live_session_id": self.live_session_id,
            "status": self.status,
            "payment_status": self.payment_status,
            "subtotal_cents": self.subtotal_cents,
            "discount_total_cents": self.discount_total_cents,
            "promo_discount_total_cents": self.promo_discount_total_cents,
            "shipping_fee_cents": self.shipping_fee_cents,
            "cod_fee_cents": self.cod_fee_cents,
            "other_fees_cents": self.other_fees_cents,
            "grand_total_cents": self.grand_total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderLine(db.Model):
    """
    Individual line on an order.

    claim_id links the line to the claim that produced it and is the
    idempotency key for rebuilding orders from claims. Lines written before
    claim linking existed have claim_id NULL.
    """
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("claim_id", name="uq_order_lines_claim"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    claim_id = db.Column(db.Integer, db.ForeignKey("claims.id"), nullable=True)
    inventory_item_id = db.Column(db.Integer, nullable=False, index=True)
    variant_id = db.Column(db.Integer, nullable=True)

    # Snapshots at time of sale
    item_code_snapshot = db.Column(db.String(64), nullable=True)
    name_snapshot = db.Column(db.String(255), nullable=True)

    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_subtotal_cents = db.Column(db.Integer, nullable=False)
    line_discount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "claim_id": self.claim_id,
            "inventory_item_id": self.inventory_item_id,
            "variant_id": self.variant_id,
            "item_code_snapshot": self.item_code_snapshot,
            "name_snapshot": self.name_snapshot,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_subtotal_cents": self.line_subtotal_cents,
            "line_discount_cents": self.line_discount_cents,
            "line_total_cents": self.line_total_cents,
            "created_at": to_utc_z(self.created_at),
        }


class Payment(db.Model):
    """
    Payment received against an order.

    APPEND-ONLY: a mistaken payment is VOIDED, never deleted or edited.
    Only POSTED payments count toward order.amount_paid_cents.

    METHODS: GCASH, MAYA, BANK, COD, CASH, OTHER
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_status_paid_at", "status", "paid_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False)
    reference_number = db.Column(db.String(128), nullable=True)

    # POSTED, VOIDED
    status = db.Column(db.String(16), nullable=False, default="POSTED")

    # Business time the money was received
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    order = db.relationship("Order", backref=db.backref("payments", lazy=True, order_by="Payment.paid_at"))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "reference_number": self.reference_number,
            "status": self.status,
            "paid_at": to_utc_z(self.paid_at),
            "notes": self.notes,
            "voided_at": to_utc_z(self.voided_at),
            "created_at": to_utc_z(self.created_at),
        }


class Shipment(db.Model):
    """
    Shipment for an order (at most one per order).

    shipping_fee_cents is mirrored onto order.shipping_fee_cents whenever the
    shipment is saved.

    STATUS: PENDING, BOOKED, IN_TRANSIT, DELIVERED, RETURNED, LOST
    """
    __tablename__ = "shipments"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_shipments_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    courier = db.Column(db.String(64), nullable=True)
    tracking_number = db.Column(db.String(128), nullable=True)
    shipping_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    booking_date = db.Column(db.DateTime(timezone=True), nullable=True)
    ship_date = db.Column(db.DateTime(timezone=True), nullable=True)
    delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    order = db.relationship("Order", backref=db.backref("shipment", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "courier": self.courier,
            "tracking_number": self.tracking_number,
            "shipping_fee_cents": self.shipping_fee_cents,
            "status": self.status,
            "booking_date": to_utc_z(self.booking_date),
            "ship_date": to_utc_z(self.ship_date),
            "delivery_date": to_utc_z(self.delivery_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
