from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db
from liveseller.time_utils import to_utc_z


def display_name_key(name: str | None) -> str:
    """Case-insensitive match key; casefold also folds non-ASCII names."""
    return (name or "").strip().casefold()


class Customer(db.Model):
    """
    Buyer known by the name they use during lives.

    Aggregates (total_orders .. last_order_status) are a materialized view of
    the customer's orders and flagged claims, rewritten by
    customer_service.recompute_customer_stats.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_display_name_key", "display_name_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    display_name = db.Column(db.String(255), nullable=False)
    # Kept in sync with display_name by _sync_display_name_key
    display_name_key = db.Column(db.String(255), nullable=False)
    real_name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address_line1 = db.Column(db.String(255), nullable=True)
    address_line2 = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    province = db.Column(db.String(128), nullable=True)
    postal_code = db.Column(db.String(16), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Denormalized aggregates
    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_paid_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spent_cents = db.Column(db.Integer, nullable=False, default=0)
    no_pay_count = db.Column(db.Integer, nullable=False, default=0)
    first_order_date = db.Column(db.DateTime(timezone=True), nullable=True)
    last_order_date = db.Column(db.DateTime(timezone=True), nullable=True)
    last_order_status = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @validates("display_name")
    def _sync_display_name_key(self, key, value):
        self.display_name_key = display_name_key(value)
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "real_name": self.real_name,
            "phone": self.phone,
            "email": self.email,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "city": self.city,
            "province": self.province,
            "postal_code": self.postal_code,
            "notes": self.notes,
            "total_orders": self.total_orders,
            "total_paid_orders": self.total_paid_orders,
            "total_spent_cents": self.total_spent_cents,
            "no_pay_count": self.no_pay_count,
            "first_order_date": to_utc_z(self.first_order_date),
            "last_order_date": to_utc_z(self.last_order_date),
            "last_order_status": self.last_order_status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
