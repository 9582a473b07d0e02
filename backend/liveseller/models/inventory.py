from __future__ import annotations

from ..extensions import db
from liveseller.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    Sellable inventory item.

    STOCK MODEL:
    - current_stock: units on hand (never negative)
    - reserved_stock: units held for accepted claims not yet built into orders
    - available = max(0, current_stock - reserved_stock)

    Variants (sizes/colors) may override cost and selling price; the item
    values are the fallback.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("item_code", name="uq_inventory_items_code"),
        db.Index("ix_inventory_items_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    item_code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)

    # ACTIVE, INACTIVE, DISCONTINUED
    status = db.Column(db.String(16), nullable=False, default="ACTIVE")

    # Authoritative storage in cents
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    initial_stock = db.Column(db.Integer, nullable=False, default=0)
    current_stock = db.Column(db.Integer, nullable=False, default=0)
    reserved_stock = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    variants = db.relationship(
        "InventoryVariant",
        backref="item",
        lazy=True,
        order_by="InventoryVariant.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def available_stock(self) -> int:
        return max(0, (self.current_stock or 0) - (self.reserved_stock or 0))

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} item_code={self.item_code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_code": self.item_code,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "status": self.status,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "initial_stock": self.initial_stock,
            "current_stock": self.current_stock,
            "reserved_stock": self.reserved_stock,
            "available_stock": self.available_stock,
            "low_stock_threshold": self.low_stock_threshold,
            "variants": [v.to_dict() for v in self.variants],
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryVariant(db.Model):
    """Size/color variant; NULL prices fall back to the parent item."""
    __tablename__ = "inventory_variants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    label = db.Column(db.String(128), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=True)
    selling_price_cents = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "label": self.label,
            "stock": self.stock,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
        }
