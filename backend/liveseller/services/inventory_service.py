# Overview: Inventory ledger operations; stock adjustment, price resolution and item catalog.

# backend/liveseller/services/inventory_service.py

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import InventoryItem, InventoryVariant
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    require_cents,
    require_choice,
    validate_payload,
)
from .ledger_service import append_ledger_event, format_payload
from .concurrency import lock_for_update, run_with_retry
"""
Inventory Invariants

Stock model:
- current_stock and reserved_stock are stored counters, never negative.
- A variant's stock counts units still available for that variant; it moves by
  (current_delta - reserved_delta) and is never negative either.
- The claim intake workflow reserves stock (reserved_delta=+q); building the
  order consumes it (current_delta=-q, reserved_delta=-q).

Overdraw policy (STOCK_OVERDRAW_POLICY):
- "clamp" (default): a delta that would drive a counter below zero stops at
  zero; the clamp is logged and recorded in the audit ledger.
- "reject": raises InsufficientStockError and nothing is written.

Pricing:
- resolve_effective_price is the single place variant overrides fall back to
  item values. Order building and finance both call it.
"""


class InsufficientStockError(ValidationError):
    """Adjustment would drive stock below zero under the reject policy."""


# =============================================================================
# CONSTANTS
# =============================================================================

ITEM_STATUS_ACTIVE = "ACTIVE"
VALID_ITEM_STATUSES = {"ACTIVE", "INACTIVE", "DISCONTINUED"}

STOCK_STATUS_OUT = "OUT"
STOCK_STATUS_LOW = "LOW"
STOCK_STATUS_OK = "OK"

OVERDRAW_CLAMP = "clamp"
OVERDRAW_REJECT = "reject"

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "item_code",
        "name",
        "category",
        "description",
        "status",
        "cost_price_cents",
        "selling_price_cents",
        "initial_stock",
        "low_stock_threshold",
    },
    required_on_create={"item_code", "name"},
)

VARIANT_POLICY = ModelValidationPolicy(
    writable_fields={"label", "stock", "cost_price_cents", "selling_price_cents"},
    required_on_create={"label"},
)


def _overdraw_policy() -> str:
    policy = current_app.config.get("STOCK_OVERDRAW_POLICY", OVERDRAW_CLAMP)
    if policy not in {OVERDRAW_CLAMP, OVERDRAW_REJECT}:
        raise ValueError(f"Unknown STOCK_OVERDRAW_POLICY '{policy}'")
    return policy


def _get_item_locked(item_id: int) -> InventoryItem:
    item = lock_for_update(db.session.query(InventoryItem).filter_by(id=item_id)).first()
    if not item:
        raise NotFoundError(f"Inventory item {item_id} not found")
    return item


def _find_variant(item: InventoryItem, variant_id: int | None) -> InventoryVariant | None:
    if variant_id is None:
        return None
    for variant in item.variants:
        if variant.id == variant_id:
            return variant
    return None


# =============================================================================
# STOCK ADJUSTMENT
# =============================================================================

def _apply_delta(value: int, delta: int, *, label: str, policy: str) -> tuple[int, bool]:
    """Return (next_value, clamped)."""
    raw = (value or 0) + delta
    if raw >= 0:
        return raw, False
    if policy == OVERDRAW_REJECT:
        raise InsufficientStockError(
            f"{label} would go negative ({value} {delta:+d})"
        )
    return 0, True


def _adjust_stock_inner(
    item: InventoryItem,
    *,
    current_delta: int = 0,
    reserved_delta: int = 0,
    variant_id: int | None = None,
    reason: str | None = None,
    order_id: int | None = None,
) -> InventoryItem:
    """
    Adjust stock counters without retry or commit (flush only).
    Caller owns the transaction and must have loaded item for update.
    """
    policy = _overdraw_policy()

    next_current, clamped_current = _apply_delta(
        item.current_stock, current_delta, label="current_stock", policy=policy
    )
    next_reserved, clamped_reserved = _apply_delta(
        item.reserved_stock, reserved_delta, label="reserved_stock", policy=policy
    )

    variant = _find_variant(item, variant_id)
    clamped_variant = False
    if variant is not None:
        variant.stock, clamped_variant = _apply_delta(
            variant.stock, current_delta - reserved_delta, label="variant stock", policy=policy
        )

    item.current_stock = next_current
    item.reserved_stock = next_reserved

    clamped = clamped_current or clamped_reserved or clamped_variant
    if clamped:
        current_app.logger.warning(
            "Stock clamped at zero for item %s (current_delta=%s reserved_delta=%s variant_id=%s)",
            item.id, current_delta, reserved_delta, variant_id,
        )

    db.session.flush()

    append_ledger_event(
        event_type="inventory.clamped" if clamped else "inventory.adjusted",
        event_category="inventory",
        entity_type="inventory_item",
        entity_id=item.id,
        order_id=order_id,
        note=reason,
        payload=format_payload(
            current_delta=current_delta,
            reserved_delta=reserved_delta,
            variant_id=variant_id,
            current_stock=item.current_stock,
            reserved_stock=item.reserved_stock,
        ),
    )
    return item


def adjust_stock_inner(
    item_id: int,
    *,
    current_delta: int = 0,
    reserved_delta: int = 0,
    variant_id: int | None = None,
    reason: str | None = None,
    order_id: int | None = None,
) -> InventoryItem:
    """Load-and-lock variant of _adjust_stock_inner for callers holding only an id."""
    item = _get_item_locked(item_id)
    return _adjust_stock_inner(
        item,
        current_delta=current_delta,
        reserved_delta=reserved_delta,
        variant_id=variant_id,
        reason=reason,
        order_id=order_id,
    )


def adjust_stock(
    item_id: int,
    *,
    current_delta: int = 0,
    reserved_delta: int = 0,
    variant_id: int | None = None,
    reason: str | None = None,
) -> InventoryItem:
    """
    Adjust on-hand and reserved stock for an item (and optionally a variant).

    Each counter becomes max(0, value + delta) independently under the clamp
    policy. Raises NotFoundError when the item does not exist and
    InsufficientStockError under the reject policy.
    """
    def _op():
        for name, value in (("current_delta", current_delta), ("reserved_delta", reserved_delta)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{name} must be an integer")

        item = adjust_stock_inner(
            item_id,
            current_delta=current_delta,
            reserved_delta=reserved_delta,
            variant_id=variant_id,
            reason=reason,
        )
        db.session.commit()
        return item

    return run_with_retry(_op)


# =============================================================================
# PRICING & STATUS
# =============================================================================

def resolve_effective_price(item: InventoryItem, variant_id: int | None) -> tuple[int, int]:
    """
    (cost_cents, price_cents) for an item/variant pair.

    Variant values win when set; otherwise the item's values apply. An
    unknown variant id resolves to the item's values.
    """
    cost = item.cost_price_cents or 0
    price = item.selling_price_cents or 0
    variant = _find_variant(item, variant_id)
    if variant is not None:
        if variant.cost_price_cents is not None:
            cost = variant.cost_price_cents
        if variant.selling_price_cents is not None:
            price = variant.selling_price_cents
    return cost, price


def get_stock_status(item: InventoryItem) -> str:
    available = item.available_stock
    if available <= 0:
        return STOCK_STATUS_OUT
    if available <= (item.low_stock_threshold or 0):
        return STOCK_STATUS_LOW
    return STOCK_STATUS_OK


# =============================================================================
# CATALOG
# =============================================================================

def _item_code_taken(item_code: str, *, exclude_id: int | None = None) -> bool:
    query = db.session.query(InventoryItem.id).filter(
        func.lower(InventoryItem.item_code) == item_code.lower()
    )
    if exclude_id is not None:
        query = query.filter(InventoryItem.id != exclude_id)
    return query.first() is not None


def _validate_item_rules(patch: dict) -> None:
    for field in ("cost_price_cents", "selling_price_cents"):
        if patch.get(field) is not None:
            require_cents(field, patch[field])
    for field in ("initial_stock", "low_stock_threshold"):
        if patch.get(field) is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")
    if patch.get("status") is not None:
        require_choice("status", patch["status"], VALID_ITEM_STATUSES)


def create_inventory_item(payload: dict) -> InventoryItem:
    """
    Create an item with optional variants.

    item_code is unique (case-insensitive). When variants are supplied the
    item's initial/current stock is the sum of the variants' stock.
    Reserved stock always starts at 0.
    """
    def _op():
        payload_copy = dict(payload or {})
        raw_variants = payload_copy.pop("variants", None) or []
        if not isinstance(raw_variants, list):
            raise ValidationError("variants must be a list")

        patch = validate_payload(
            model=InventoryItem, payload=payload_copy, policy=ITEM_POLICY, partial=False
        )
        _validate_item_rules(patch)

        if _item_code_taken(patch["item_code"]):
            raise ConflictError(f"Item code '{patch['item_code']}' already exists")

        variants = []
        for raw in raw_variants:
            vpatch = validate_payload(
                model=InventoryVariant, payload=raw, policy=VARIANT_POLICY, partial=False
            )
            if (vpatch.get("stock") or 0) < 0:
                raise ValidationError("variant stock must be >= 0")
            for field in ("cost_price_cents", "selling_price_cents"):
                if vpatch.get(field) is not None:
                    require_cents(field, vpatch[field])
            variants.append(InventoryVariant(**vpatch))

        item = InventoryItem(**patch)
        if variants:
            item.initial_stock = sum(v.stock or 0 for v in variants)
            item.variants = variants
        item.current_stock = item.initial_stock or 0
        item.reserved_stock = 0

        db.session.add(item)
        db.session.flush()

        append_ledger_event(
            event_type="inventory.item_created",
            event_category="inventory",
            entity_type="inventory_item",
            entity_id=item.id,
            note=item.item_code,
            payload=format_payload(initial_stock=item.initial_stock, variants=len(variants)),
        )
        db.session.commit()
        return item

    return run_with_retry(_op)


def update_inventory_item(item_id: int, payload: dict) -> InventoryItem:
    """Patch catalog fields. Stock counters change only through adjust_stock."""
    def _op():
        item = _get_item_locked(item_id)
        patch = validate_payload(
            model=InventoryItem,
            payload=payload,
            policy=ModelValidationPolicy(
                writable_fields=ITEM_POLICY.writable_fields - {"initial_stock"}
            ),
            partial=True,
        )
        _validate_item_rules(patch)
        if "item_code" in patch and _item_code_taken(patch["item_code"], exclude_id=item.id):
            raise ConflictError(f"Item code '{patch['item_code']}' already exists")

        for key, value in patch.items():
            setattr(item, key, value)
        db.session.commit()
        return item

    return run_with_retry(_op)


def get_inventory_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if not item:
        raise NotFoundError(f"Inventory item {item_id} not found")
    return item


def list_inventory_items(*, search: str | None = None, status: str | None = None) -> list[InventoryItem]:
    query = db.session.query(InventoryItem)
    if status:
        query = query.filter(InventoryItem.status == status)
    if search and search.strip():
        term = f"%{search.strip().lower()}%"
        query = query.filter(
            db.or_(
                func.lower(InventoryItem.item_code).like(term),
                func.lower(InventoryItem.name).like(term),
            )
        )
    return query.order_by(InventoryItem.name.asc(), InventoryItem.id.asc()).all()


def list_low_stock_items(*, limit: int | None = None) -> list[InventoryItem]:
    """Active items with a threshold set whose available stock is at or below it."""
    items = (
        db.session.query(InventoryItem)
        .filter(InventoryItem.status == ITEM_STATUS_ACTIVE)
        .filter(InventoryItem.low_stock_threshold > 0)
        .all()
    )
    low = [item for item in items if get_stock_status(item) != STOCK_STATUS_OK]
    low.sort(key=lambda item: (item.available_stock, item.id))
    if limit is not None:
        low = low[:limit]
    return low
