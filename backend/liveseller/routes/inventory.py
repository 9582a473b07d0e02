# Overview: Flask API routes for the item catalog and stock adjustments.

# backend/liveseller/routes/inventory.py
"""
Inventory API Routes

- Catalog: create/update/get/list items (with variants)
- Stock: manual current/reserved adjustments (clamped or rejected per
  STOCK_OVERDRAW_POLICY)
- Low stock listing
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import inventory_service
from ..validation import ConflictError, NotFoundError, ValidationError


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _item_dict(item) -> dict:
    data = item.to_dict()
    data["stock_status"] = inventory_service.get_stock_status(item)
    return data


# =============================================================================
# CATALOG
# =============================================================================

@inventory_bp.post("/items")
def create_item_route():
    """
    Create an inventory item.

    Request body:
    {
        "item_code": "D-001",
        "name": "Floral dress",
        "cost_price_cents": 15000,
        "selling_price_cents": 35000,
        "initial_stock": 5,
        "variants": [{"label": "S", "stock": 2}, {"label": "M", "stock": 3}]  (optional)
    }

    Returns:
        201: Item created
        400: Invalid input
        409: Duplicate item code
    """
    payload = request.get_json(silent=True) or {}
    try:
        item = inventory_service.create_inventory_item(payload)
        return jsonify({"item": _item_dict(item)}), 201
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/items")
def list_items_route():
    search = request.args.get("search")
    status = request.args.get("status")
    items = inventory_service.list_inventory_items(search=search, status=status)
    return jsonify({"items": [_item_dict(i) for i in items], "count": len(items)}), 200


@inventory_bp.get("/items/<int:item_id>")
def get_item_route(item_id: int):
    try:
        item = inventory_service.get_inventory_item(item_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"item": _item_dict(item)}), 200


@inventory_bp.patch("/items/<int:item_id>")
def update_item_route(item_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        item = inventory_service.update_inventory_item(item_id, payload)
        return jsonify({"item": _item_dict(item)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/low-stock")
def low_stock_route():
    limit = request.args.get("limit", type=int)
    items = inventory_service.list_low_stock_items(limit=limit)
    return jsonify({"items": [_item_dict(i) for i in items], "count": len(items)}), 200


# =============================================================================
# STOCK
# =============================================================================

@inventory_bp.post("/items/<int:item_id>/adjust")
def adjust_stock_route(item_id: int):
    """
    Adjust on-hand and/or reserved stock.

    Request body:
    {
        "current_delta": -1,
        "reserved_delta": 0,
        "variant_id": 3,   (optional)
        "reason": "damaged"   (optional)
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        item = inventory_service.adjust_stock(
            item_id,
            current_delta=payload.get("current_delta", 0),
            reserved_delta=payload.get("reserved_delta", 0),
            variant_id=payload.get("variant_id"),
            reason=payload.get("reason"),
        )
        return jsonify({"item": _item_dict(item)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500
