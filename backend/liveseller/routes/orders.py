# Overview: Flask API routes for orders; claim-to-order build, sync, fees and status.

# backend/liveseller/routes/orders.py
"""
Order API Routes

- Build/sync orders from a live session's ACCEPTED claims
- Remove the order lines of a rejected/cancelled claim
- Order queries, fee/discount edits and manual status changes
- Included-tax breakdown and audit trail per order

Derived totals are never accepted from clients; every write ends in a
recalculation on the server.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import claim_order_service, ledger_service, order_service, tax_service
from ..validation import ConflictError, NotFoundError, ValidationError


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


# =============================================================================
# CLAIM RECONCILIATION
# =============================================================================

@orders_bp.post("/sessions/<int:live_session_id>/build")
def build_orders_route(live_session_id: int):
    """
    Build orders from the session's ACCEPTED claims.

    Safe to repeat: claims already on an order line are skipped.

    Returns:
        200: {"created_orders": n, "created_lines": m}
        404: Live session not found
    """
    try:
        result = claim_order_service.build_orders_from_claims(live_session_id)
        return jsonify(result), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/sessions/<int:live_session_id>/sync")
def sync_orders_route(live_session_id: int):
    """Re-align UNPAID orders of the session with its current ACCEPTED claims."""
    try:
        affected = claim_order_service.sync_unpaid_orders_for_session(live_session_id)
        return jsonify({"affected_orders": affected}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to sync orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/claims/<int:claim_id>/remove-lines")
def remove_claim_lines_route(claim_id: int):
    """Remove order lines created from a claim from UNPAID orders."""
    try:
        affected = claim_order_service.remove_order_lines_for_claim(claim_id)
        return jsonify({"affected_orders": affected}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to remove claim lines")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/sessions/<int:live_session_id>")
def list_session_orders_route(live_session_id: int):
    orders = order_service.list_orders_for_session(live_session_id)
    return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200


# =============================================================================
# ORDER QUERIES
# =============================================================================

@orders_bp.get("/")
def list_orders_route():
    """
    List orders, newest first.

    Query params: status, payment_status, customer_id, limit (default 100), offset
    """
    orders, total = order_service.list_orders(
        status=request.args.get("status"),
        payment_status=request.args.get("payment_status"),
        customer_id=request.args.get("customer_id", type=int),
        limit=request.args.get("limit", 100, type=int),
        offset=request.args.get("offset", 0, type=int),
    )
    return jsonify({"orders": [o.to_dict() for o in orders], "total": total}), 200


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        return jsonify(order_service.get_order_detail(order_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@orders_bp.get("/<int:order_id>/tax")
def get_order_tax_route(order_id: int):
    try:
        return jsonify(tax_service.get_order_tax_breakdown(order_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


# =============================================================================
# ORDER EDITS
# =============================================================================

@orders_bp.patch("/<int:order_id>/fees")
def update_fees_route(order_id: int):
    """
    Update fees and/or promo discount, then recalculate.

    Request body (all optional):
    {
        "shipping_fee_cents": 5000,
        "cod_fee_cents": 0,
        "other_fees_cents": 0,
        "promo_discount_total_cents": 1000
    }
    """
    payload = request.get_json(silent=True) or {}
    allowed = {"shipping_fee_cents", "cod_fee_cents", "other_fees_cents", "promo_discount_total_cents"}
    unknown = sorted(set(payload) - allowed)
    if unknown:
        return jsonify({"error": f"Field not allowed: {', '.join(unknown)}"}), 400

    try:
        order = order_service.update_order_fees(order_id, **payload)
        return jsonify({"order": order.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update order fees")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/discount")
def update_discount_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        order = order_service.update_order_discount(order_id, payload.get("amount_cents"))
        return jsonify({"order": order.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update order discount")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/status")
def update_status_route(order_id: int):
    """
    Manual status change.

    Request body: {"status": "CANCELLED", "note": "buyer backed out"}

    Returns:
        200: Updated order
        400: Unknown status
        404: Order not found
        409: Transition not allowed from the current status
    """
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not status:
        return jsonify({"error": "status is required"}), 400

    try:
        order = order_service.update_order_status(order_id, status, note=payload.get("note"))
        return jsonify({"order": order.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>/events")
def order_events_route(order_id: int):
    """Audit trail of an order (newest first). Query params: limit (default 100)."""
    try:
        order_service.get_order(order_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    events = ledger_service.list_ledger_events(order_id=order_id, limit=request.args.get("limit", 100, type=int))
    return jsonify({"events": [ev.to_dict() for ev in events], "count": len(events)}), 200
