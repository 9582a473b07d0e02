# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/liveseller/routes/payments.py
"""
Payment API Routes

- Record a payment against an order (e-wallet, bank, COD, cash)
- Void a payment (status flip, never a delete)
- List payments of an order

Every write recalculates the order's paid amount, balance and status.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import payment_service
from ..validation import NotFoundError, ValidationError


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# =============================================================================
# PAYMENT CREATION
# =============================================================================

@payments_bp.post("/")
def record_payment_route():
    """
    Record a payment.

    Request body:
    {
        "order_id": 12,
        "amount_cents": 35000,
        "method": "GCASH",
        "paid_at": "2026-01-05T10:00:00Z",  (optional, defaults to now)
        "reference_number": "GC-123",  (optional)
        "notes": "..."  (optional)
    }

    Returns:
        201: Payment recorded, with the recalculated order
        400: Invalid input
        404: Order not found
    """
    data = request.get_json(silent=True) or {}
    try:
        result = payment_service.record_payment(
            data.get("order_id"),
            data.get("amount_cents"),
            data.get("method"),
            paid_at=data.get("paid_at"),
            reference_number=data.get("reference_number"),
            notes=data.get("notes"),
        )
        return jsonify({
            "payment": result["payment"].to_dict(),
            "order": result["order"].to_dict(),
        }), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/<int:payment_id>/void")
def void_payment_route(payment_id: int):
    data = request.get_json(silent=True) or {}
    try:
        result = payment_service.void_payment(payment_id, reason=data.get("reason"))
        return jsonify({
            "payment": result["payment"].to_dict(),
            "order": result["order"].to_dict(),
        }), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to void payment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("/<int:payment_id>")
def get_payment_route(payment_id: int):
    try:
        payment = payment_service.get_payment(payment_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"payment": payment.to_dict()}), 200


@payments_bp.get("/orders/<int:order_id>")
def list_order_payments_route(order_id: int):
    include_voided = request.args.get("include_voided", "true").lower() != "false"
    payments = payment_service.list_payments_for_order(order_id, include_voided=include_voided)
    return jsonify({"payments": [p.to_dict() for p in payments], "count": len(payments)}), 200
