# Overview: Flask API routes for shipments; upsert per order and one-click status changes.

# backend/liveseller/routes/shipments.py
"""
Shipment API Routes

Shipment status drives order status forward (IN_TRANSIT -> SHIPPED when
paid, DELIVERED -> DELIVERED, RETURNED -> RETURNED). Orders already
CANCELLED or RETURNED refuse the cascade with 409.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import shipment_service
from ..validation import ConflictError, NotFoundError, ValidationError
from liveseller.time_utils import parse_iso_datetime


shipments_bp = Blueprint("shipments", __name__, url_prefix="/api/shipments")


@shipments_bp.put("/orders/<int:order_id>")
def upsert_shipment_route(order_id: int):
    """
    Create or update the order's shipment.

    Request body (all optional):
    {
        "courier": "J&T",
        "tracking_number": "JT123",
        "shipping_fee_cents": 5000,
        "status": "BOOKED",
        "booking_date": "...", "ship_date": "...", "delivery_date": "...",
        "notes": "..."
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        result = shipment_service.create_or_update_shipment(order_id, payload)
        return jsonify({
            "shipment": result["shipment"].to_dict(),
            "order": result["order"].to_dict(),
        }), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to save shipment")
        return jsonify({"error": "Internal server error"}), 500


@shipments_bp.post("/<int:shipment_id>/status")
def update_shipment_status_route(shipment_id: int):
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not status:
        return jsonify({"error": "status is required"}), 400

    try:
        result = shipment_service.update_shipment_status(
            shipment_id,
            status,
            ship_date=parse_iso_datetime(payload.get("ship_date")),
            delivery_date=parse_iso_datetime(payload.get("delivery_date")),
        )
        return jsonify({
            "shipment": result["shipment"].to_dict(),
            "order": result["order"].to_dict(),
        }), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except (ValidationError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update shipment status")
        return jsonify({"error": "Internal server error"}), 500


@shipments_bp.get("/<int:shipment_id>")
def get_shipment_route(shipment_id: int):
    try:
        shipment = shipment_service.get_shipment(shipment_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"shipment": shipment.to_dict()}), 200


@shipments_bp.get("/orders/<int:order_id>")
def get_order_shipment_route(order_id: int):
    shipment = shipment_service.get_shipment_for_order(order_id)
    return jsonify({"shipment": shipment.to_dict() if shipment else None}), 200
