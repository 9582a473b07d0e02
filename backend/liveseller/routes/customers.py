# Overview: Flask API routes for customers; overview ranking, history and aggregate recompute.

# backend/liveseller/routes/customers.py
from flask import Blueprint, request, jsonify, current_app

from ..services import customer_service
from ..validation import NotFoundError, ValidationError


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("/")
def customer_overview_route():
    """
    Ranked overview (no-pay count desc, then total spent desc).

    Query params: search, joy_filter (ALL | JOY_ONLY)
    """
    try:
        rows = customer_service.get_customer_overview_list(
            search=request.args.get("search"),
            joy_filter=request.args.get("joy_filter", customer_service.JOY_FILTER_ALL),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"customers": rows, "count": len(rows)}), 200


@customers_bp.get("/basics")
def customer_basics_route():
    return jsonify({"customers": customer_service.list_customer_basics()}), 200


@customers_bp.get("/<int:customer_id>")
def customer_history_route(customer_id: int):
    try:
        return jsonify(customer_service.get_customer_with_history(customer_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.patch("/<int:customer_id>")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.update_customer(customer_id, payload)
        return jsonify({"customer": customer.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/<int:customer_id>/recompute")
def recompute_customer_route(customer_id: int):
    try:
        customer = customer_service.recompute_customer_stats(customer_id)
        return jsonify({"customer": customer.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
