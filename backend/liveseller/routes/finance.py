# Overview: Flask API routes for finance rollups; range/session snapshots, series and dashboard.

# backend/liveseller/routes/finance.py
"""
Finance API Routes

All amounts are integer cents. Ranges are inclusive; a date-only "to"
covers the whole day.

Query params for range endpoints:
- from: ISO date/datetime (required)
- to: ISO date/datetime (required)
- platform: ALL | FACEBOOK | TIKTOK | SHOPEE | OTHER (default ALL)
"""

from flask import Blueprint, request, jsonify

from ..services import finance_service
from ..services.finance_service import FinanceError
from ..validation import NotFoundError


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")


def _range_args():
    return (
        request.args.get("from"),
        request.args.get("to"),
        request.args.get("platform", finance_service.PLATFORM_ALL),
    )


@finance_bp.get("/snapshot")
def range_snapshot_route():
    start, end, platform = _range_args()
    try:
        snapshot = finance_service.get_finance_snapshot_for_range(
            start, end, platform, top_n=request.args.get("top_n", type=int)
        )
    except FinanceError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(snapshot), 200


@finance_bp.get("/sessions/<int:live_session_id>")
def session_snapshot_route(live_session_id: int):
    try:
        snapshot = finance_service.get_finance_snapshot_for_live_session(
            live_session_id, top_n=request.args.get("top_n", type=int)
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except FinanceError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(snapshot), 200


@finance_bp.get("/products")
def product_performance_route():
    try:
        rows = finance_service.get_product_performance(*_range_args())
    except FinanceError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"products": rows}), 200


@finance_bp.get("/cash-flow")
def cash_flow_route():
    try:
        return jsonify(finance_service.get_cash_flow(*_range_args())), 200
    except FinanceError as e:
        return jsonify({"error": str(e)}), 400


@finance_bp.get("/net-profit-series")
def net_profit_series_route():
    try:
        series = finance_service.get_net_profit_series(*_range_args())
    except FinanceError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"series": series}), 200


@finance_bp.get("/dashboard")
def dashboard_route():
    return jsonify(finance_service.get_dashboard_summary()), 200
