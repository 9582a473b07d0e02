# Overview: Flask API routes for live sessions.

# backend/liveseller/routes/sessions.py
from flask import Blueprint, request, jsonify, current_app

from ..services import live_session_service
from ..validation import NotFoundError, ValidationError


sessions_bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")


@sessions_bp.post("/")
def create_session_route():
    """
    Request body: {"title": "Friday ukay", "platform": "FACEBOOK", "channel_name": "..."}
    """
    payload = request.get_json(silent=True) or {}
    try:
        session = live_session_service.create_live_session(payload)
        return jsonify({"session": session.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create live session")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.get("/")
def list_sessions_route():
    sessions = live_session_service.list_live_sessions()
    return jsonify({"sessions": [s.to_dict() for s in sessions]}), 200


@sessions_bp.get("/<int:live_session_id>")
def get_session_route(live_session_id: int):
    try:
        session = live_session_service.get_live_session(live_session_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"session": session.to_dict()}), 200


@sessions_bp.patch("/<int:live_session_id>")
def update_session_route(live_session_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        session = live_session_service.update_live_session(live_session_id, payload)
        return jsonify({"session": session.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@sessions_bp.post("/<int:live_session_id>/status")
def set_session_status_route(live_session_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        session = live_session_service.set_live_session_status(live_session_id, payload.get("status"))
        return jsonify({"session": session.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
