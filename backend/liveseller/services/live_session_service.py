# Overview: Live session records; create/update/status changes with start and end stamps.

from __future__ import annotations

from ..extensions import db
from ..models import LiveSession
from ..validation import ModelValidationPolicy, NotFoundError, require_choice, validate_payload
from liveseller.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import append_ledger_event, format_payload


SESSION_PLANNED = "PLANNED"
SESSION_LIVE = "LIVE"
SESSION_PAUSED = "PAUSED"
SESSION_ENDED = "ENDED"
SESSION_CLOSED = "CLOSED"

VALID_SESSION_STATUSES = {SESSION_PLANNED, SESSION_LIVE, SESSION_PAUSED, SESSION_ENDED, SESSION_CLOSED}
VALID_SESSION_PLATFORMS = {"FACEBOOK", "TIKTOK", "SHOPEE", "OTHER"}

SESSION_POLICY = ModelValidationPolicy(
    writable_fields={"title", "platform", "channel_name", "notes"},
    required_on_create={"title"},
)


def create_live_session(payload: dict) -> LiveSession:
    """New sessions always start PLANNED."""
    def _op():
        data = validate_payload(model=LiveSession, payload=payload, policy=SESSION_POLICY, partial=False)
        data["platform"] = require_choice(
            "platform", (data.get("platform") or "FACEBOOK").upper(), VALID_SESSION_PLATFORMS
        )
        session = LiveSession(status=SESSION_PLANNED, **data)
        db.session.add(session)
        db.session.flush()
        db.session.commit()
        return session

    return run_with_retry(_op)


def _get_session_locked(live_session_id: int) -> LiveSession:
    session = lock_for_update(db.session.query(LiveSession).filter_by(id=live_session_id)).first()
    if not session:
        raise NotFoundError(f"Live session {live_session_id} not found")
    return session


def update_live_session(live_session_id: int, payload: dict) -> LiveSession:
    def _op():
        session = _get_session_locked(live_session_id)
        data = validate_payload(model=LiveSession, payload=payload, policy=SESSION_POLICY, partial=True)
        if "platform" in data:
            data["platform"] = require_choice("platform", (data["platform"] or "").upper(), VALID_SESSION_PLATFORMS)
        for key, value in data.items():
            setattr(session, key, value)
        db.session.commit()
        return session

    return run_with_retry(_op)


def set_live_session_status(live_session_id: int, status: str) -> LiveSession:
    """
    Change session status. Going LIVE stamps start_time once; ENDED/CLOSED
    stamp end_time once.
    """
    status = require_choice("status", (status or "").upper(), VALID_SESSION_STATUSES)

    def _op():
        session = _get_session_locked(live_session_id)
        old_status = session.status
        now = utcnow()
        if status == SESSION_LIVE and session.start_time is None:
            session.start_time = now
        if status in (SESSION_ENDED, SESSION_CLOSED) and session.end_time is None:
            session.end_time = now
        session.status = status

        if old_status != status:
            append_ledger_event(
                event_type="live_session.status_changed",
                event_category="session",
                entity_type="live_session",
                entity_id=session.id,
                live_session_id=session.id,
                occurred_at=now,
                payload=format_payload(old=old_status, new=status),
            )
        db.session.commit()
        return session

    return run_with_retry(_op)


def get_live_session(live_session_id: int) -> LiveSession:
    session = db.session.get(LiveSession, live_session_id)
    if not session:
        raise NotFoundError(f"Live session {live_session_id} not found")
    return session


def list_live_sessions() -> list[LiveSession]:
    """Newest first."""
    return (
        db.session.query(LiveSession)
        .order_by(LiveSession.created_at.desc(), LiveSession.id.desc())
        .all()
    )
