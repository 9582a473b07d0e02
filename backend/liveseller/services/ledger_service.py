# Overview: Append-only audit ledger written alongside every mutation.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import LedgerEvent
"""
Audit Ledger Invariants

- Append-only log of domain events (stock moves, order/payment/shipment changes).
- No domain/business logic in the ledger itself.
- Events are written inside the same DB transaction as the change they record,
  so a rolled-back operation leaves no event behind.
- occurred_at is business time; created_at is system time (DB default).
"""


def format_payload(**fields) -> str:
    """Compact "k=v,k2=v2" payload; None values are dropped."""
    return ",".join(f"{k}={v}" for k, v in fields.items() if v is not None)


def append_ledger_event(
    *,
    event_type: str,
    event_category: str,
    entity_type: str,
    entity_id: int,
    order_id: int | None = None,
    live_session_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[str] = None,
) -> LedgerEvent:
    """
    Append a ledger event.

    - No domain logic here.
    - No deletes/updates of existing events.
    """
    ev = LedgerEvent(
        event_type=event_type,
        event_category=event_category,
        entity_type=entity_type,
        entity_id=entity_id,
        order_id=order_id,
        live_session_id=live_session_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=note[:255] if note else note,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_ledger_events(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    order_id: int | None = None,
    event_category: str | None = None,
    limit: int = 100,
) -> list[LedgerEvent]:
    query = db.session.query(LedgerEvent)
    if entity_type:
        query = query.filter(LedgerEvent.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(LedgerEvent.entity_id == entity_id)
    if order_id is not None:
        query = query.filter(LedgerEvent.order_id == order_id)
    if event_category:
        query = query.filter(LedgerEvent.event_category == event_category)
    limit = max(1, min(limit, 500))
    return query.order_by(LedgerEvent.id.desc()).limit(limit).all()
