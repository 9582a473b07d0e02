# Overview: Document number allocation (order numbers).

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence
from liveseller.time_utils import utcnow


ORDER_DOCUMENT_TYPE = "ORDER"
ORDER_PREFIX = "ORD"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _allocate_inner(document_type: str, scope_key: str) -> int:
    """
    Allocate the next number for (document_type, scope_key) inside the
    caller's transaction (flush only).
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.scope_key == scope_key,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type, scope_key=scope_key)
            .scalar()
        )
        return current - 1

    seq = DocumentSequence(document_type=document_type, scope_key=scope_key, next_number=2)
    db.session.add(seq)
    db.session.flush()
    return 1


def next_order_number_inner(at: datetime | None = None, *, pad: int = 4) -> str:
    """
    Next order number, e.g. ORD-20260118-0007.

    Numbering restarts every (UTC) day. Must run inside the caller's
    transaction; the unique constraint on (document_type, scope_key) turns
    a concurrent first-of-day insert into an IntegrityError that the
    caller's retry wrapper surfaces.
    """
    at = at or utcnow()
    scope_key = at.strftime("%Y%m%d")
    next_num = _allocate_inner(ORDER_DOCUMENT_TYPE, scope_key)
    return f"{ORDER_PREFIX}-{scope_key}-{next_num:0{pad}d}"
