from __future__ import annotations

from ..extensions import db
from liveseller.time_utils import to_utc_z


class LiveSession(db.Model):
    """
    A live-stream selling session on one platform.

    The platform drives the finance platform filter; the title labels
    per-session finance rollups.
    """
    __tablename__ = "live_sessions"
    __table_args__ = (
        db.Index("ix_live_sessions_platform", "platform"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)

    # FACEBOOK, TIKTOK, SHOPEE, OTHER
    platform = db.Column(db.String(16), nullable=False, default="FACEBOOK")
    channel_name = db.Column(db.String(255), nullable=True)

    # PLANNED, LIVE, PAUSED, ENDED, CLOSED
    status = db.Column(db.String(16), nullable=False, default="PLANNED")

    start_time = db.Column(db.DateTime(timezone=True), nullable=True)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "platform": self.platform,
            "channel_name": self.channel_name,
            "status": self.status,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class Claim(db.Model):
    """
    A buyer's claim ("mine!") on an item during a live session.

    Claims are written by the intake workflow, which also places the stock
    reservation when it accepts one. Only ACCEPTED claims become order lines.
    """
    __tablename__ = "claims"
    __table_args__ = (
        db.Index("ix_claims_session_status", "live_session_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    live_session_id = db.Column(db.Integer, db.ForeignKey("live_sessions.id"), nullable=False, index=True)
    # No FK: an item may be deleted after it was claimed
    inventory_item_id = db.Column(db.Integer, nullable=False, index=True)
    variant_id = db.Column(db.Integer, nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    # Name typed during the live when no customer record is linked yet
    temporary_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    # PENDING, ACCEPTED, WAITLIST, REJECTED, CANCELLED
    status = db.Column(db.String(16), nullable=False, default="PENDING")

    # COMMENT, MESSAGE, MANUAL
    source = db.Column(db.String(16), nullable=True)

    # Buyer flagged as a likely no-pay ("joy reserve")
    joy_reserve = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    live_session = db.relationship("LiveSession", backref=db.backref("claims", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "live_session_id": self.live_session_id,
            "inventory_item_id": self.inventory_item_id,
            "variant_id": self.variant_id,
            "customer_id": self.customer_id,
            "temporary_name": self.temporary_name,
            "quantity": self.quantity,
            "status": self.status,
            "source": self.source,
            "joy_reserve": self.joy_reserve,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
