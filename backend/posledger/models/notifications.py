from __future__ import annotations

from ..extensions import db
from posledger.time_utils import to_utc_z


class Notification(db.Model):
    """In-app notification for one recipient. Written by notification sinks after commit."""
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_category", "user_id", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # success | warning | error
    type = db.Column(db.String(16), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    # sales | inventory
    category = db.Column(db.String(32), nullable=False)

    # Lookup key for de-duplication, e.g. "sale:42"
    reference = db.Column(db.String(64), nullable=True, index=True)
    payload = db.Column(db.JSON, nullable=True)

    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "reference": self.reference,
            "payload": self.payload,
            "is_read": self.is_read,
            "created_at": to_utc_z(self.created_at),
        }
