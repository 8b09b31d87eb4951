from __future__ import annotations

from ..extensions import db
from posledger.money import format_amount
from posledger.time_utils import to_utc_z


class CommissionTier(db.Model):
    """
    Commission tier: earn commission_amount for every full multiple of
    sales_threshold.

    Tiers are never deleted. Deactivating a tier keeps the row for the audit
    trail; recalculation always uses the currently active tiers.
    """
    __tablename__ = "commission_tiers"
    __table_args__ = (
        db.CheckConstraint("sales_threshold_cents > 0", name="ck_commission_tiers_threshold_positive"),
        db.CheckConstraint("commission_amount_cents >= 0", name="ck_commission_tiers_amount_non_negative"),
        db.Index("ix_commission_tiers_active_threshold", "is_active", "sales_threshold_cents"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sales_threshold_cents = db.Column(db.Integer, nullable=False)
    commission_amount_cents = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sales_threshold": format_amount(self.sales_threshold_cents),
            "commission_amount": format_amount(self.commission_amount_cents),
            "sales_threshold_cents": self.sales_threshold_cents,
            "commission_amount_cents": self.commission_amount_cents,
            "is_active": self.is_active,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
