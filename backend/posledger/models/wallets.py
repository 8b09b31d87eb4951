from __future__ import annotations

from ..extensions import db
from posledger.money import format_amount
from posledger.time_utils import to_utc_z

PAYOUT_PENDING = "pending"
PAYOUT_COMPLETED = "completed"
PAYOUT_FAILED = "failed"
VALID_PAYOUT_STATUSES = (PAYOUT_PENDING, PAYOUT_COMPLETED, PAYOUT_FAILED)


class Wallet(db.Model):
    """
    Per-manager commission ledger.

    INVARIANTS:
    - balance_cents == total_earned_cents - total_paid_out_cents
    - balance_cents >= 0 (CHECK constraint; debits are refused, not clamped)
    - Only wallet_service mutates these columns.

    commissioned_sales_cents is the part of the manager's cumulative sales
    already converted into commission. Sales above it carry forward until
    they fill another threshold.
    """
    __tablename__ = "wallets"
    __table_args__ = (
        db.CheckConstraint("balance_cents >= 0", name="ck_wallets_balance_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)

    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    total_earned_cents = db.Column(db.Integer, nullable=False, default=0)
    total_paid_out_cents = db.Column(db.Integer, nullable=False, default=0)
    commissioned_sales_cents = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("wallet", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def is_balanced(self) -> bool:
        return (
            self.balance_cents == self.total_earned_cents - self.total_paid_out_cents
            and self.balance_cents >= 0
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "balance": format_amount(self.balance_cents),
            "total_earned": format_amount(self.total_earned_cents),
            "total_paid_out": format_amount(self.total_paid_out_cents),
            "commissioned_sales": format_amount(self.commissioned_sales_cents),
            "balance_cents": self.balance_cents,
            "total_earned_cents": self.total_earned_cents,
            "total_paid_out_cents": self.total_paid_out_cents,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class Payout(db.Model):
    """
    Admin-authorized debit against a manager's wallet.

    Created in the same transaction as the wallet debit. The only entity
    that reduces Wallet.balance_cents. Immutable once completed.
    """
    __tablename__ = "payouts"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_payouts_amount_positive"),
        db.Index("ix_payouts_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    processed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PAYOUT_PENDING, index=True)
    notes = db.Column(db.String(500), nullable=True)

    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("payouts", lazy=True))
    processor = db.relationship("User", foreign_keys=[processed_by])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "processed_by": self.processed_by,
            "amount": format_amount(self.amount_cents),
            "amount_cents": self.amount_cents,
            "status": self.status,
            "notes": self.notes,
            "processed_at": to_utc_z(self.processed_at),
            "created_at": to_utc_z(self.created_at),
        }
