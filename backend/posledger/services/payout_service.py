# Overview: Service-layer operations for payouts; admin-initiated wallet debits with an audit row.

"""
Payout Processing Service

WHY: Commission leaves a manager's wallet only through a Payout authorized
by an admin. The debit and the Payout row are one unit of work: a debit
without a payout (or a payout without a debit) is never committed.
"""

from __future__ import annotations

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Payout, User
from ..models.wallets import PAYOUT_COMPLETED
from posledger.time_utils import utcnow
from .concurrency import begin_critical_section, run_with_retry
from .wallet_service import debit

MAX_NOTES_LENGTH = 500


def _require_user(user_id: int, *, role: str) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found", details={"user_id": user_id})
    if user.role != role:
        raise ValidationError(f"User {user_id} is not a {role}", details={"user_id": user_id})
    if not user.is_active:
        raise ValidationError(f"User {user_id} is inactive", details={"user_id": user_id})
    return user


def process_payout(
    manager_id: int,
    admin_id: int,
    amount_cents: int,
    notes: str | None = None,
) -> Payout:
    """
    Pay out part of a manager's wallet balance.

    Args:
        manager_id: Wallet owner receiving the payout
        admin_id: Admin authorizing it (recorded as processed_by)
        amount_cents: Amount in cents, > 0 and <= current balance
        notes: Optional free text (max 500 characters)

    Returns:
        The completed Payout

    Raises:
        ValidationError: bad amount, notes, or actor roles
        InsufficientBalance: amount exceeds the balance; wallet unchanged, no Payout row
        ConcurrencyConflict: wallet row stayed locked past the retry budget
    """
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("amount must be greater than zero")
    if notes is not None:
        notes = str(notes).strip() or None
        if notes and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"notes exceeds max length {MAX_NOTES_LENGTH}")

    def _op():
        begin_critical_section()
        _require_user(admin_id, role="admin")
        _require_user(manager_id, role="manager")

        debit(manager_id, amount_cents)

        now = utcnow()
        payout = Payout(
            user_id=manager_id,
            processed_by=admin_id,
            amount_cents=amount_cents,
            status=PAYOUT_COMPLETED,
            notes=notes,
            processed_at=now,
            created_at=now,
        )
        db.session.add(payout)
        db.session.commit()
        return payout

    payout = run_with_retry(_op)
    current_app.logger.info(
        "Payout %s of %s cents to manager %s processed by admin %s",
        payout.id, amount_cents, manager_id, admin_id,
    )
    return payout


def list_payouts(user_id: int, limit: int = 50) -> list[Payout]:
    return (
        db.session.query(Payout)
        .filter_by(user_id=user_id)
        .order_by(Payout.created_at.desc(), Payout.id.desc())
        .limit(limit)
        .all()
    )
