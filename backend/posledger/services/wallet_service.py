# Overview: Service-layer operations for manager wallets; the only code that mutates wallet balances.

"""
posledger Wallet Invariants (authoritative)

- One wallet per manager, created lazily (first-or-create).
- balance == total_earned - total_paid_out after every credit and debit.
- balance >= 0: a debit larger than the balance is refused with
  InsufficientBalance and changes nothing.
- credit/debit with commit=False run inside the caller's unit of work on
  the locked wallet row; commit=True opens and commits their own.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import InsufficientBalance, NotFoundError, PersistenceFailure, ValidationError
from ..extensions import db
from ..models import Payout, User, Wallet
from ..money import format_amount
from .concurrency import begin_critical_section, lock_for_update, run_with_retry


def _require_positive(amount_cents: int) -> None:
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("amount must be greater than zero")


def _require_manager(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found", details={"user_id": user_id})
    if not user.is_manager:
        raise ValidationError("Wallets belong to manager accounts only", details={"user_id": user_id})
    return user


def _check_balanced(wallet: Wallet) -> None:
    if not wallet.is_balanced():
        raise PersistenceFailure(
            "Wallet ledger out of balance",
            details={"wallet_id": wallet.id, "user_id": wallet.user_id},
        )


def find_wallet(user_id: int, *, lock: bool = False) -> Wallet | None:
    query = db.session.query(Wallet).filter_by(user_id=user_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_or_create_wallet(user_id: int, *, lock: bool = False) -> Wallet:
    """
    First-or-create the manager's wallet inside the current transaction.

    A concurrent creator loses on the unique user_id; the savepoint keeps the
    outer transaction usable and the existing row is returned instead.
    """
    wallet = find_wallet(user_id, lock=lock)
    if wallet is not None:
        return wallet

    _require_manager(user_id)
    try:
        with db.session.begin_nested():
            wallet = Wallet(
                user_id=user_id,
                balance_cents=0,
                total_earned_cents=0,
                total_paid_out_cents=0,
                commissioned_sales_cents=0,
            )
            db.session.add(wallet)
    except IntegrityError:
        wallet = find_wallet(user_id, lock=lock)
        if wallet is None:
            raise
    return wallet


def ensure_wallet(user_id: int) -> Wallet:
    """Standalone first-or-create (own unit of work)."""
    def _op():
        begin_critical_section()
        wallet = get_or_create_wallet(user_id)
        db.session.commit()
        return wallet

    return run_with_retry(_op)


def _in_unit_of_work(fn, commit: bool):
    if not commit:
        return fn()

    def _op():
        begin_critical_section()
        result = fn()
        db.session.commit()
        return result

    return run_with_retry(_op)


def credit(user_id: int, amount_cents: int, *, commit: bool = False) -> Wallet:
    """Increase balance and total earned by amount_cents (> 0)."""
    _require_positive(amount_cents)

    def _apply():
        wallet = get_or_create_wallet(user_id, lock=True)
        wallet.balance_cents = wallet.balance_cents + amount_cents
        wallet.total_earned_cents = wallet.total_earned_cents + amount_cents
        _check_balanced(wallet)
        db.session.flush()
        return wallet

    return _in_unit_of_work(_apply, commit)


def debit(user_id: int, amount_cents: int, *, commit: bool = False) -> Wallet:
    """
    Decrease balance and increase total paid out by amount_cents (> 0).

    Raises:
        InsufficientBalance: balance < amount_cents (no mutation)
    """
    _require_positive(amount_cents)

    def _apply():
        wallet = get_or_create_wallet(user_id, lock=True)
        if wallet.balance_cents < amount_cents:
            raise InsufficientBalance(
                "Insufficient balance for payout.",
                details={
                    "user_id": user_id,
                    "requested": amount_cents,
                    "balance": wallet.balance_cents,
                },
            )
        wallet.balance_cents = wallet.balance_cents - amount_cents
        wallet.total_paid_out_cents = wallet.total_paid_out_cents + amount_cents
        _check_balanced(wallet)
        db.session.flush()
        return wallet

    return _in_unit_of_work(_apply, commit)


def apply_commission(user_id: int, *, consumed_sales_cents: int, commission_cents: int) -> Wallet:
    """
    Record a commission accrual: advance commissioned sales and credit the
    earned commission. Caller's unit of work.
    """
    if consumed_sales_cents < 0 or commission_cents < 0:
        raise ValidationError("commission accrual cannot be negative")

    wallet = get_or_create_wallet(user_id, lock=True)
    wallet.commissioned_sales_cents = wallet.commissioned_sales_cents + consumed_sales_cents
    if commission_cents > 0:
        wallet = credit(user_id, commission_cents)
    db.session.flush()
    return wallet


def empty_wallet_dict(user_id: int) -> dict:
    """Zeroed figures for a manager whose wallet has not been created yet."""
    return {
        "id": None,
        "user_id": user_id,
        "balance": format_amount(0),
        "total_earned": format_amount(0),
        "total_paid_out": format_amount(0),
        "commissioned_sales": format_amount(0),
        "balance_cents": 0,
        "total_earned_cents": 0,
        "total_paid_out_cents": 0,
        "version_id": None,
        "updated_at": None,
    }


def wallet_summary(user_id: int, recent_payouts: int = 10) -> dict:
    """
    Wallet plus commission progress for the wallet screen.

    - qualified_sales: sales not yet converted into commission
    - pending_commission: what qualified sales would earn right now
    - carry_forward: qualified sales below the smallest usable threshold
    - next_milestone: sales still needed to reach the next threshold
    """
    from .commission_service import active_tiers, calculate_commission, next_threshold, total_sales_cents

    wallet = find_wallet(user_id)
    if wallet is None:
        _require_manager(user_id)
    commissioned = wallet.commissioned_sales_cents if wallet else 0

    total_sales = total_sales_cents(user_id)
    qualified = max(0, total_sales - commissioned)
    tiers = active_tiers()
    breakdown = calculate_commission(qualified, tiers)
    upcoming = next_threshold(qualified, tiers)

    payouts = (
        db.session.query(Payout)
        .filter_by(user_id=user_id)
        .order_by(Payout.created_at.desc(), Payout.id.desc())
        .limit(recent_payouts)
        .all()
    )

    return {
        "wallet": wallet.to_dict() if wallet else empty_wallet_dict(user_id),
        "total_sales": format_amount(total_sales),
        "qualified_sales": format_amount(qualified),
        "pending_commission": format_amount(breakdown.total_commission),
        "carry_forward": format_amount(breakdown.remaining),
        "next_milestone": format_amount(upcoming - qualified) if upcoming is not None else None,
        "recent_payouts": [p.to_dict() for p in payouts],
    }
