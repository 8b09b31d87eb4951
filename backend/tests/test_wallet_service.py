"""
Wallet ledger tests.

Verifies:
- Lazy one-wallet-per-manager creation
- balance == total_earned - total_paid_out after every mutation
- Debits beyond the balance are refused without mutation
- Carry-forward accrual never commissions the same sales twice
"""

import pytest

from posledger.errors import InsufficientBalance, NotFoundError, ValidationError
from posledger.extensions import db
from posledger.models import Sale, Wallet
from posledger.services import commission_service, wallet_service


def _record_sale(manager, total_cents):
    db.session.add(Sale(manager_id=manager.id, total_amount_cents=total_cents))
    db.session.commit()


def test_wallet_created_lazily_once(db_session, manager):
    first = wallet_service.ensure_wallet(manager.id)
    second = wallet_service.ensure_wallet(manager.id)

    assert first.id == second.id
    assert db_session.query(Wallet).filter_by(user_id=manager.id).count() == 1
    assert first.balance_cents == 0


def test_wallets_belong_to_managers_only(db_session, admin):
    with pytest.raises(ValidationError):
        wallet_service.ensure_wallet(admin.id)
    with pytest.raises(NotFoundError):
        wallet_service.ensure_wallet(999999)


def test_credit_then_debit_keeps_ledger_balanced(db_session, manager):
    wallet = wallet_service.credit(manager.id, 30000, commit=True)
    assert wallet.balance_cents == 30000
    assert wallet.total_earned_cents == 30000

    wallet = wallet_service.debit(manager.id, 10000, commit=True)
    assert wallet.balance_cents == 20000
    assert wallet.total_paid_out_cents == 10000
    assert wallet.is_balanced()


def test_debit_beyond_balance_is_refused(db_session, manager):
    wallet_service.credit(manager.id, 30000, commit=True)

    with pytest.raises(InsufficientBalance) as excinfo:
        wallet_service.debit(manager.id, 50000, commit=True)

    assert excinfo.value.details["balance"] == 30000
    wallet = wallet_service.find_wallet(manager.id)
    db_session.refresh(wallet)
    assert wallet.balance_cents == 30000
    assert wallet.total_paid_out_cents == 0


@pytest.mark.parametrize("amount", [0, -100, 10.5, True])
def test_non_positive_or_non_integer_amounts_rejected(db_session, manager, amount):
    with pytest.raises(ValidationError):
        wallet_service.credit(manager.id, amount, commit=True)
    with pytest.raises(ValidationError):
        wallet_service.debit(manager.id, amount, commit=True)


def test_accrual_carries_remainder_forward(db_session, manager, tiers):
    _record_sale(manager, 700000)
    commission_service.reconcile_commissions(manager.id)

    wallet = wallet_service.find_wallet(manager.id)
    assert wallet.total_earned_cents == 30000
    assert wallet.commissioned_sales_cents == 500000

    # 2,000 carried forward + 3,000 new fills another 5,000 threshold
    _record_sale(manager, 300000)
    credited = commission_service.reconcile_commissions(manager.id)

    db_session.refresh(wallet)
    assert credited == {manager.id: 30000}
    assert wallet.total_earned_cents == 60000
    assert wallet.commissioned_sales_cents == 1000000


def test_reconcile_is_idempotent(db_session, manager, tiers):
    _record_sale(manager, 1200000)

    assert commission_service.reconcile_commissions(manager.id) == {manager.id: 60000}
    assert commission_service.reconcile_commissions(manager.id) == {manager.id: 0}

    wallet = wallet_service.find_wallet(manager.id)
    assert wallet.balance_cents == 60000


def test_reconcile_all_managers(db_session, manager, other_manager, tiers):
    _record_sale(manager, 500000)

    credited = commission_service.reconcile_commissions()

    assert credited[manager.id] == 30000
    assert credited[other_manager.id] == 0


def test_wallet_summary(db_session, manager, tiers):
    _record_sale(manager, 1200000)
    commission_service.reconcile_commissions(manager.id)
    _record_sale(manager, 100000)

    summary = wallet_service.wallet_summary(manager.id)

    assert summary["wallet"]["balance"] == "600.00"
    assert summary["total_sales"] == "13000.00"
    # 2,000 carried forward plus the new 1,000
    assert summary["qualified_sales"] == "3000.00"
    assert summary["pending_commission"] == "0.00"
    assert summary["carry_forward"] == "3000.00"
    assert summary["next_milestone"] == "2000.00"
    assert summary["recent_payouts"] == []


def test_wallet_summary_does_not_create_wallet(db_session, manager, tiers):
    summary = wallet_service.wallet_summary(manager.id)

    assert summary["wallet"]["balance"] == "0.00"
    assert summary["next_milestone"] == "5000.00"
    assert wallet_service.find_wallet(manager.id) is None


def test_wallet_summary_requires_manager(db_session, admin):
    with pytest.raises(ValidationError):
        wallet_service.wallet_summary(admin.id)
    with pytest.raises(NotFoundError):
        wallet_service.wallet_summary(999999)
