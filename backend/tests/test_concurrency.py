"""
Concurrency tests against a file-backed SQLite database.

Each worker thread runs in its own app context (own session and connection),
so the database write lock is what serializes them.
"""
import os
import sqlite3
import tempfile
import threading
import unittest

from sqlalchemy.exc import IntegrityError, OperationalError

from posledger import create_app
from posledger.errors import (
    ConcurrencyConflict,
    InsufficientBalance,
    InsufficientStock,
    PersistenceFailure,
)
from posledger.extensions import db
from posledger.models import CommissionTier, Payout, Product, Sale, User, Wallet
from posledger.models.auth import ROLE_ADMIN, ROLE_MANAGER
from posledger.services import checkout_service, payout_service, wallet_service
from posledger.services.checkout_service import CartLine
from posledger.services.concurrency import run_with_retry


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.db_path = db_path
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "LOCK_TIMEOUT_SECONDS": 10.0,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            admin = User(name="Admin", email="admin@example.com", role=ROLE_ADMIN)
            first = User(name="First", email="first@example.com", role=ROLE_MANAGER)
            second = User(name="Second", email="second@example.com", role=ROLE_MANAGER)
            product = Product(sku="LAST-1", name="Last Unit", quantity=1, selling_price_cents=500000)
            db.session.add_all([admin, first, second, product])
            db.session.add(CommissionTier(sales_threshold_cents=500000, commission_amount_cents=30000))
            db.session.commit()

            self.admin_id = admin.id
            self.manager_ids = [first.id, second.id]
            self.product_id = product.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_parallel(self, targets):
        barrier = threading.Barrier(len(targets))
        results = [None] * len(targets)

        def worker(index, fn):
            with self.app.app_context():
                barrier.wait()
                try:
                    results[index] = fn()
                except Exception as exc:
                    results[index] = exc
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(i, fn)) for i, fn in enumerate(targets)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)
        return results

    def test_last_unit_sold_exactly_once(self):
        def buy(manager_id):
            return lambda: checkout_service.checkout(
                manager_id, [CartLine(self.product_id, 1, 500000)]
            )

        results = self._run_parallel([buy(mid) for mid in self.manager_ids])

        successes = [r for r in results if isinstance(r, checkout_service.CheckoutResult)]
        failures = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(successes), 1, results)
        self.assertEqual(len(failures), 1, results)
        self.assertIsInstance(failures[0], InsufficientStock)

        with self.app.app_context():
            self.assertEqual(db.session.get(Product, self.product_id).quantity, 0)
            self.assertEqual(db.session.query(Sale).count(), 1)

    def test_concurrent_payouts_never_overdraw(self):
        manager_id = self.manager_ids[0]
        with self.app.app_context():
            wallet_service.credit(manager_id, 30000, commit=True)

        def pay():
            return payout_service.process_payout(manager_id, self.admin_id, 20000)

        results = self._run_parallel([pay, pay])

        payouts = [r for r in results if isinstance(r, Payout)]
        failures = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(payouts), 1, results)
        self.assertEqual(len(failures), 1, results)
        self.assertIsInstance(failures[0], InsufficientBalance)

        with self.app.app_context():
            wallet = db.session.query(Wallet).filter_by(user_id=manager_id).one()
            self.assertEqual(wallet.balance_cents, 10000)
            self.assertEqual(wallet.total_paid_out_cents, 20000)
            self.assertTrue(wallet.is_balanced())
            self.assertEqual(db.session.query(Payout).count(), 1)

    def test_lock_timeout_surfaces_as_conflict(self):
        impatient = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{self.db_path}",
            "LOCK_TIMEOUT_SECONDS": 0.2,
            "CONCURRENCY_BACKOFF_SECONDS": 0,
        })

        holder = sqlite3.connect(self.db_path, isolation_level=None)
        try:
            holder.execute("BEGIN IMMEDIATE")
            with impatient.app_context():
                with self.assertRaises(ConcurrencyConflict) as ctx:
                    checkout_service.checkout(
                        self.manager_ids[0], [CartLine(self.product_id, 1, 500000)]
                    )
                db.session.remove()
                db.engine.dispose()
        finally:
            holder.execute("ROLLBACK")
            holder.close()

        self.assertTrue(ctx.exception.retryable)
        self.assertEqual(ctx.exception.http_status, 503)
        with self.app.app_context():
            self.assertEqual(db.session.get(Product, self.product_id).quantity, 1)
            self.assertEqual(db.session.query(Sale).count(), 0)

    def test_contention_retries_then_gives_up(self):
        calls = []

        def always_locked():
            calls.append(1)
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        with self.app.app_context():
            with self.assertRaises(ConcurrencyConflict):
                run_with_retry(always_locked, attempts=3, backoff_base=0)
        self.assertEqual(len(calls), 3)

    def test_storage_error_rolls_back_as_persistence_failure(self):
        def broken_write():
            db.session.add(Product(sku="GHOST-1", name="Ghost", quantity=1, selling_price_cents=100))
            db.session.flush()
            raise IntegrityError("INSERT INTO sales", {}, Exception("constraint failed"))

        with self.app.app_context():
            with self.assertRaises(PersistenceFailure) as ctx:
                run_with_retry(broken_write)
            self.assertFalse(ctx.exception.retryable)
            self.assertEqual(db.session.query(Product).filter_by(sku="GHOST-1").count(), 0)


if __name__ == "__main__":
    unittest.main()
