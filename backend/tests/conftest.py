"""
Pytest fixtures for posledger backend tests.

Provides an in-memory database, users for both roles, a product, the
default commission tiers, and a test client.
"""

import pytest

from posledger import create_app
from posledger.extensions import db
from posledger.models import CommissionTier, Product, User
from posledger.models.auth import ROLE_ADMIN, ROLE_MANAGER


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CONCURRENCY_BACKOFF_SECONDS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(session, name, email, role):
    user = User(name=name, email=email, role=role, is_active=True)
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user(db_session, "Admin", "admin@example.com", ROLE_ADMIN)


@pytest.fixture(scope='function')
def manager(db_session):
    return _make_user(db_session, "Mary Manager", "mary@example.com", ROLE_MANAGER)


@pytest.fixture(scope='function')
def other_manager(db_session):
    return _make_user(db_session, "Otto Manager", "otto@example.com", ROLE_MANAGER)


@pytest.fixture(scope='function')
def product(db_session):
    """Product with 10 on hand, selling 1,500.00, floor 1,200.00."""
    product = Product(
        sku="PHONE-001",
        name="Phone X",
        category="phones",
        quantity=10,
        cost_price_cents=100000,
        selling_price_cents=150000,
        discount_price_cents=120000,
        low_stock_threshold=3,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def tiers(db_session):
    """Default tiers: 5,000/300, 10,000/700, 20,000/1,500."""
    rows = [
        CommissionTier(sales_threshold_cents=500000, commission_amount_cents=30000),
        CommissionTier(sales_threshold_cents=1000000, commission_amount_cents=70000),
        CommissionTier(sales_threshold_cents=2000000, commission_amount_cents=150000),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return rows


def auth_headers(user) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {user.api_token}'}


@pytest.fixture(scope='function')
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture(scope='function')
def manager_headers(manager):
    return auth_headers(manager)
