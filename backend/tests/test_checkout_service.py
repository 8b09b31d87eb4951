"""
Checkout tests.

Verifies:
- A valid cart creates one Sale, its SaleItems and the stock decrements
- Any failing line rejects the whole cart with nothing mutated
- Commission crediting follows COMMISSION_CREDIT_MODE
- A failing notification sink never fails a committed sale
"""

import pytest

from posledger.config import COMMISSION_MODE_DEFERRED, COMMISSION_MODE_ON_SALE
from posledger.errors import InsufficientStock, PriceBelowFloor, ValidationError
from posledger.models import Notification, Product, Sale, SaleItem
from posledger.services import checkout_service, notification_service, wallet_service
from posledger.services.checkout_service import CartLine


@pytest.fixture
def deferred_mode(app):
    app.config["COMMISSION_CREDIT_MODE"] = COMMISSION_MODE_DEFERRED
    yield
    app.config["COMMISSION_CREDIT_MODE"] = COMMISSION_MODE_ON_SALE


def _quantity(db_session, product_id):
    return db_session.get(Product, product_id).quantity


def test_checkout_creates_sale_items_and_decrements_stock(db_session, manager, product):
    result = checkout_service.checkout(manager.id, [CartLine(product.id, 2, 150000)])

    sale = db_session.get(Sale, result.sale_id)
    assert sale.manager_id == manager.id
    assert sale.total_amount_cents == 300000
    assert len(sale.items) == 1
    assert sale.items[0].unit_price_cents == 150000
    assert sale.items[0].total_price_cents == 300000
    assert _quantity(db_session, product.id) == 8


def test_sale_total_equals_sum_of_items(db_session, manager, product):
    second = Product(sku="CASE-001", name="Case", quantity=50, selling_price_cents=2000)
    db_session.add(second)
    db_session.commit()

    result = checkout_service.checkout(manager.id, [
        CartLine(product.id, 1, 130000),
        CartLine(second.id, 3, 2500),
    ])

    sale = db_session.get(Sale, result.sale_id)
    assert sale.total_amount_cents == sum(item.total_price_cents for item in sale.items)
    assert sale.total_amount_cents == 137500
    assert result.item_count == 2


def test_insufficient_stock_rejects_without_mutation(db_session, manager):
    product = Product(sku="LAST-5", name="Limited", quantity=5, selling_price_cents=1000)
    db_session.add(product)
    db_session.commit()

    with pytest.raises(InsufficientStock) as excinfo:
        checkout_service.checkout(manager.id, [CartLine(product.id, 6, 1000)])

    line = excinfo.value.details["lines"][0]
    assert line["reason"] == "insufficient_stock"
    assert line["requested_quantity"] == 6
    assert line["on_hand"] == 5
    assert _quantity(db_session, product.id) == 5
    assert db_session.query(Sale).count() == 0
    assert db_session.query(SaleItem).count() == 0


def test_duplicate_lines_are_checked_together(db_session, manager, product):
    with pytest.raises(InsufficientStock):
        checkout_service.checkout(manager.id, [
            CartLine(product.id, 6, 150000),
            CartLine(product.id, 5, 150000),
        ])

    assert _quantity(db_session, product.id) == 10

    result = checkout_service.checkout(manager.id, [
        CartLine(product.id, 4, 150000),
        CartLine(product.id, 6, 150000),
    ])
    assert result.item_count == 2
    assert _quantity(db_session, product.id) == 0


def test_price_below_floor_rejected(db_session, manager, product):
    with pytest.raises(PriceBelowFloor) as excinfo:
        checkout_service.checkout(manager.id, [CartLine(product.id, 1, 119999)])

    line = excinfo.value.details["lines"][0]
    assert line["floor_price_cents"] == 120000
    assert _quantity(db_session, product.id) == 10
    assert db_session.query(Sale).count() == 0


def test_discount_price_is_allowed(db_session, manager, product):
    result = checkout_service.checkout(manager.id, [CartLine(product.id, 1, 120000)])
    assert result.total_amount_cents == 120000


def test_stock_takes_precedence_over_price(db_session, manager, product):
    with pytest.raises(InsufficientStock) as excinfo:
        checkout_service.checkout(manager.id, [CartLine(product.id, 11, 1)])

    reasons = {line["reason"] for line in excinfo.value.details["lines"]}
    assert reasons == {"insufficient_stock", "price_below_floor"}


def test_inactive_or_unknown_product_rejected(db_session, manager, product):
    product.is_active = False
    db_session.commit()

    with pytest.raises(ValidationError) as excinfo:
        checkout_service.checkout(manager.id, [CartLine(product.id, 1, 150000)])
    assert excinfo.value.details["lines"][0]["reason"] == "product_unavailable"

    with pytest.raises(ValidationError):
        checkout_service.checkout(manager.id, [CartLine(999999, 1, 150000)])


def test_only_managers_check_out(db_session, admin, product):
    with pytest.raises(ValidationError):
        checkout_service.checkout(admin.id, [CartLine(product.id, 1, 150000)])
    assert _quantity(db_session, product.id) == 10


def test_empty_cart_rejected(db_session, manager):
    with pytest.raises(ValidationError):
        checkout_service.checkout(manager.id, [])


def test_parse_cart_lines_reports_every_bad_line():
    with pytest.raises(ValidationError) as excinfo:
        checkout_service.parse_cart_lines([
            {"product_id": 1, "quantity": 0, "sale_price": "10.00"},
            {"product_id": 2, "quantity": 1, "sale_price": "10.001"},
            {"product_id": 3, "quantity": 1, "sale_price": "10.00"},
        ])

    assert [p["line"] for p in excinfo.value.details["lines"]] == [0, 1]


def test_parse_cart_lines_converts_prices():
    lines = checkout_service.parse_cart_lines([{"product_id": 7, "quantity": 2, "sale_price": "1500.50"}])
    assert lines == [CartLine(product_id=7, quantity=2, sale_price_cents=150050)]


def test_commission_credited_on_sale(db_session, manager, product, tiers):
    result = checkout_service.checkout(manager.id, [CartLine(product.id, 4, 150000)])

    # 6,000 in sales fills one 5,000 threshold
    assert result.commission_credited_cents == 30000
    wallet = wallet_service.find_wallet(manager.id)
    assert wallet.balance_cents == 30000
    assert wallet.commissioned_sales_cents == 500000


def test_commission_deferred_mode(db_session, manager, product, tiers, deferred_mode):
    result = checkout_service.checkout(manager.id, [CartLine(product.id, 4, 150000)])

    assert result.commission_credited_cents == 0
    assert wallet_service.find_wallet(manager.id) is None


def test_admins_notified_once_with_low_stock_alert(db_session, admin, manager, product):
    result = checkout_service.checkout(manager.id, [CartLine(product.id, 8, 150000)])

    sales = db_session.query(Notification).filter_by(user_id=admin.id, category="sales").all()
    assert len(sales) == 1
    assert sales[0].reference == f"sale:{result.sale_id}"
    assert sales[0].payload["sale_id"] == result.sale_id

    inventory = db_session.query(Notification).filter_by(user_id=admin.id, category="inventory").all()
    assert len(inventory) == 1
    assert inventory[0].title == "Low Stock Alert"

    # Redelivery of the same event adds nothing
    event = notification_service.SaleCreated(
        sale_id=result.sale_id,
        manager_id=manager.id,
        total_amount_cents=result.total_amount_cents,
        item_count=1,
        product_ids=(product.id,),
    )
    notification_service.publish_sale_created(event)
    assert db_session.query(Notification).filter_by(user_id=admin.id).count() == 2


class _BrokenSink(notification_service.NotificationSink):
    name = "broken"

    def deliver(self, event):
        raise RuntimeError("sink down")


def test_failing_sink_does_not_fail_sale(app, db_session, admin, manager, product):
    original = notification_service.registered_sinks()
    notification_service.register_sink(_BrokenSink())
    try:
        result = checkout_service.checkout(manager.id, [CartLine(product.id, 1, 150000)])
    finally:
        notification_service.init_sinks(app, original)

    assert db_session.get(Sale, result.sale_id) is not None
    assert _quantity(db_session, product.id) == 9
    assert db_session.query(Notification).filter_by(user_id=admin.id, category="sales").count() == 1


@pytest.mark.parametrize("price", ["1e30", "-1e30", "99999999999.00"])
def test_parse_cart_lines_rejects_out_of_range_prices(price):
    with pytest.raises(ValidationError) as excinfo:
        checkout_service.parse_cart_lines([{"product_id": 1, "quantity": 1, "sale_price": price}])

    assert excinfo.value.details["lines"][0]["reason"] == "invalid_line"
