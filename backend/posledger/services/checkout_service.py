# Overview: Service-layer operations for checkout; turns a manager's cart into a persisted sale.

"""
Checkout Service

WHY: A cart is UI-owned and can be stale by the time it is submitted. Checkout
re-validates every line against the current product rows and then, in one
transaction, decrements stock, writes the Sale and its SaleItems, and
(when COMMISSION_CREDIT_MODE is "on_sale") credits the manager's commission.

DESIGN PRINCIPLES:
- All-or-nothing: any failing line aborts the whole checkout before stock moves.
- Product rows are locked in id order; SQLite takes the database write lock up
  front (BEGIN IMMEDIATE), so concurrent checkouts on the same product serialize
  and the loser sees the decremented stock and gets InsufficientStock.
- Lock waits are bounded; exhausted retries surface as ConcurrencyConflict.
- The SaleCreated notification is published only after commit, best effort.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from flask import current_app

from ..config import COMMISSION_MODE_ON_SALE
from ..errors import InsufficientStock, NotFoundError, PriceBelowFloor, ValidationError
from ..extensions import db
from ..models import Product, Sale, SaleItem, User
from ..money import to_cents
from posledger.time_utils import utcnow
from .commission_service import accrue_commission
from .concurrency import begin_critical_section, lock_for_update, run_with_retry
from .inventory_service import reserve_and_decrement
from .notification_service import SaleCreated, publish_sale_created

REASON_INSUFFICIENT_STOCK = "insufficient_stock"
REASON_PRICE_BELOW_FLOOR = "price_below_floor"
REASON_PRODUCT_UNAVAILABLE = "product_unavailable"


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    sale_price_cents: int


@dataclass(frozen=True)
class CheckoutResult:
    sale_id: int
    total_amount_cents: int
    item_count: int
    commission_credited_cents: int = 0


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_cart_lines(items) -> list[CartLine]:
    """
    Validate the shape of raw cart items ({product_id, quantity, sale_price})
    and convert prices to cents. Nothing is read from storage here.

    Raises:
        ValidationError: details["lines"] lists every malformed line
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    lines: list[CartLine] = []
    problems = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            problems.append({"line": index, "reason": "invalid_line"})
            continue

        product_id = item.get("product_id")
        quantity = item.get("quantity")
        line_errors = []
        if not _is_int(product_id) or product_id <= 0:
            line_errors.append("product_id must be a positive integer")
        if not _is_int(quantity) or quantity < 1:
            line_errors.append("quantity must be an integer >= 1")

        price_cents = None
        try:
            price_cents = to_cents(item.get("sale_price"), field="sale_price")
            if price_cents < 0:
                line_errors.append("sale_price must be >= 0")
        except ValidationError as exc:
            line_errors.append(exc.message)

        if line_errors:
            problems.append({"line": index, "reason": "invalid_line", "errors": line_errors})
            continue
        lines.append(CartLine(product_id=product_id, quantity=quantity, sale_price_cents=price_cents))

    if problems:
        raise ValidationError("Invalid cart items", details={"lines": problems})
    return lines


def _require_manager(manager_id: int) -> User:
    manager = db.session.get(User, manager_id)
    if manager is None:
        raise NotFoundError(f"User {manager_id} not found")
    if not manager.is_manager or not manager.is_active:
        raise ValidationError("Only active managers can check out")
    return manager


def _lock_products(product_ids: Iterable[int]) -> dict[int, Product]:
    query = (
        db.session.query(Product)
        .filter(Product.id.in_(sorted(set(product_ids))))
        .order_by(Product.id.asc())
    )
    return {p.id: p for p in lock_for_update(query).all()}


def _find_problems(lines: list[CartLine], products: dict[int, Product]) -> list[dict]:
    """Re-validate every line against current stock and floor price."""
    requested: dict[int, int] = {}
    for line in lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    problems = []
    for index, line in enumerate(lines):
        product = products.get(line.product_id)
        if product is None or not product.is_active:
            problems.append({
                "line": index,
                "product_id": line.product_id,
                "reason": REASON_PRODUCT_UNAVAILABLE,
            })
            continue

        if requested[line.product_id] > product.quantity:
            problems.append({
                "line": index,
                "product_id": line.product_id,
                "reason": REASON_INSUFFICIENT_STOCK,
                "requested_quantity": requested[line.product_id],
                "on_hand": product.quantity,
            })

        if line.sale_price_cents < product.floor_price_cents:
            problems.append({
                "line": index,
                "product_id": line.product_id,
                "reason": REASON_PRICE_BELOW_FLOOR,
                "sale_price_cents": line.sale_price_cents,
                "floor_price_cents": product.floor_price_cents,
            })
    return problems


def _rejection(problems: list[dict]):
    reasons = {p["reason"] for p in problems}
    details = {"lines": problems}
    if REASON_INSUFFICIENT_STOCK in reasons:
        return InsufficientStock("Insufficient stock for one or more items", details=details)
    if REASON_PRICE_BELOW_FLOOR in reasons:
        return PriceBelowFloor("Sale price must be at least the floor price", details=details)
    return ValidationError("One or more products are unavailable", details=details)


def checkout(manager_id: int, lines: list[CartLine]) -> CheckoutResult:
    """
    Convert a cart into a Sale.

    Args:
        manager_id: Manager making the sale (the acting user)
        lines: Cart lines; several lines may reference the same product

    Returns:
        CheckoutResult with the new sale id and total

    Raises:
        ValidationError: malformed cart, non-manager actor, unavailable product
        InsufficientStock: stock does not cover a line (nothing mutated)
        PriceBelowFloor: a line is priced under the product floor (nothing mutated)
        ConcurrencyConflict: locks not acquired within the retry budget
        PersistenceFailure: storage error (nothing committed)
    """
    if not lines:
        raise ValidationError("Cart is empty.")
    for line in lines:
        if not isinstance(line, CartLine):
            raise ValidationError("lines must be CartLine instances")
        if not _is_int(line.quantity) or line.quantity < 1:
            raise ValidationError("quantity must be an integer >= 1", details={"product_id": line.product_id})
        if not _is_int(line.sale_price_cents) or line.sale_price_cents < 0:
            raise ValidationError("sale_price must be >= 0", details={"product_id": line.product_id})

    credit_on_sale = current_app.config.get("COMMISSION_CREDIT_MODE") == COMMISSION_MODE_ON_SALE

    def _op():
        begin_critical_section()
        _require_manager(manager_id)

        products = _lock_products(line.product_id for line in lines)
        problems = _find_problems(lines, products)
        if problems:
            raise _rejection(problems)

        for line in lines:
            reserve_and_decrement(line.product_id, line.quantity)

        now = utcnow()
        sale = Sale(
            manager_id=manager_id,
            total_amount_cents=sum(line.quantity * line.sale_price_cents for line in lines),
            created_at=now,
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price_cents=line.sale_price_cents,
                total_price_cents=line.quantity * line.sale_price_cents,
                created_at=now,
            ))
        db.session.flush()

        commission_cents = 0
        if credit_on_sale:
            commission_cents = accrue_commission(manager_id).total_commission

        result = CheckoutResult(
            sale_id=sale.id,
            total_amount_cents=sale.total_amount_cents,
            item_count=len(lines),
            commission_credited_cents=commission_cents,
        )
        db.session.commit()
        return result

    result = run_with_retry(_op)
    current_app.logger.info(
        "Sale %s created by manager %s: %s cents, %s items",
        result.sale_id, manager_id, result.total_amount_cents, result.item_count,
    )

    publish_sale_created(SaleCreated(
        sale_id=result.sale_id,
        manager_id=manager_id,
        total_amount_cents=result.total_amount_cents,
        item_count=result.item_count,
        product_ids=tuple(sorted({line.product_id for line in lines})),
        occurred_at=utcnow(),
    ))
    return result


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(manager_id: int | None = None, limit: int = 50) -> list[Sale]:
    query = db.session.query(Sale)
    if manager_id is not None:
        query = query.filter(Sale.manager_id == manager_id)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
