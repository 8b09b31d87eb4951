# Overview: Service-layer operations for inventory; encapsulates stock mutation and lookups.

# backend/posledger/services/inventory_service.py

from ..errors import InsufficientStock, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from .concurrency import begin_critical_section, lock_for_update, run_with_retry
"""
posledger Inventory Invariants (authoritative)

- Product.quantity is the on-hand count and the only shared stock resource.
- All stock mutation goes through this module; routes and other services
  never assign Product.quantity directly.
- A decrement that exceeds on-hand is rejected with InsufficientStock.
  Stock is never clamped at zero.
- The check and the decrement happen on a locked row inside the caller's
  unit of work, so they commit or roll back together with the sale.
"""


def _load_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def get_quantity_on_hand(product_id: int) -> int:
    return _load_product(product_id).quantity


def reserve_and_decrement(product_id: int, quantity: int) -> Product:
    """
    Atomically check and decrement stock for one product.

    Runs inside the caller's transaction and does not commit. The product
    row is locked (FOR UPDATE where supported) and version-checked on flush,
    so a concurrent writer surfaces as StaleDataError for the caller's retry
    loop rather than as oversold stock.

    Raises:
        ValidationError: quantity < 1 or product inactive
        NotFoundError: unknown product
        InsufficientStock: quantity exceeds on-hand at the instant of evaluation
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be a positive integer", details={"product_id": product_id})

    product = _load_product(product_id, lock=True)
    if not product.is_active:
        raise ValidationError(
            f"Product {product.sku} is inactive",
            details={"product_id": product_id, "reason": "product_unavailable"},
        )

    if quantity > product.quantity:
        raise InsufficientStock(
            f"Insufficient stock for product: {product.name}",
            details={
                "product_id": product_id,
                "requested_quantity": quantity,
                "on_hand": product.quantity,
            },
        )

    product.quantity = product.quantity - quantity
    db.session.flush()
    return product


def restock(product_id: int, quantity: int) -> Product:
    """Add received units to on-hand stock in its own unit of work."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be a positive integer")

    def _op():
        begin_critical_section()
        product = _load_product(product_id, lock=True)
        product.quantity = product.quantity + quantity
        db.session.commit()
        return product

    return run_with_retry(_op)


def low_stock_products(limit: int = 10) -> list[Product]:
    """Active products at or below their low-stock threshold, lowest stock first."""
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.quantity <= Product.low_stock_threshold)
        .order_by(Product.quantity.asc(), Product.id.asc())
        .limit(limit)
        .all()
    )
