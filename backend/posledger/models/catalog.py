from __future__ import annotations

from ..extensions import db
from posledger.money import format_amount
from posledger.time_utils import to_utc_z

STOCK_IN = "in_stock"
STOCK_LOW = "low_stock"
STOCK_OUT = "out_of_stock"


class Product(db.Model):
    """
    Product snapshot used by checkout.

    Catalog edits happen elsewhere; the only write path in this service is
    the inventory ledger (reserve_and_decrement / restock).

    STOCK DESIGN DECISION:
    Product.quantity is the authoritative on-hand count.
    - Never negative: CHECK constraint plus rejection in the inventory service
      (a decrement that would go below zero is refused, never clamped).
    - version_id_col turns every UPDATE into a compare-and-swap, so two
      sessions that read the same stock cannot both write it.

    PRICING:
    All prices are integer cents. floor_price_cents is the lowest price a
    manager may sell at: discount_price_cents when set, else selling_price_cents.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.CheckConstraint(
            "discount_price_cents IS NULL OR discount_price_cents < selling_price_cents",
            name="ck_products_discount_below_selling",
        ),
        db.Index("ix_products_active_quantity", "is_active", "quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False)
    discount_price_cents = db.Column(db.Integer, nullable=True)

    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def floor_price_cents(self) -> int:
        if self.discount_price_cents is not None:
            return self.discount_price_cents
        return self.selling_price_cents

    @property
    def stock_status(self) -> str:
        if self.quantity <= 0:
            return STOCK_OUT
        if self.quantity <= self.low_stock_threshold:
            return STOCK_LOW
        return STOCK_IN

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "quantity": self.quantity,
            "cost_price": format_amount(self.cost_price_cents),
            "selling_price": format_amount(self.selling_price_cents),
            "discount_price": format_amount(self.discount_price_cents),
            "floor_price": format_amount(self.floor_price_cents),
            "low_stock_threshold": self.low_stock_threshold,
            "stock_status": self.stock_status,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
