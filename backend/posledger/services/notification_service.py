# Overview: Service-layer operations for notifications; best-effort delivery of domain events.

"""
Notification Service

WHY: Admins want to hear about new sales and about stock running low.
Delivery is fire-and-forget: it runs after the checkout transaction has
committed and a failing sink never undoes or fails the sale. Sinks must
tolerate the same event twice (at-least-once).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Notification, Product, User
from ..models.auth import ROLE_ADMIN
from ..models.catalog import STOCK_LOW, STOCK_OUT
from ..money import display_amount


@dataclass(frozen=True)
class SaleCreated:
    sale_id: int
    manager_id: int
    total_amount_cents: int
    item_count: int
    product_ids: tuple = field(default_factory=tuple)
    occurred_at: datetime | None = None


def _already_notified(user_id: int, category: str, reference: str) -> bool:
    return (
        db.session.query(Notification.id)
        .filter_by(user_id=user_id, category=category, reference=reference)
        .first()
        is not None
    )


class NotificationSink:
    """Receives domain events. Subclasses override deliver()."""

    name = "sink"

    def deliver(self, event: SaleCreated) -> None:
        raise NotImplementedError


class AdminNotificationSink(NotificationSink):
    """Writes in-app notifications for every active admin."""

    name = "admin-notifications"

    def deliver(self, event: SaleCreated) -> None:
        admins = (
            db.session.query(User)
            .filter(User.role == ROLE_ADMIN, User.is_active.is_(True))
            .order_by(User.id.asc())
            .all()
        )
        if not admins:
            return

        currency = current_app.config.get("CURRENCY_CODE", "KES")
        manager = db.session.get(User, event.manager_id)
        manager_name = manager.name if manager else f"manager {event.manager_id}"
        reference = f"sale:{event.sale_id}"

        for admin in admins:
            if _already_notified(admin.id, "sales", reference):
                continue
            db.session.add(Notification(
                user_id=admin.id,
                type="success",
                title="New Sale Completed",
                description=(
                    f"Sale #{event.sale_id} completed by {manager_name} for "
                    f"{display_amount(event.total_amount_cents, currency)}"
                ),
                category="sales",
                reference=reference,
                payload={
                    "sale_id": event.sale_id,
                    "total_amount_cents": event.total_amount_cents,
                    "items_count": event.item_count,
                    "manager_name": manager_name,
                },
            ))

        self._stock_alerts(admins, event)
        db.session.commit()

    def _stock_alerts(self, admins: list[User], event: SaleCreated) -> None:
        if not event.product_ids:
            return
        products = (
            db.session.query(Product)
            .filter(Product.id.in_(event.product_ids))
            .order_by(Product.id.asc())
            .all()
        )
        for product in products:
            status = product.stock_status
            if status not in (STOCK_LOW, STOCK_OUT):
                continue
            if status == STOCK_OUT:
                kind, title = "error", "Out of Stock Alert"
                text = f"{product.name} is out of stock"
            else:
                kind, title = "warning", "Low Stock Alert"
                text = f"{product.name} is running low on stock ({product.quantity} remaining)"
            reference = f"sale:{event.sale_id}:product:{product.id}"
            for admin in admins:
                if _already_notified(admin.id, "inventory", reference):
                    continue
                db.session.add(Notification(
                    user_id=admin.id,
                    type=kind,
                    title=title,
                    description=text,
                    category="inventory",
                    reference=reference,
                    payload={"product_id": product.id, "current_quantity": product.quantity},
                ))


SINKS_EXTENSION_KEY = "posledger.notification_sinks"


def init_sinks(app, sinks: list[NotificationSink] | None = None) -> None:
    """Install the app's sink list."""
    app.extensions[SINKS_EXTENSION_KEY] = list(sinks or [])


def register_sink(sink: NotificationSink) -> None:
    current_app.extensions.setdefault(SINKS_EXTENSION_KEY, []).append(sink)


def registered_sinks() -> list[NotificationSink]:
    return list(current_app.extensions.get(SINKS_EXTENSION_KEY, []))


def publish_sale_created(event: SaleCreated) -> int:
    """
    Deliver the event to every registered sink.

    Returns the number of sinks that accepted it. Failures are logged and
    rolled back; they never propagate to the caller.
    """
    delivered = 0
    for sink in registered_sinks():
        try:
            sink.deliver(event)
            delivered += 1
        except Exception:
            db.session.rollback()
            current_app.logger.exception(
                "Notification sink %s failed for sale %s", sink.name, event.sale_id
            )
    return delivered

