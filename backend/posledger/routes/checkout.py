# Overview: Flask API routes for checkout and sales; parses input and returns JSON responses.

# backend/posledger/routes/checkout.py
"""Checkout and sale lookup routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..errors import PosError, ValidationError
from ..money import format_amount
from ..services import checkout_service


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api")


def _receipt_url(sale_id: int) -> str:
    return current_app.config["RECEIPT_URL_TEMPLATE"].format(sale_id=sale_id)


def _can_view(sale) -> bool:
    user = g.current_user
    return user.is_admin or sale.manager_id == user.id


@checkout_bp.post("/checkout")
@require_auth
@require_role("manager")
def checkout_route():
    """
    Convert the submitted cart into a sale.

    Body: {"items": [{"product_id", "quantity", "sale_price"}]}
    Available to: manager
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")
        lines = checkout_service.parse_cart_lines(data.get("items"))
        result = checkout_service.checkout(g.current_user.id, lines)

        return jsonify({
            "success": True,
            "sale_id": result.sale_id,
            "total_amount": format_amount(result.total_amount_cents),
            "commission_credited": format_amount(result.commission_credited_cents),
            "receipt_url": _receipt_url(result.sale_id),
        }), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to check out cart")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.get("/sales")
@require_auth
@require_role("manager", "admin")
def list_sales_route():
    """Managers see their own sales; admins see all or filter by manager_id."""
    user = g.current_user
    limit = min(request.args.get("limit", 50, type=int) or 50, 200)
    if user.is_admin:
        manager_id = request.args.get("manager_id", type=int)
    else:
        manager_id = user.id

    sales = checkout_service.list_sales(manager_id=manager_id, limit=limit)
    return jsonify({"sales": [s.to_dict() for s in sales]}), 200


@checkout_bp.get("/sales/<int:sale_id>")
@require_auth
@require_role("manager", "admin")
def get_sale_route(sale_id: int):
    try:
        sale = checkout_service.get_sale(sale_id)
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status

    if not _can_view(sale):
        return jsonify({"error": "Permission denied"}), 403
    return jsonify({"sale": sale.to_dict(include_items=True)}), 200


@checkout_bp.get("/sales/<int:sale_id>/receipt")
@require_auth
@require_role("manager", "admin")
def receipt_route(sale_id: int):
    """Receipt payload: sale, items with product names, manager."""
    try:
        sale = checkout_service.get_sale(sale_id)
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status

    if not _can_view(sale):
        return jsonify({"error": "Permission denied"}), 403

    items = []
    for item in sale.items:
        row = item.to_dict()
        row["product_name"] = item.product.name if item.product else None
        row["sku"] = item.product.sku if item.product else None
        items.append(row)

    return jsonify({
        "receipt": {
            "sale": sale.to_dict(),
            "manager": sale.manager.name if sale.manager else None,
            "items": items,
            "currency": current_app.config.get("CURRENCY_CODE"),
        }
    }), 200
