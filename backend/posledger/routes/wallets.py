# Overview: Flask API routes for wallets and payouts; parses input and returns JSON responses.

# backend/posledger/routes/wallets.py
"""Wallet and payout routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..errors import PosError, ValidationError
from ..extensions import db
from ..models import User
from ..models.auth import ROLE_MANAGER
from ..money import format_amount, to_cents
from ..services import commission_service, payout_service, wallet_service


wallets_bp = Blueprint("wallets", __name__, url_prefix="/api")


@wallets_bp.get("/wallet")
@require_auth
@require_role("manager")
def my_wallet_route():
    try:
        return jsonify(wallet_service.wallet_summary(g.current_user.id)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status


@wallets_bp.get("/wallets")
@require_auth
@require_role("admin")
def list_wallets_route():
    """Every manager with sales total and wallet figures."""
    managers = (
        db.session.query(User)
        .filter(User.role == ROLE_MANAGER)
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )

    rows = []
    for manager in managers:
        wallet = wallet_service.find_wallet(manager.id)
        rows.append({
            "manager": manager.to_dict(),
            "total_sales": format_amount(commission_service.total_sales_cents(manager.id)),
            "sales_count": len(manager.sales),
            "wallet": wallet.to_dict() if wallet else wallet_service.empty_wallet_dict(manager.id),
        })
    return jsonify({"managers": rows}), 200


@wallets_bp.get("/wallets/<int:manager_id>")
@require_auth
@require_role("admin")
def manager_wallet_route(manager_id: int):
    try:
        return jsonify(wallet_service.wallet_summary(manager_id, recent_payouts=15)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status


@wallets_bp.get("/wallets/<int:manager_id>/payouts")
@require_auth
@require_role("admin")
def manager_payouts_route(manager_id: int):
    limit = min(request.args.get("limit", 50, type=int) or 50, 200)
    payouts = payout_service.list_payouts(manager_id, limit=limit)
    return jsonify({"payouts": [p.to_dict() for p in payouts]}), 200


@wallets_bp.post("/payouts")
@require_auth
@require_role("admin")
def process_payout_route():
    """
    Pay out part of a manager's balance.

    Body: {"manager_id", "amount", "notes"?}
    Available to: admin
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")
        manager_id = data.get("manager_id")
        if not isinstance(manager_id, int) or isinstance(manager_id, bool):
            raise ValidationError("manager_id required")
        if "amount" not in data:
            raise ValidationError("amount required")

        payout = payout_service.process_payout(
            manager_id=manager_id,
            admin_id=g.current_user.id,
            amount_cents=to_cents(data["amount"]),
            notes=data.get("notes"),
        )
        return jsonify({"payout": payout.to_dict()}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to process payout")
        return jsonify({"error": "Internal server error"}), 500
