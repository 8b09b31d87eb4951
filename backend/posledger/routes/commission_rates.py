# Overview: Flask API routes for commission rates; parses input and returns JSON responses.

# backend/posledger/routes/commission_rates.py
"""
Commission rate management

Rates are never deleted: disabling keeps the row so historical commission
stays explainable, while recalculation only uses active rates.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_role
from ..errors import PosError, ValidationError
from ..money import to_cents
from ..services import commission_service


commission_rates_bp = Blueprint("commission_rates", __name__, url_prefix="/api/commission-rates")

WRITABLE_FIELDS = {"sales_threshold", "commission_amount", "description", "is_active"}


def _parse_patch(data: dict, *, partial: bool) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    for key in data:
        if key not in WRITABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

    if not partial:
        missing = [f for f in ("sales_threshold", "commission_amount") if f not in data]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    patch = {}
    if "sales_threshold" in data:
        patch["sales_threshold_cents"] = to_cents(data["sales_threshold"], field="sales_threshold")
    if "commission_amount" in data:
        patch["commission_amount_cents"] = to_cents(data["commission_amount"], field="commission_amount")
    if "description" in data:
        patch["description"] = data["description"]
    if "is_active" in data:
        patch["is_active"] = data["is_active"]
    return patch


@commission_rates_bp.get("")
@require_auth
@require_role("admin")
def list_rates_route():
    rates = commission_service.list_tiers()
    return jsonify({"rates": [r.to_dict() for r in rates]}), 200


@commission_rates_bp.post("")
@require_auth
@require_role("admin")
def create_rate_route():
    try:
        patch = _parse_patch(request.get_json(silent=True) or {}, partial=False)
        rate = commission_service.create_tier(
            patch["sales_threshold_cents"],
            patch["commission_amount_cents"],
            description=patch.get("description"),
            is_active=patch.get("is_active", True),
        )
        return jsonify({"rate": rate.to_dict()}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create commission rate")
        return jsonify({"error": "Internal server error"}), 500


@commission_rates_bp.put("/<int:rate_id>")
@require_auth
@require_role("admin")
def update_rate_route(rate_id: int):
    try:
        patch = _parse_patch(request.get_json(silent=True) or {}, partial=True)
        rate = commission_service.update_tier(rate_id, **patch)
        return jsonify({"rate": rate.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update commission rate")
        return jsonify({"error": "Internal server error"}), 500


@commission_rates_bp.post("/<int:rate_id>/toggle")
@require_auth
@require_role("admin")
def toggle_rate_route(rate_id: int):
    try:
        rate = commission_service.toggle_tier(rate_id)
        return jsonify({"rate": rate.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to toggle commission rate")
        return jsonify({"error": "Internal server error"}), 500


@commission_rates_bp.post("/preview")
@require_auth
@require_role("admin", "manager")
def preview_route():
    """Commission breakdown for a hypothetical sales amount against active rates."""
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")
        if "sales_amount" not in data:
            raise ValidationError("sales_amount required")
        sales_cents = to_cents(data["sales_amount"], field="sales_amount")
        return jsonify(commission_service.preview(sales_cents)), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
