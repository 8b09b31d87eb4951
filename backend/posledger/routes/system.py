# backend/posledger/routes/system.py
"""
System health endpoint.

Reports database connectivity and the commission crediting policy so a
deployment can be checked at a glance.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db
from ..models import CommissionTier, Product, User
from posledger.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        product_count = db.session.query(Product).count()
        active_tiers = db.session.query(CommissionTier).filter(CommissionTier.is_active.is_(True)).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "products": product_count,
                "active_commission_tiers": active_tiers,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "time": to_utc_z(utcnow()),
        "commission_credit_mode": current_app.config.get("COMMISSION_CREDIT_MODE"),
        "database": database,
    }), 200 if healthy else 503
