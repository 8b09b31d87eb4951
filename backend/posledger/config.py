# backend/posledger/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw not in (None, "") else default


COMMISSION_MODE_ON_SALE = "on_sale"
COMMISSION_MODE_DEFERRED = "deferred"


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/posledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///posledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bound on how long a checkout/payout waits for row or database locks
    LOCK_TIMEOUT_SECONDS = _env_float("LOCK_TIMEOUT_SECONDS", 5.0)

    CONCURRENCY_RETRY_ATTEMPTS = _env_int("CONCURRENCY_RETRY_ATTEMPTS", 3)
    CONCURRENCY_BACKOFF_SECONDS = _env_float("CONCURRENCY_BACKOFF_SECONDS", 0.05)

    # "on_sale": credit commission inside the checkout transaction
    # "deferred": leave it to `flask commissions reconcile`
    COMMISSION_CREDIT_MODE = os.environ.get("COMMISSION_CREDIT_MODE", COMMISSION_MODE_ON_SALE)

    CURRENCY_CODE = os.environ.get("CURRENCY_CODE", "KES")
    RECEIPT_URL_TEMPLATE = os.environ.get("RECEIPT_URL_TEMPLATE", "/api/sales/{sale_id}/receipt")


def engine_options_for(uri: str, lock_timeout: float) -> dict:
    """SQLite busy timeout doubles as the lock wait bound."""
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": lock_timeout}}
    return {}
