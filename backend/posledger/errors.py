# Overview: Typed domain errors shared by services and routes.

"""
posledger error taxonomy (authoritative)

- Services raise these; they never return silent defaults.
- Orchestrating services (checkout, payout) roll the session back before an
  error leaves them, so no partial commit is ever observable.
- Routes translate them to JSON with `to_dict()` and `http_status`; the
  services know nothing about transport.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "error"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
            "retryable": self.retryable,
        }


class ValidationError(PosError):
    """Bad input shape or range; rejected before any mutation."""
    code = "validation_error"
    http_status = 400


class NotFoundError(PosError):
    code = "not_found"
    http_status = 404


class InsufficientStock(PosError):
    """Requested quantity exceeds on-hand stock. Safe to retry after refreshing the cart."""
    code = "insufficient_stock"
    http_status = 409
    retryable = True


class PriceBelowFloor(PosError):
    """Sale price under the product's floor price. Caller must correct and resubmit."""
    code = "price_below_floor"
    http_status = 422


class InsufficientBalance(PosError):
    """Payout exceeds the wallet balance. Not retryable without reducing the amount."""
    code = "insufficient_balance"
    http_status = 409


class ConcurrencyConflict(PosError):
    """Lock or transaction contention outlasted the retry budget."""
    code = "concurrency_conflict"
    http_status = 503
    retryable = True


class PersistenceFailure(PosError):
    """Storage layer error. Nothing was committed."""
    code = "persistence_failure"
    http_status = 500
