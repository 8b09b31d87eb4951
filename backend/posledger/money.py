from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

# Maximum amount: 9,999,999,999.99 (999,999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999_999

_CENT = Decimal("0.01")
_MAX_AMOUNT = Decimal(MAX_AMOUNT_CENTS) / 100


def to_cents(value, field: str = "amount") -> int:
    """
    Convert a decimal amount from the API edge into integer cents.

    Accepts Decimal, int, numeric strings and floats (floats go through
    their string form so binary noise never reaches storage). Amounts with
    more than two decimal places are rejected rather than rounded.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a decimal amount")
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a decimal amount")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite amount")
    if abs(amount) > _MAX_AMOUNT:
        raise ValidationError(f"{field} is out of range")
    if amount != amount.quantize(_CENT):
        raise ValidationError(f"{field} cannot have more than 2 decimal places")
    return int(amount.quantize(_CENT) * 100)


def from_cents(cents: int | None) -> Decimal | None:
    if cents is None:
        return None
    return (Decimal(cents) / 100).quantize(_CENT, rounding=ROUND_HALF_UP)


def format_amount(cents: int | None) -> str | None:
    """Serialize cents as a fixed two-place decimal string ("1500.00")."""
    amount = from_cents(cents)
    return None if amount is None else f"{amount:.2f}"


def display_amount(cents: int, currency: str) -> str:
    return f"{currency} {from_cents(cents):,.2f}"
