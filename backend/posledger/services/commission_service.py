# Overview: Service-layer operations for commission tiers; pure calculator plus tier storage and accrual.

"""
Commission Service

WHY: Managers earn a fixed commission for every full multiple of a sales
threshold. Tiers are admin-managed; the calculator itself is pure and
storage-agnostic so checkout, reconciliation and previews all share it.

CALCULATION (ascending consumption):
    remaining = sales
    for tier in active tiers, lowest threshold first:
        if remaining >= threshold:
            multiplier = floor(remaining / threshold)
            earned += commission_amount * multiplier
            remaining -= threshold * multiplier

Each tier's matched amount is subtracted before the next (higher) tier is
looked at, so lower tiers consume sales first. With tiers 5000/300 and
10000/700, sales of 10000 earn 600 (two 5000 multiples), not 700. This is
the documented behavior and is asserted by the tests.

ACCRUAL (carry-forward):
    qualified = cumulative manager sales - wallet.commissioned_sales
    breakdown = calculate_commission(qualified, active tiers)
    wallet is credited breakdown.total_commission and
    commissioned_sales advances by breakdown.consumed.
The unconsumed remainder carries forward into the next accrual.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from flask import current_app
from sqlalchemy import func

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import CommissionTier, Sale, User
from ..models.auth import ROLE_MANAGER
from ..money import format_amount
from .concurrency import begin_critical_section, run_with_retry


@dataclass(frozen=True)
class Tier:
    """Storage-agnostic tier snapshot fed to the calculator."""
    threshold: object
    commission_amount: object
    tier_id: int | None = None
    is_active: bool = True
    description: str | None = None


@dataclass(frozen=True)
class BreakdownLine:
    tier_id: int | None
    threshold: object
    commission_per_threshold: object
    multiplier: int
    earned: object
    description: str | None = None

    def to_dict(self) -> dict:
        return {
            "tier_id": self.tier_id,
            "threshold": format_amount(self.threshold),
            "commission_per_threshold": format_amount(self.commission_per_threshold),
            "multiplier": self.multiplier,
            "commission_earned": format_amount(self.earned),
            "description": self.description,
        }


@dataclass(frozen=True)
class CommissionBreakdown:
    sales_amount: object
    lines: tuple = field(default_factory=tuple)
    total_commission: object = 0
    remaining: object = 0

    @property
    def consumed(self):
        """Sales converted into commission (sum of threshold * multiplier)."""
        return self.sales_amount - self.remaining

    def to_dict(self) -> dict:
        """Serialize a breakdown computed over integer cents."""
        return {
            "sales_amount": format_amount(self.sales_amount),
            "breakdown": [line.to_dict() for line in self.lines],
            "total_commission": format_amount(self.total_commission),
            "total_commission_cents": self.total_commission,
            "remaining_sales": format_amount(self.remaining),
        }


# =============================================================================
# PURE CALCULATOR
# =============================================================================

def _ordered(tiers: Iterable[Tier]) -> list[Tier]:
    usable = [t for t in tiers if t.is_active and t.threshold > 0]
    return sorted(usable, key=lambda t: (t.threshold, t.tier_id or 0))


def calculate_commission(sales_amount, tiers: Iterable[Tier]) -> CommissionBreakdown:
    """
    Compute the commission breakdown for a sales amount.

    Pure: same inputs always give the same output, nothing is read or written.
    Works on integer cents or Decimal amounts (no floats).

    Raises:
        ValidationError: sales_amount is negative
    """
    if sales_amount < 0:
        raise ValidationError("sales amount must be >= 0")

    remaining = sales_amount
    total = sales_amount - sales_amount
    lines = []

    for tier in _ordered(tiers):
        if remaining >= tier.threshold:
            multiplier = int(remaining // tier.threshold)
            earned = tier.commission_amount * multiplier
            lines.append(BreakdownLine(
                tier_id=tier.tier_id,
                threshold=tier.threshold,
                commission_per_threshold=tier.commission_amount,
                multiplier=multiplier,
                earned=earned,
                description=tier.description,
            ))
            total += earned
            remaining -= tier.threshold * multiplier

    return CommissionBreakdown(
        sales_amount=sales_amount,
        lines=tuple(lines),
        total_commission=total,
        remaining=remaining,
    )


def next_threshold(current_sales, tiers: Iterable[Tier]):
    """Smallest active threshold strictly greater than current_sales, or None."""
    for tier in _ordered(tiers):
        if tier.threshold > current_sales:
            return tier.threshold
    return None


# =============================================================================
# TIER STORAGE
# =============================================================================

def _to_tier(row: CommissionTier) -> Tier:
    return Tier(
        threshold=row.sales_threshold_cents,
        commission_amount=row.commission_amount_cents,
        tier_id=row.id,
        is_active=row.is_active,
        description=row.description,
    )


def list_tiers() -> list[CommissionTier]:
    return (
        db.session.query(CommissionTier)
        .order_by(CommissionTier.sales_threshold_cents.asc(), CommissionTier.id.asc())
        .all()
    )


def active_tiers() -> list[Tier]:
    """Active tiers, ascending by threshold, as calculator snapshots."""
    rows = (
        db.session.query(CommissionTier)
        .filter(CommissionTier.is_active.is_(True))
        .order_by(CommissionTier.sales_threshold_cents.asc(), CommissionTier.id.asc())
        .all()
    )
    return [_to_tier(row) for row in rows]


def _validate_tier_fields(patch: dict) -> None:
    if "sales_threshold_cents" in patch:
        threshold = patch["sales_threshold_cents"]
        if not isinstance(threshold, int) or isinstance(threshold, bool) or threshold <= 0:
            raise ValidationError("sales_threshold must be > 0")
    if "commission_amount_cents" in patch:
        amount = patch["commission_amount_cents"]
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise ValidationError("commission_amount must be >= 0")
    if "description" in patch and patch["description"] is not None:
        description = str(patch["description"]).strip()
        if len(description) > 255:
            raise ValidationError("description exceeds max length 255")
        patch["description"] = description or None
    if "is_active" in patch and not isinstance(patch["is_active"], bool):
        raise ValidationError("is_active must be a boolean")


def _get_tier(tier_id: int) -> CommissionTier:
    tier = db.session.get(CommissionTier, tier_id)
    if tier is None:
        raise NotFoundError(f"Commission rate {tier_id} not found")
    return tier


def create_tier(
    sales_threshold_cents: int,
    commission_amount_cents: int,
    description: str | None = None,
    is_active: bool = True,
) -> CommissionTier:
    patch = {
        "sales_threshold_cents": sales_threshold_cents,
        "commission_amount_cents": commission_amount_cents,
        "description": description,
        "is_active": is_active,
    }
    _validate_tier_fields(patch)

    tier = CommissionTier(**patch)
    db.session.add(tier)
    db.session.commit()
    return tier


def update_tier(tier_id: int, **changes) -> CommissionTier:
    """Patch semantics: only the provided fields change."""
    allowed = {"sales_threshold_cents", "commission_amount_cents", "description", "is_active"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    _validate_tier_fields(changes)

    tier = _get_tier(tier_id)
    for key, value in changes.items():
        setattr(tier, key, value)
    db.session.commit()
    return tier


def set_tier_active(tier_id: int, active: bool) -> CommissionTier:
    return update_tier(tier_id, is_active=active)


def toggle_tier(tier_id: int) -> CommissionTier:
    tier = _get_tier(tier_id)
    return set_tier_active(tier_id, not tier.is_active)


def preview(sales_amount_cents: int) -> dict:
    tiers = active_tiers()
    breakdown = calculate_commission(sales_amount_cents, tiers)
    data = breakdown.to_dict()
    data["next_threshold"] = format_amount(next_threshold(sales_amount_cents, tiers))
    return data


# =============================================================================
# ACCRUAL
# =============================================================================

def total_sales_cents(manager_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(Sale.total_amount_cents), 0))
        .filter(Sale.manager_id == manager_id)
        .scalar()
    )
    return int(total or 0)


def accrue_commission(manager_id: int) -> CommissionBreakdown:
    """
    Convert the manager's not-yet-commissioned sales into wallet credit.

    Runs inside the caller's unit of work (no commit). Safe to call
    repeatedly: once sales are consumed they are not commissioned again.
    """
    from .wallet_service import apply_commission, get_or_create_wallet

    wallet = get_or_create_wallet(manager_id, lock=True)
    qualified = max(0, total_sales_cents(manager_id) - wallet.commissioned_sales_cents)
    breakdown = calculate_commission(qualified, active_tiers())

    if breakdown.consumed > 0:
        apply_commission(
            manager_id,
            consumed_sales_cents=breakdown.consumed,
            commission_cents=breakdown.total_commission,
        )
    return breakdown


def reconcile_commissions(manager_id: int | None = None) -> dict[int, int]:
    """
    Accrue commission for one manager or every active manager.

    Each manager is its own unit of work. Returns {manager_id: credited_cents}.
    """
    if manager_id is not None:
        manager_ids = [manager_id]
    else:
        manager_ids = [
            row.id
            for row in db.session.query(User.id)
            .filter(User.role == ROLE_MANAGER, User.is_active.is_(True))
            .order_by(User.id.asc())
            .all()
        ]

    credited: dict[int, int] = {}
    for mid in manager_ids:
        def _op(mid=mid):
            begin_critical_section()
            breakdown = accrue_commission(mid)
            db.session.commit()
            return breakdown

        breakdown = run_with_retry(_op)
        credited[mid] = breakdown.total_commission
        if breakdown.total_commission:
            current_app.logger.info(
                "Reconciled commission for manager %s: %s cents", mid, breakdown.total_commission
            )
    return credited
