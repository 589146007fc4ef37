"""
Customer domain types and tier rules.

Responsibility:
    Pure types shared by the incremental CustomerLedger path and the
    reconciliation fold: customer tiers, the aggregate tuple, the policy
    knobs that decide how cancelled orders count and whether tiers demote.

Architecture position:
    Kernel > Domain -- zero I/O.

Invariants enforced:
    - ``loyalty_points_for`` is ``floor(total_purchases / rate)`` and never
      negative.
    - ``derive_customer_type`` never touches a locked (manually overridden)
      customer and never produces ``inactive``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from uuid import UUID


class CustomerType(str, Enum):
    """Customer tier."""

    NEW = "new"
    REGULAR = "regular"
    VIP = "vip"
    INACTIVE = "inactive"


class CancelledOrderPolicy(str, Enum):
    """How a cancelled order counts toward ``total_orders``."""

    # Incremental cancel keeps the count; recompute counts non-cancelled orders.
    RETAIN_ON_CANCEL = "retain_on_cancel"
    # Both paths exclude cancelled orders.
    EXCLUDE_CANCELLED = "exclude_cancelled"
    # Both paths count every order ever placed.
    COUNT_ALL_PLACED = "count_all_placed"


class DemotionPolicy(str, Enum):
    """Which code path may lower a customer's tier."""

    RECOMPUTE_ONLY = "recompute_only"
    NEVER = "never"
    ALWAYS = "always"


@dataclass(frozen=True)
class CustomerPolicy:
    """Tier and counting rules shared by both aggregate code paths."""

    vip_threshold: Decimal = Decimal("50000")
    loyalty_points_rate: Decimal = Decimal("100")
    cancelled_order_policy: CancelledOrderPolicy = CancelledOrderPolicy.RETAIN_ON_CANCEL
    demotion_policy: DemotionPolicy = DemotionPolicy.RECOMPUTE_ONLY

    def __post_init__(self):
        if self.vip_threshold <= 0:
            raise ValueError("vip_threshold must be positive")
        if self.loyalty_points_rate <= 0:
            raise ValueError("loyalty_points_rate must be positive")


@dataclass(frozen=True)
class CustomerAggregates:
    """The denormalized aggregate tuple stored on a customer row."""

    total_purchases: Decimal
    total_orders: int
    outstanding_balance: Decimal
    loyalty_points: int
    customer_type: CustomerType
    first_order_date: datetime | None = None
    last_order_date: datetime | None = None


@dataclass(frozen=True)
class CustomerSnapshot:
    """Immutable view of a customer and its aggregates."""

    customer_id: UUID
    organization_id: str
    name: str
    phone: str | None
    email: str | None
    aggregates: CustomerAggregates
    type_locked: bool = False


def loyalty_points_for(total_purchases: Decimal, rate: Decimal) -> int:
    """Loyalty points earned by a lifetime spend."""
    if total_purchases <= 0:
        return 0
    return int((total_purchases / rate).to_integral_value(rounding=ROUND_FLOOR))


_TYPE_RANK = {
    CustomerType.NEW: 0,
    CustomerType.REGULAR: 1,
    CustomerType.VIP: 2,
}


def derive_customer_type(
    total_purchases: Decimal,
    total_orders: int,
    vip_threshold: Decimal,
) -> CustomerType:
    """Tier a customer purely from its aggregates."""
    if total_purchases >= vip_threshold:
        return CustomerType.VIP
    if total_orders > 0:
        return CustomerType.REGULAR
    return CustomerType.NEW


def promote_only(current: CustomerType, derived: CustomerType) -> CustomerType:
    """Keep the higher of two tiers; ``inactive`` is left untouched."""
    if current == CustomerType.INACTIVE:
        return current
    if _TYPE_RANK[derived] > _TYPE_RANK[current]:
        return derived
    return current
