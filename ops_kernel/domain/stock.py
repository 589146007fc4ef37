"""
Stock domain types -- pure frozen DTOs and level classification.

Responsibility:
    Value objects returned by the StockLedger and consumed by the reorder
    advisor and the alert publisher.  Classification of a quantity into a
    stock level and detection of edge-triggered level crossings.

Architecture position:
    Kernel > Domain -- zero I/O, no session, no clock.

Invariants enforced:
    - A crossing is reported only when the level gets worse during a single
      mutation (OK -> LOW, OK -> CRITICAL, LOW -> CRITICAL).  Repeated
      mutations inside the same level report nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class HistoryEntryType(str, Enum):
    """Kind of inventory history entry."""

    INITIAL = "initial"
    RESTOCK = "restock"
    SALE = "sale"
    ADJUSTMENT = "adjustment"
    REVERSAL = "reversal"


class StockLevel(str, Enum):
    """Stock level bands, ordered from healthy to empty."""

    OK = "ok"
    LOW = "low"
    CRITICAL = "critical"


_LEVEL_RANK = {
    StockLevel.OK: 0,
    StockLevel.LOW: 1,
    StockLevel.CRITICAL: 2,
}


def classify_stock_level(quantity: int, low_stock_threshold: int) -> StockLevel:
    """Classify a quantity: CRITICAL at zero, LOW at or under a positive threshold."""
    if quantity <= 0:
        return StockLevel.CRITICAL
    if low_stock_threshold > 0 and quantity <= low_stock_threshold:
        return StockLevel.LOW
    return StockLevel.OK


def detect_crossing(
    previous_quantity: int,
    new_quantity: int,
    low_stock_threshold: int,
) -> StockLevel | None:
    """Return the new level if it is worse than the previous one, else None."""
    before = classify_stock_level(previous_quantity, low_stock_threshold)
    after = classify_stock_level(new_quantity, low_stock_threshold)
    if _LEVEL_RANK[after] > _LEVEL_RANK[before]:
        return after
    return None


@dataclass(frozen=True)
class InventoryItemSnapshot:
    """Immutable view of an inventory item."""

    item_id: UUID
    organization_id: str
    sku: str
    product_name: str
    quantity_on_hand: int
    low_stock_threshold: int
    unit_cost: Decimal
    reorder_point: int | None = None
    reorder_quantity: int | None = None
    lead_time_days: int | None = None
    safety_stock_days: int | None = None
    supplier_name: str | None = None
    last_sequence: int = 0

    @property
    def stock_level(self) -> StockLevel:
        return classify_stock_level(self.quantity_on_hand, self.low_stock_threshold)


@dataclass(frozen=True)
class HistoryEntrySnapshot:
    """Immutable view of one appended history entry."""

    entry_id: UUID
    item_id: UUID
    sequence: int
    entry_type: HistoryEntryType
    quantity_change: int
    previous_quantity: int
    new_quantity: int
    order_id: UUID | None
    reason: str
    performed_by: str
    occurred_at: datetime
    prev_hash: str | None
    entry_hash: str


@dataclass(frozen=True)
class StockMutation:
    """Result of a single StockLedger mutation.

    ``crossing`` is set only when this mutation moved the item into a worse
    stock level; AlertPublisher consumes it.
    """

    item: InventoryItemSnapshot
    entry: HistoryEntrySnapshot
    crossing: StockLevel | None = None

    @property
    def new_quantity(self) -> int:
        return self.entry.new_quantity

    @property
    def sku(self) -> str:
        return self.item.sku


@dataclass(frozen=True)
class StockCheck:
    """Answer to 'can this quantity be deducted right now?'."""

    sku: str
    product_name: str
    current_stock: int
    required_quantity: int

    @property
    def available(self) -> bool:
        return self.current_stock >= self.required_quantity
