"""
Inventory Domain Models (``ops_modules.inventory.models``).

Responsibility
--------------
Frozen read models produced by the reorder advisor.  Never persisted.

Invariants
----------
- ``estimated_cost == unit_cost * suggested_quantity``.
- Monetary fields use ``Decimal``, never ``float``.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ReorderUrgency(str, Enum):
    """How soon an item must be reordered."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


URGENCY_RANK = {
    ReorderUrgency.CRITICAL: 0,
    ReorderUrgency.HIGH: 1,
    ReorderUrgency.MEDIUM: 2,
    ReorderUrgency.LOW: 3,
}


@dataclass(frozen=True)
class ReorderSuggestion:
    """
    A recommendation to reorder one SKU.

    Contract: ``suggested_quantity`` is the economic order quantity (or the
    item's fixed ``reorder_quantity``); ``reorder_point`` is the stock level
    at which the order should be placed.
    """
    item_id: UUID
    organization_id: str
    sku: str
    product_name: str
    current_stock: int
    low_stock_threshold: int
    daily_usage: int
    reorder_point: int
    suggested_quantity: int
    urgency: ReorderUrgency
    unit_cost: Decimal
    estimated_cost: Decimal
    supplier_name: str | None = None
    lead_time_days: int = 7

    @property
    def is_actionable(self) -> bool:
        return self.urgency != ReorderUrgency.LOW

    @property
    def days_of_stock(self) -> int | None:
        """Whole days the current stock lasts at the estimated usage."""
        if self.daily_usage <= 0:
            return None
        return self.current_stock // self.daily_usage
