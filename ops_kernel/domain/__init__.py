"""
Pure domain layer.

Frozen DTOs, enums and rules with no dependencies on the ORM, the database,
the clock or I/O.
"""

from ops_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ops_kernel.domain.customers import (
    CancelledOrderPolicy,
    CustomerAggregates,
    CustomerPolicy,
    CustomerSnapshot,
    CustomerType,
    DemotionPolicy,
    derive_customer_type,
    loyalty_points_for,
    promote_only,
)
from ops_kernel.domain.notifications import (
    NotificationRecord,
    NotificationType,
    Severity,
)
from ops_kernel.domain.stock import (
    HistoryEntrySnapshot,
    HistoryEntryType,
    InventoryItemSnapshot,
    StockCheck,
    StockLevel,
    StockMutation,
    classify_stock_level,
    detect_crossing,
)

__all__ = [
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Stock
    "HistoryEntrySnapshot",
    "HistoryEntryType",
    "InventoryItemSnapshot",
    "StockCheck",
    "StockLevel",
    "StockMutation",
    "classify_stock_level",
    "detect_crossing",
    # Customers
    "CancelledOrderPolicy",
    "CustomerAggregates",
    "CustomerPolicy",
    "CustomerSnapshot",
    "CustomerType",
    "DemotionPolicy",
    "derive_customer_type",
    "loyalty_points_for",
    "promote_only",
    # Notifications
    "NotificationRecord",
    "NotificationType",
    "Severity",
]
