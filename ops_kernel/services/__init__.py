"""Services for the ops kernel (write side)."""

from ops_kernel.services.alert_publisher import (
    AlertPublisher,
    NotificationSink,
    SqlNotificationSink,
)
from ops_kernel.services.customer_ledger import CustomerLedger
from ops_kernel.services.retry import run_with_retry
from ops_kernel.services.stock_ledger import StockLedger

__all__ = [
    "AlertPublisher",
    "CustomerLedger",
    "NotificationSink",
    "SqlNotificationSink",
    "StockLedger",
    "run_with_retry",
]
