"""ORM models for the consistency engine."""

from ops_kernel.models.customer import CustomerModel
from ops_kernel.models.inventory import InventoryHistoryModel, InventoryItemModel
from ops_kernel.models.notification import NotificationModel
from ops_kernel.models.order import (
    OrderModel,
    OrderSnapshot,
    OrderStatus,
    PaymentStatus,
)


def import_all_models() -> tuple[type, ...]:
    """Return every mapped model so Base.metadata knows all tables."""
    return (
        CustomerModel,
        InventoryItemModel,
        InventoryHistoryModel,
        NotificationModel,
        OrderModel,
    )


__all__ = [
    "CustomerModel",
    "InventoryHistoryModel",
    "InventoryItemModel",
    "NotificationModel",
    "OrderModel",
    "OrderSnapshot",
    "OrderStatus",
    "PaymentStatus",
    "import_all_models",
]
