"""Read-only query selectors."""

from ops_kernel.selectors.customer_selector import CustomerSelector
from ops_kernel.selectors.inventory_selector import InventorySelector
from ops_kernel.selectors.order_selector import OrderSelector

__all__ = [
    "CustomerSelector",
    "InventorySelector",
    "OrderSelector",
]
