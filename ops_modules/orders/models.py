"""
Order Domain Models (``ops_modules.orders.models``).

Frozen inputs and outputs of the fulfillment coordinator.  The persisted
order and its status enums live in ``ops_kernel.models.order``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class OrderRequest:
    """
    A new order as captured by order entry.

    Contract: ``customer_name`` and ``customer_phone`` are kept even when
    ``customer_id`` is set; reconciliation links orphan orders by them.
    """
    order_number: str
    product_sku: str
    quantity: int
    amount: Decimal
    paid_amount: Decimal = Decimal("0")
    customer_id: UUID | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    order_date: datetime | None = None

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError("amount cannot be negative")
        if self.paid_amount < 0:
            raise ValueError("paid_amount cannot be negative")
        if self.paid_amount > self.amount:
            raise ValueError("paid_amount cannot exceed amount")

    @property
    def outstanding_amount(self) -> Decimal:
        return self.amount - self.paid_amount


@dataclass(frozen=True)
class ShipmentReceipt:
    """What a shipment gateway returns for a shipped order."""
    shipment_id: str
    tracking_number: str
    carrier: str | None = None
