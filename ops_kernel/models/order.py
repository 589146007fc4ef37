"""
Order ORM model.

The order-entry workflow owns most order fields.  The engine writes
``status``, ``customer_id``, ``inventory_deducted``, payment amounts and
shipment references.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ops_kernel.db.base import TrackedBase, UTCDateTime, UUIDString


class OrderStatus(str, Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment progress of an order."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


@dataclass(frozen=True)
class OrderSnapshot:
    """Immutable view of an order."""

    order_id: UUID
    organization_id: str
    order_number: str
    customer_id: UUID | None
    customer_name: str | None
    customer_phone: str | None
    product_sku: str
    quantity: int
    amount: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    payment_status: PaymentStatus
    status: OrderStatus
    inventory_deducted: bool
    order_date: datetime
    shipment_id: str | None = None
    tracking_number: str | None = None


class OrderModel(TrackedBase):
    """
    A customer order for a single SKU.

    Guarantees:
        - ``inventory_deducted`` is True exactly while a sale entry for this
          order is outstanding in the stock ledger.
        - ``version_id`` makes two concurrent transitions of the same order
          conflict, so a cancellation restores stock at most once.
    """

    __tablename__ = "orders"

    __table_args__ = (
        Index("idx_orders_org_customer", "organization_id", "customer_id"),
        Index("idx_orders_org_status", "organization_id", "status"),
    )

    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)
    order_number: Mapped[str] = mapped_column(String(50), nullable=False)

    customer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    product_sku: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    outstanding_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value,
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrderStatus.PENDING.value,
    )
    inventory_deducted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    order_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    shipment_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order {self.order_number} {self.status} qty={self.quantity}>"

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED.value

    def to_dto(self) -> OrderSnapshot:
        return OrderSnapshot(
            order_id=self.id,
            organization_id=self.organization_id,
            order_number=self.order_number,
            customer_id=self.customer_id,
            customer_name=self.customer_name,
            customer_phone=self.customer_phone,
            product_sku=self.product_sku,
            quantity=self.quantity,
            amount=self.amount,
            paid_amount=self.paid_amount,
            outstanding_amount=self.outstanding_amount,
            payment_status=PaymentStatus(self.payment_status),
            status=OrderStatus(self.status),
            inventory_deducted=self.inventory_deducted,
            order_date=self.order_date,
            shipment_id=self.shipment_id,
            tracking_number=self.tracking_number,
        )
