"""
Customer ORM model with denormalized order aggregates.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ops_kernel.db.base import TrackedBase, UTCDateTime
from ops_kernel.domain.customers import (
    CustomerAggregates,
    CustomerSnapshot,
    CustomerType,
)


class CustomerModel(TrackedBase):
    """
    A customer and its running totals.

    Contract:
        Aggregates are mutated by CustomerLedger deltas and overwritten by
        the reconciliation fold.  ``type_locked`` marks a manual tier
        override that neither path may change.

    Guarantees:
        - ``version_id`` makes concurrent in-process writers fail loudly
          instead of overwriting each other.
    """

    __tablename__ = "customers"

    __table_args__ = (
        Index("idx_customers_org", "organization_id"),
    )

    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    total_purchases: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    outstanding_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    loyalty_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    customer_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CustomerType.NEW.value,
    )
    type_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    first_order_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    last_order_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Customer {self.name} {self.customer_type} total={self.total_purchases}>"

    def aggregates(self) -> CustomerAggregates:
        return CustomerAggregates(
            total_purchases=self.total_purchases,
            total_orders=self.total_orders,
            outstanding_balance=self.outstanding_balance,
            loyalty_points=self.loyalty_points,
            customer_type=CustomerType(self.customer_type),
            first_order_date=self.first_order_date,
            last_order_date=self.last_order_date,
        )

    def to_dto(self) -> CustomerSnapshot:
        return CustomerSnapshot(
            customer_id=self.id,
            organization_id=self.organization_id,
            name=self.name,
            phone=self.phone,
            email=self.email,
            aggregates=self.aggregates(),
            type_locked=self.type_locked,
        )
