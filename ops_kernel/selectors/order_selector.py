"""
OrderSelector -- read-only order queries for the coordinator and the
reconciliation job.
"""

from uuid import UUID

from sqlalchemy import select

from ops_kernel.exceptions import OrderNotFoundError
from ops_kernel.models.order import OrderModel, OrderSnapshot
from ops_kernel.selectors.base import BaseSelector


class OrderSelector(BaseSelector[OrderModel]):
    """Read-only queries over orders."""

    def get(self, organization_id: str, order_id: UUID) -> OrderSnapshot:
        """
        Raises:
            OrderNotFoundError: if the order is unknown in this organization.
        """
        model = self._execute(
            select(OrderModel).where(
                OrderModel.organization_id == organization_id,
                OrderModel.id == order_id,
            )
        ).scalar_one_or_none()
        if model is None:
            raise OrderNotFoundError(organization_id, str(order_id))
        return model.to_dto()

    def list_orders(self, organization_id: str) -> tuple[OrderSnapshot, ...]:
        models = self._execute(
            select(OrderModel)
            .where(OrderModel.organization_id == organization_id)
            .order_by(OrderModel.order_date, OrderModel.order_number)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)

    def unlinked(self, organization_id: str) -> tuple[OrderSnapshot, ...]:
        """Orders without a customer link, oldest first."""
        models = self._execute(
            select(OrderModel)
            .where(
                OrderModel.organization_id == organization_id,
                OrderModel.customer_id.is_(None),
            )
            .order_by(OrderModel.order_date, OrderModel.order_number)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)

    def count_linked(self, organization_id: str) -> int:
        return len(self._execute(
            select(OrderModel.id).where(
                OrderModel.organization_id == organization_id,
                OrderModel.customer_id.is_not(None),
            )
        ).all())

    def for_customer(
        self, organization_id: str, customer_id: UUID,
    ) -> tuple[OrderSnapshot, ...]:
        """All orders of one customer (cancelled included), oldest first."""
        models = self._execute(
            select(OrderModel)
            .where(
                OrderModel.organization_id == organization_id,
                OrderModel.customer_id == customer_id,
            )
            .order_by(OrderModel.order_date, OrderModel.order_number)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)
