"""
CustomerSelector -- read-only customer queries.
"""

from uuid import UUID

from sqlalchemy import select

from ops_kernel.domain.customers import CustomerSnapshot
from ops_kernel.exceptions import CustomerNotFoundError
from ops_kernel.models.customer import CustomerModel
from ops_kernel.selectors.base import BaseSelector


class CustomerSelector(BaseSelector[CustomerModel]):
    """Read-only queries over customers."""

    def get(self, organization_id: str, customer_id: UUID) -> CustomerSnapshot:
        """
        Raises:
            CustomerNotFoundError: if the customer is unknown in this organization.
        """
        model = self._execute(
            select(CustomerModel).where(
                CustomerModel.organization_id == organization_id,
                CustomerModel.id == customer_id,
            )
        ).scalar_one_or_none()
        if model is None:
            raise CustomerNotFoundError(organization_id, str(customer_id))
        return model.to_dto()

    def list_customers(self, organization_id: str) -> tuple[CustomerSnapshot, ...]:
        """All customers of an organization in a stable order."""
        models = self._execute(
            select(CustomerModel)
            .where(CustomerModel.organization_id == organization_id)
            .order_by(CustomerModel.name, CustomerModel.id)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)
