"""
Batch tasks: customers (orphan order linking, aggregate recompute).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ops_batch.domain.types import BatchItemStatus
from ops_batch.tasks.base import BatchItemInput, BatchTaskResult
from ops_kernel.domain.customers import CustomerPolicy
from ops_kernel.exceptions import LinkAmbiguousError, LinkNotFoundError
from ops_kernel.logging_config import get_logger
from ops_kernel.models.order import OrderModel
from ops_kernel.selectors.customer_selector import CustomerSelector
from ops_kernel.selectors.order_selector import OrderSelector
from ops_kernel.services.customer_ledger import CustomerLedger
from ops_modules.customers.helpers import fold_customer_orders, match_customer

logger = get_logger("batch.tasks.customers")


class LinkOrdersTask:
    """Batch task linking orders without a customer to their customer."""

    @property
    def task_type(self) -> str:
        return "customers.link_orders"

    @property
    def description(self) -> str:
        return "Link orphan orders to customers by name, then phone"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        orders = OrderSelector(session).unlinked(parameters["organization_id"])
        return tuple(
            BatchItemInput(
                item_index=i,
                item_key=str(order.order_id),
                payload={"order_id": str(order.order_id)},
            )
            for i, order in enumerate(orders)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        organization_id = parameters["organization_id"]
        order_id = UUID(item.payload["order_id"])

        order = session.execute(
            select(OrderModel)
            .where(
                OrderModel.organization_id == organization_id,
                OrderModel.id == order_id,
            )
            .execution_options(populate_existing=True)
        ).scalar_one()
        if order.customer_id is not None:
            # Linked by someone else since prepare_items
            return BatchTaskResult(
                status=BatchItemStatus.SKIPPED,
                result_data={"order_id": str(order_id), "already_linked": True},
            )

        customers = CustomerSelector(session).list_customers(organization_id)
        try:
            customer_id = match_customer(order.to_dto(), customers)
        except LinkAmbiguousError as exc:
            logger.warning(
                "order_link_ambiguous",
                extra={
                    "order_number": order.order_number,
                    "matched_on": exc.matched_on,
                    "candidate_count": len(exc.candidate_ids),
                },
            )
            return BatchTaskResult(
                status=BatchItemStatus.SKIPPED,
                error_code=exc.code,
                error_message=str(exc),
                result_data={
                    "order_id": str(order_id),
                    "candidates": list(exc.candidate_ids),
                },
            )
        except LinkNotFoundError as exc:
            logger.info(
                "order_link_not_found",
                extra={"order_number": order.order_number},
            )
            return BatchTaskResult(
                status=BatchItemStatus.SKIPPED,
                error_code=exc.code,
                error_message=str(exc),
                result_data={"order_id": str(order_id)},
            )

        order.customer_id = customer_id
        session.flush()
        logger.info(
            "order_linked",
            extra={
                "order_number": order.order_number,
                "customer_id": str(customer_id),
            },
        )
        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={"order_id": str(order_id), "customer_id": str(customer_id)},
        )


class RecomputeCustomerTask:
    """Batch task overwriting each customer's aggregates with a fresh fold."""

    def __init__(self, policy: CustomerPolicy | None = None):
        self._policy = policy or CustomerPolicy()

    @property
    def task_type(self) -> str:
        return "customers.recompute"

    @property
    def description(self) -> str:
        return "Recompute customer aggregates from the authoritative order set"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        customers = CustomerSelector(session).list_customers(parameters["organization_id"])
        return tuple(
            BatchItemInput(
                item_index=i,
                item_key=str(customer.customer_id),
                payload={"customer_id": str(customer.customer_id)},
            )
            for i, customer in enumerate(customers)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        organization_id = parameters["organization_id"]
        customer_id = UUID(item.payload["customer_id"])

        customer = CustomerSelector(session).get(organization_id, customer_id)
        orders = OrderSelector(session).for_customer(organization_id, customer_id)
        aggregates = fold_customer_orders(
            orders,
            self._policy,
            current_type=customer.aggregates.customer_type,
        )
        changed = CustomerLedger(
            session, policy=self._policy, auto_commit=False,
        ).overwrite_aggregates(organization_id, customer_id, aggregates)

        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={
                "customer_id": str(customer_id),
                "changed": changed,
                "order_count": len(orders),
            },
        )
