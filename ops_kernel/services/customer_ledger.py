"""
CustomerLedger -- denormalized per-customer aggregates.

Responsibility:
    Applies signed deltas to a customer's running totals when orders are
    created, cancelled or paid, and overwrites the totals with a recomputed
    fold during reconciliation.

Architecture position:
    Kernel > Services.  Driven by the order fulfillment coordinator
    (incremental path) and the reconciliation job (repair path).  The fold
    itself is pure and lives outside the kernel.

Invariants enforced:
    - ``loyalty_points == floor(total_purchases / loyalty_points_rate)``
      after every write.
    - The incremental path never demotes a tier unless the demotion policy
      is ``always``; ``type_locked`` customers keep their tier on every path.
    - ``outstanding_balance`` and ``total_purchases`` never go below zero.

Failure modes:
    - CustomerNotFoundError: unknown customer in this organization.
    - ConcurrentModificationError: another writer updated the row first.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from ops_kernel.domain.clock import Clock, SystemClock
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
from ops_kernel.exceptions import CustomerNotFoundError
from ops_kernel.logging_config import get_logger
from ops_kernel.models.customer import CustomerModel
from ops_kernel.services.base import BaseService
from ops_kernel.services.retry import DEFAULT_MAX_ATTEMPTS, run_with_retry

logger = get_logger("services.customer_ledger")

T = TypeVar("T")

_ZERO = Decimal("0")


class CustomerLedger(BaseService[CustomerModel]):
    """
    Incremental and overwrite writes of customer aggregates.

    Contract:
        Deltas, never snapshots: ``apply_*`` methods re-read the row and
        add to it.  Only ``overwrite_aggregates`` writes absolute values.
    """

    def __init__(
        self,
        session: Session,
        policy: CustomerPolicy | None = None,
        clock: Clock | None = None,
        auto_commit: bool = False,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        super().__init__(session, auto_commit=auto_commit)
        self.policy = policy or CustomerPolicy()
        self._clock = clock or SystemClock()
        self._max_attempts = max_attempts

    def _run(self, operation_name: str, operation: Callable[[], T]) -> T:
        if not self.auto_commit:
            return operation()
        return run_with_retry(
            self.session,
            operation,
            operation_name=operation_name,
            max_attempts=self._max_attempts,
        )

    def _load(self, organization_id: str, customer_id: UUID) -> CustomerModel:
        customer = self.session.execute(
            select(CustomerModel)
            .where(
                CustomerModel.organization_id == organization_id,
                CustomerModel.id == customer_id,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if customer is None:
            raise CustomerNotFoundError(organization_id, str(customer_id))
        return customer

    def _refresh_loyalty(self, customer: CustomerModel) -> None:
        customer.loyalty_points = loyalty_points_for(
            customer.total_purchases, self.policy.loyalty_points_rate,
        )

    def _flush_customer(self, customer: CustomerModel) -> CustomerSnapshot:
        self._flush("Customer", str(customer.id))
        return customer.to_dto()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def create_customer(
        self,
        organization_id: str,
        name: str,
        phone: str | None = None,
        email: str | None = None,
        created_by: str = "system",
    ) -> CustomerSnapshot:
        def _create() -> CustomerSnapshot:
            customer = CustomerModel(
                id=uuid4(),
                organization_id=organization_id,
                name=name,
                phone=phone,
                email=email,
                total_purchases=_ZERO,
                total_orders=0,
                outstanding_balance=_ZERO,
                loyalty_points=0,
                customer_type=CustomerType.NEW.value,
                type_locked=False,
                created_by=created_by,
            )
            self.session.add(customer)
            return self._flush_customer(customer)

        snapshot = self._run("customer_create", _create)
        logger.info(
            "customer_created",
            extra={"customer_id": str(snapshot.customer_id)},
        )
        return snapshot

    def get_customer(self, organization_id: str, customer_id: UUID) -> CustomerSnapshot:
        return self._load(organization_id, customer_id).to_dto()

    def set_type_override(
        self,
        organization_id: str,
        customer_id: UUID,
        customer_type: CustomerType | None,
    ) -> CustomerSnapshot:
        """
        Pin a tier manually (for example ``inactive``), or clear the pin.

        A pinned tier is kept by both the incremental path and the
        reconciliation fold.  Clearing re-derives the tier from the
        aggregates.
        """
        def _override() -> CustomerSnapshot:
            customer = self._load(organization_id, customer_id)
            if customer_type is None:
                customer.type_locked = False
                customer.customer_type = derive_customer_type(
                    customer.total_purchases,
                    customer.total_orders,
                    self.policy.vip_threshold,
                ).value
            else:
                customer.type_locked = True
                customer.customer_type = customer_type.value
            return self._flush_customer(customer)

        snapshot = self._run("customer_type_override", _override)
        logger.info(
            "customer_type_overridden",
            extra={
                "customer_id": str(customer_id),
                "customer_type": snapshot.aggregates.customer_type.value,
                "type_locked": snapshot.type_locked,
            },
        )
        return snapshot

    # -------------------------------------------------------------------------
    # Incremental path
    # -------------------------------------------------------------------------

    def apply_order_created(
        self,
        organization_id: str,
        customer_id: UUID,
        amount: Decimal,
        paid_amount: Decimal,
        outstanding: Decimal,
        order_date: datetime,
    ) -> CustomerSnapshot:
        """
        Add one order to a customer's totals.

        Promotes new -> regular on the first order and to vip once lifetime
        spend reaches the threshold.  Never demotes.
        """
        def _apply() -> CustomerSnapshot:
            customer = self._load(organization_id, customer_id)
            customer.total_purchases = customer.total_purchases + amount
            customer.total_orders = customer.total_orders + 1
            customer.outstanding_balance = customer.outstanding_balance + outstanding
            self._refresh_loyalty(customer)

            if not customer.type_locked:
                derived = derive_customer_type(
                    customer.total_purchases,
                    customer.total_orders,
                    self.policy.vip_threshold,
                )
                customer.customer_type = promote_only(
                    CustomerType(customer.customer_type), derived,
                ).value

            if customer.first_order_date is None or order_date < customer.first_order_date:
                customer.first_order_date = order_date
            if customer.last_order_date is None or order_date > customer.last_order_date:
                customer.last_order_date = order_date
            return self._flush_customer(customer)

        snapshot = self._run("customer_apply_order_created", _apply)
        logger.info(
            "customer_order_applied",
            extra={
                "customer_id": str(customer_id),
                "amount": amount,
                "paid_amount": paid_amount,
                "total_purchases": snapshot.aggregates.total_purchases,
                "customer_type": snapshot.aggregates.customer_type.value,
            },
        )
        return snapshot

    def apply_order_cancelled(
        self,
        organization_id: str,
        customer_id: UUID,
        amount: Decimal,
        outstanding: Decimal,
    ) -> CustomerSnapshot:
        """
        Reverse a cancelled order's spend and outstanding balance.

        ``total_orders`` is decremented only under the exclude-cancelled
        policy.  The tier is re-derived only under the ``always`` demotion
        policy.
        """
        def _apply() -> CustomerSnapshot:
            customer = self._load(organization_id, customer_id)
            customer.total_purchases = max(_ZERO, customer.total_purchases - amount)
            customer.outstanding_balance = max(
                _ZERO, customer.outstanding_balance - outstanding,
            )
            if self.policy.cancelled_order_policy == CancelledOrderPolicy.EXCLUDE_CANCELLED:
                customer.total_orders = max(0, customer.total_orders - 1)
            self._refresh_loyalty(customer)

            if (
                self.policy.demotion_policy == DemotionPolicy.ALWAYS
                and not customer.type_locked
            ):
                customer.customer_type = derive_customer_type(
                    customer.total_purchases,
                    customer.total_orders,
                    self.policy.vip_threshold,
                ).value
            return self._flush_customer(customer)

        snapshot = self._run("customer_apply_order_cancelled", _apply)
        logger.info(
            "customer_cancellation_applied",
            extra={
                "customer_id": str(customer_id),
                "amount": amount,
                "total_purchases": snapshot.aggregates.total_purchases,
                "total_orders": snapshot.aggregates.total_orders,
            },
        )
        return snapshot

    def apply_payment(
        self,
        organization_id: str,
        customer_id: UUID,
        amount: Decimal,
    ) -> CustomerSnapshot:
        """Reduce the outstanding balance by a payment, clamped at zero."""
        def _apply() -> CustomerSnapshot:
            customer = self._load(organization_id, customer_id)
            customer.outstanding_balance = max(
                _ZERO, customer.outstanding_balance - amount,
            )
            return self._flush_customer(customer)

        snapshot = self._run("customer_apply_payment", _apply)
        logger.info(
            "customer_payment_applied",
            extra={
                "customer_id": str(customer_id),
                "amount": amount,
                "outstanding_balance": snapshot.aggregates.outstanding_balance,
            },
        )
        return snapshot

    # -------------------------------------------------------------------------
    # Repair path
    # -------------------------------------------------------------------------

    def overwrite_aggregates(
        self,
        organization_id: str,
        customer_id: UUID,
        aggregates: CustomerAggregates,
    ) -> bool:
        """
        Replace a customer's aggregates with a recomputed fold.

        A ``type_locked`` customer keeps its tier.  Returns True when any
        stored value changed, so a second run over unchanged orders reports
        no changes.
        """
        def _overwrite() -> bool:
            customer = self._load(organization_id, customer_id)
            before = customer.aggregates()
            customer_type = (
                before.customer_type if customer.type_locked else aggregates.customer_type
            )

            customer.total_purchases = aggregates.total_purchases
            customer.total_orders = aggregates.total_orders
            customer.outstanding_balance = aggregates.outstanding_balance
            customer.loyalty_points = aggregates.loyalty_points
            customer.customer_type = customer_type.value
            customer.first_order_date = aggregates.first_order_date
            customer.last_order_date = aggregates.last_order_date

            after = customer.aggregates()
            if after == before:
                return False
            self._flush_customer(customer)
            return True

        changed = self._run("customer_overwrite_aggregates", _overwrite)
        logger.info(
            "customer_aggregates_overwritten",
            extra={"customer_id": str(customer_id), "changed": changed},
        )
        return changed
