"""
Order Fulfillment Coordinator (``ops_modules.orders.service``).

Responsibility
--------------
Drives order lifecycle transitions (create, mark processing, ship, deliver,
cancel, record payment) against the stock ledger and the customer ledger,
and emits alerts and shipment requests after the ledger work is durable.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. Calls ``StockLedger`` (``auto_commit=False``) for deductions and
   reversals.
2. Calls ``CustomerLedger`` (``auto_commit=False``) for aggregate deltas.
3. Calls ``AlertPublisher`` and ``ShipmentGateway`` only after commit.

Invariants
----------
- Each public method owns its transaction boundary.  Ledger services only
  flush; this coordinator commits through ``run_with_retry`` and rolls back
  on any failure.
- Creating an order deducts stock, inserts the order with
  ``inventory_deducted=True`` and applies the customer delta in one
  transaction: either all three happen or none.
- Cancelling restores stock at most once: the ``inventory_deducted`` flag
  and the order's version counter guard against double restores, and a lost
  flag is recovered from the order's net deduction in stock history.
- External effects never roll back a committed ledger mutation.

Failure Modes
-------------
- ``InsufficientStockError``: nothing is persisted; a ``stock-critical``
  alert is published and the error is re-raised.
- ``InvalidOrderTransitionError``: transition not in ``ORDER_WORKFLOW``.
- ``OrderNotFoundError`` / ``CustomerNotFoundError`` / ``ItemNotFoundError``.
- ``ConcurrentModificationError`` once optimistic retries are exhausted.
- Shipment gateway failures are logged; the order stays shipped without
  tracking details.

Audit Relevance
---------------
Every stock movement caused by an order carries the order id in its history
entry, so ``StockLedger.outstanding_deduction`` can re-derive what an order
still holds.

Usage::

    coordinator = OrderFulfillmentCoordinator(session, alert_publisher, gateway)
    order = coordinator.create_order("org-1", OrderRequest(
        order_number="ORD-1001", product_sku="SKU-1", quantity=3,
        amount=Decimal("300"), customer_id=customer_id,
    ))
    coordinator.cancel("org-1", order.order_id)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from ops_kernel.domain.clock import Clock, SystemClock
from ops_kernel.domain.customers import CustomerPolicy
from ops_kernel.domain.notifications import NotificationType, Severity
from ops_kernel.domain.stock import StockMutation
from ops_kernel.exceptions import InsufficientStockError, OrderNotFoundError
from ops_kernel.logging_config import LogContext, get_logger
from ops_kernel.models.order import OrderModel, OrderSnapshot, OrderStatus
from ops_kernel.selectors.order_selector import OrderSelector
from ops_kernel.services.alert_publisher import AlertPublisher
from ops_kernel.services.customer_ledger import CustomerLedger
from ops_kernel.services.retry import run_with_retry
from ops_kernel.services.stock_ledger import StockLedger
from ops_modules.orders.config import OrderConfig
from ops_modules.orders.gateway import ShipmentGateway
from ops_modules.orders.helpers import apply_payment, payment_status_for
from ops_modules.orders.models import OrderRequest
from ops_modules.orders.workflows import transition_for, validate_transition

logger = get_logger("modules.orders.service")

T = TypeVar("T")


class OrderFulfillmentCoordinator:
    """
    Orchestrates order transitions through the kernel ledgers.

    Contract
    --------
    Every public method takes an explicit ``organization_id``, runs its
    ledger work as one unit of work and returns the order snapshot as
    committed.

    Non-goals
    ---------
    - Order entry validation beyond amounts (pricing, tax, discounts).
    - Carrier selection; the gateway decides.

    Transaction boundary: this service commits on success, rolls back on failure.
    """

    def __init__(
        self,
        session: Session,
        alert_publisher: AlertPublisher | None = None,
        shipment_gateway: ShipmentGateway | None = None,
        customer_policy: CustomerPolicy | None = None,
        clock: Clock | None = None,
        config: OrderConfig | None = None,
    ):
        self._session = session
        self._alerts = alert_publisher
        self._gateway = shipment_gateway
        self._clock = clock or SystemClock()
        self._config = config or OrderConfig.with_defaults()
        self._stock = StockLedger(
            session,
            clock=self._clock,
            auto_commit=False,
        )
        self._customers = CustomerLedger(
            session,
            policy=customer_policy,
            clock=self._clock,
            auto_commit=False,
        )
        self._orders = OrderSelector(session)

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _unit_of_work(self, operation_name: str, operation: Callable[[], T]) -> T:
        return run_with_retry(
            self._session,
            operation,
            operation_name=operation_name,
            max_attempts=self._config.max_retry_attempts,
        )

    def _load(self, organization_id: str, order_id: UUID) -> OrderModel:
        order = self._session.execute(
            select(OrderModel)
            .where(
                OrderModel.organization_id == organization_id,
                OrderModel.id == order_id,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(organization_id, str(order_id))
        return order

    def _publish_crossing(self, mutation: StockMutation | None) -> None:
        if self._alerts is not None and mutation is not None:
            self._alerts.publish_mutation(mutation)

    def _publish_order_event(
        self,
        snapshot: OrderSnapshot,
        notification_type: NotificationType,
        title: str,
        message: str,
        severity: Severity = Severity.INFO,
    ) -> None:
        if self._alerts is None or not self._config.publish_order_events:
            return
        self._alerts.publish_order_event(
            snapshot.organization_id,
            notification_type,
            snapshot.order_id,
            title=title,
            message=message,
            severity=severity,
        )

    def get_order(self, organization_id: str, order_id: UUID) -> OrderSnapshot:
        return self._orders.get(organization_id, order_id)

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create_order(
        self,
        organization_id: str,
        request: OrderRequest,
        actor_id: str = "system",
    ) -> OrderSnapshot:
        """
        Deduct stock, persist the order and apply the customer delta.

        Raises:
            InsufficientStockError: not enough stock; nothing is persisted.
        """
        order_id = uuid4()
        order_date = request.order_date or self._clock.now_utc()

        def _create() -> tuple[OrderSnapshot, StockMutation]:
            mutation = self._stock.deduct(
                organization_id,
                request.product_sku,
                request.quantity,
                cause_order_id=order_id,
                performed_by=actor_id,
            )
            order = OrderModel(
                id=order_id,
                organization_id=organization_id,
                order_number=request.order_number,
                customer_id=request.customer_id,
                customer_name=request.customer_name,
                customer_phone=request.customer_phone,
                product_sku=request.product_sku,
                quantity=request.quantity,
                amount=request.amount,
                paid_amount=request.paid_amount,
                outstanding_amount=request.outstanding_amount,
                payment_status=payment_status_for(
                    request.amount, request.paid_amount,
                ).value,
                status=OrderStatus.PENDING.value,
                inventory_deducted=True,
                order_date=order_date,
                created_by=actor_id,
            )
            self._session.add(order)
            self._session.flush()

            if request.customer_id is not None:
                self._customers.apply_order_created(
                    organization_id,
                    request.customer_id,
                    amount=request.amount,
                    paid_amount=request.paid_amount,
                    outstanding=request.outstanding_amount,
                    order_date=order_date,
                )
            return order.to_dto(), mutation

        with LogContext.bind(
            organization_id=organization_id, order_id=order_id, actor_id=actor_id,
        ):
            try:
                snapshot, mutation = self._unit_of_work("order_create", _create)
            except InsufficientStockError as exc:
                logger.warning(
                    "order_rejected_insufficient_stock",
                    extra={
                        "order_number": request.order_number,
                        "sku": exc.sku,
                        "requested": exc.requested,
                        "available": exc.available,
                    },
                )
                if self._alerts is not None:
                    self._alerts.publish_insufficient_stock(
                        organization_id,
                        exc.sku,
                        exc.product_name,
                        exc.requested,
                        exc.available,
                    )
                raise

            logger.info(
                "order_created",
                extra={
                    "order_number": snapshot.order_number,
                    "sku": snapshot.product_sku,
                    "quantity": snapshot.quantity,
                    "amount": snapshot.amount,
                    "linked": snapshot.customer_id is not None,
                },
            )
            self._publish_crossing(mutation)
            self._publish_order_event(
                snapshot,
                NotificationType.ORDER_CREATED,
                title="New Order Received",
                message=(
                    f"Order {snapshot.order_number}: {snapshot.quantity} x "
                    f"{snapshot.product_sku} for {snapshot.amount}."
                ),
            )
        return snapshot

    # -------------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------------

    def _transition(
        self,
        organization_id: str,
        order_id: UUID,
        target: OrderStatus,
    ) -> OrderSnapshot:
        def _apply() -> OrderSnapshot:
            order = self._load(organization_id, order_id)
            validate_transition(str(order_id), OrderStatus(order.status), target)
            order.status = target.value
            self._session.flush()
            return order.to_dto()

        with LogContext.bind(organization_id=organization_id, order_id=order_id):
            snapshot = self._unit_of_work(f"order_{target.value}", _apply)
            logger.info(
                "order_status_changed",
                extra={"order_number": snapshot.order_number, "status": target.value},
            )
        return snapshot

    def mark_processing(self, organization_id: str, order_id: UUID) -> OrderSnapshot:
        return self._transition(organization_id, order_id, OrderStatus.PROCESSING)

    def deliver(self, organization_id: str, order_id: UUID) -> OrderSnapshot:
        return self._transition(organization_id, order_id, OrderStatus.DELIVERED)

    def ship(self, organization_id: str, order_id: UUID) -> OrderSnapshot:
        """
        Mark the order shipped, then request a shipment.

        The status commit comes first; a gateway failure leaves the order
        shipped without a tracking number.
        """
        snapshot = self._transition(organization_id, order_id, OrderStatus.SHIPPED)
        if self._gateway is None:
            logger.info(
                "shipment_request_skipped",
                extra={"order_number": snapshot.order_number},
            )
            return snapshot

        with LogContext.bind(organization_id=organization_id, order_id=order_id):
            try:
                receipt = self._gateway.create_shipment(snapshot)
            except Exception:
                logger.error(
                    "shipment_request_failed",
                    extra={"order_number": snapshot.order_number},
                    exc_info=True,
                )
                return snapshot

            def _store() -> OrderSnapshot:
                order = self._load(organization_id, order_id)
                order.shipment_id = receipt.shipment_id
                order.tracking_number = receipt.tracking_number
                self._session.flush()
                return order.to_dto()

            snapshot = self._unit_of_work("order_store_shipment", _store)
            logger.info(
                "order_shipment_recorded",
                extra={
                    "order_number": snapshot.order_number,
                    "shipment_id": receipt.shipment_id,
                    "tracking_number": receipt.tracking_number,
                },
            )
        self._publish_order_event(
            snapshot,
            NotificationType.SHIPMENT_CREATED,
            title="Shipment Created",
            message=(
                f"Order {snapshot.order_number} shipped. "
                f"Tracking: {snapshot.tracking_number}"
            ),
            severity=Severity.SUCCESS,
        )
        return snapshot

    # -------------------------------------------------------------------------
    # Cancel
    # -------------------------------------------------------------------------

    def cancel(
        self,
        organization_id: str,
        order_id: UUID,
        actor_id: str = "system",
    ) -> OrderSnapshot:
        """
        Cancel an order, restoring any stock it still holds.

        Cancelling an already cancelled order changes nothing.

        Raises:
            InvalidOrderTransitionError: the order was delivered.
        """
        def _cancel() -> tuple[OrderSnapshot, StockMutation | None, bool]:
            order = self._load(organization_id, order_id)
            if order.is_cancelled:
                return order.to_dto(), None, False
            transition = transition_for(
                str(order_id), OrderStatus(order.status), OrderStatus.CANCELLED,
            )

            if not transition.moves_stock:
                to_restore = 0
            elif order.inventory_deducted:
                to_restore = order.quantity
            else:
                to_restore = self._stock.outstanding_deduction(
                    organization_id, order.product_sku, order.id,
                )
                if to_restore:
                    logger.warning(
                        "order_deduction_flag_lost",
                        extra={
                            "order_number": order.order_number,
                            "outstanding_deduction": to_restore,
                        },
                    )

            mutation = None
            if to_restore > 0:
                mutation = self._stock.restore(
                    organization_id,
                    order.product_sku,
                    to_restore,
                    cause_order_id=order.id,
                    performed_by=actor_id,
                )

            order.inventory_deducted = False
            order.status = OrderStatus.CANCELLED.value
            order.cancelled_at = self._clock.now_utc()
            order.updated_by = actor_id
            self._session.flush()

            if order.customer_id is not None:
                self._customers.apply_order_cancelled(
                    organization_id,
                    order.customer_id,
                    amount=order.amount,
                    outstanding=order.outstanding_amount,
                )
            return order.to_dto(), mutation, True

        with LogContext.bind(
            organization_id=organization_id, order_id=order_id, actor_id=actor_id,
        ):
            snapshot, mutation, changed = self._unit_of_work("order_cancel", _cancel)
            if not changed:
                logger.info(
                    "order_cancel_noop",
                    extra={"order_number": snapshot.order_number},
                )
                return snapshot

            logger.info(
                "order_cancelled",
                extra={
                    "order_number": snapshot.order_number,
                    "restored": mutation.entry.quantity_change if mutation else 0,
                },
            )
        self._publish_crossing(mutation)
        self._publish_order_event(
            snapshot,
            NotificationType.ORDER_CANCELLED,
            title="Order Cancelled",
            message=f"Order {snapshot.order_number} was cancelled.",
            severity=Severity.WARNING,
        )
        return snapshot

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def record_payment(
        self,
        organization_id: str,
        order_id: UUID,
        amount: Decimal,
    ) -> OrderSnapshot:
        """
        Apply a payment to an order and to its customer's balance.

        Raises:
            ValueError: non-positive amount, or the order is cancelled.
        """
        def _pay() -> OrderSnapshot:
            order = self._load(organization_id, order_id)
            if order.is_cancelled:
                raise ValueError(f"Cannot record a payment on cancelled order {order_id}")
            applied, paid, outstanding = apply_payment(
                order.amount, order.paid_amount, amount,
            )
            order.paid_amount = paid
            order.outstanding_amount = outstanding
            order.payment_status = payment_status_for(order.amount, paid).value
            self._session.flush()

            if order.customer_id is not None and applied > 0:
                self._customers.apply_payment(
                    organization_id, order.customer_id, applied,
                )
            return order.to_dto()

        with LogContext.bind(organization_id=organization_id, order_id=order_id):
            snapshot = self._unit_of_work("order_record_payment", _pay)
            logger.info(
                "order_payment_recorded",
                extra={
                    "order_number": snapshot.order_number,
                    "amount": amount,
                    "payment_status": snapshot.payment_status.value,
                },
            )
        return snapshot
