"""
StockLedger -- the only writer of inventory quantities.

Responsibility:
    Owns one InventoryItem per SKU per organization.  Applies signed deltas
    by appending hash-chained history entries and moving the cached
    ``quantity_on_hand`` in the same flush.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the order fulfillment
    coordinator (inside its transaction, ``auto_commit=False``) and by
    operators and batch tasks (``auto_commit=True``).

Invariants enforced:
    - ``quantity_on_hand == sum(history.quantity_change)`` for every item.
      ``_append_entry`` is the single function that writes the cached
      quantity, and the before_flush guard in db/immutability.py rejects any
      flush where the quantity moved without a matching pending entry.
    - Stock never goes negative; a rejected deduction changes nothing.
    - History sequence numbers are contiguous per item; the
      ``(item_id, sequence)`` unique constraint and the item ``version_id``
      make a lost race fail instead of overwriting.

Failure modes:
    - InsufficientStockError: deduction larger than the stock on hand.
    - InvalidQuantityError: non-positive delta or negative target quantity.
    - ItemNotFoundError / DuplicateItemError: SKU lookup problems.
    - ConcurrentModificationError: optimistic retries exhausted
      (auto_commit mode) or a single conflict (caller-owned transaction).
    - LedgerDivergenceError / HistoryChainBrokenError from ``verify_item``.

Audit relevance:
    Every quantity change is explained by exactly one history row carrying
    its cause (order id or operator reason) and its actor.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from ops_kernel.domain.clock import Clock, SystemClock
from ops_kernel.domain.stock import (
    HistoryEntrySnapshot,
    HistoryEntryType,
    InventoryItemSnapshot,
    StockCheck,
    StockMutation,
    detect_crossing,
)
from ops_kernel.exceptions import (
    DuplicateItemError,
    HistoryChainBrokenError,
    InsufficientStockError,
    InvalidQuantityError,
    ItemNotFoundError,
    LedgerDivergenceError,
)
from ops_kernel.logging_config import get_logger
from ops_kernel.models.inventory import InventoryHistoryModel, InventoryItemModel
from ops_kernel.selectors.inventory_selector import InventorySelector
from ops_kernel.services.alert_publisher import AlertPublisher
from ops_kernel.services.base import BaseService
from ops_kernel.services.retry import DEFAULT_MAX_ATTEMPTS, run_with_retry
from ops_kernel.utils.hashing import hash_history_entry, history_entry_payload

logger = get_logger("services.stock_ledger")

T = TypeVar("T")

DEFAULT_ADJUSTMENT_REASON = "Manual adjustment"
DEFAULT_ACTOR = "system"


def sale_reason(order_id: UUID) -> str:
    return f"Order #{order_id}"


def reversal_reason(order_id: UUID) -> str:
    return f"Order #{order_id} cancelled"


class StockLedger(BaseService[InventoryItemModel]):
    """
    Transactional stock mutation with an append-only audit trail.

    Contract:
        All operations take an explicit ``organization_id``; an item of
        another organization behaves exactly like a missing item.

    Guarantees:
        - Each mutation returns a StockMutation with the appended entry and
          the threshold crossing it caused, if any.
        - In auto_commit mode crossings are published after commit; in a
          caller-owned transaction the caller publishes them.

    Non-goals:
        - Deduplicating deductions by order id (the coordinator's
          ``inventory_deducted`` flag does that).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        alert_publisher: AlertPublisher | None = None,
        auto_commit: bool = True,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        super().__init__(session, auto_commit=auto_commit)
        self._clock = clock or SystemClock()
        self._alerts = alert_publisher
        self._max_attempts = max_attempts
        self._selector = InventorySelector(session)

    # -------------------------------------------------------------------------
    # Transaction plumbing
    # -------------------------------------------------------------------------

    def _run(self, operation_name: str, operation: Callable[[], T]) -> T:
        if not self.auto_commit:
            return operation()
        return run_with_retry(
            self.session,
            operation,
            operation_name=operation_name,
            max_attempts=self._max_attempts,
        )

    def _after_commit(self, mutation: StockMutation) -> None:
        if self.auto_commit and self._alerts is not None:
            self._alerts.publish_mutation(mutation)

    def _load_for_update(self, organization_id: str, sku: str) -> InventoryItemModel:
        item = self.session.execute(
            select(InventoryItemModel)
            .where(
                InventoryItemModel.organization_id == organization_id,
                InventoryItemModel.sku == sku,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(organization_id, sku)
        return item

    @staticmethod
    def _require_positive(sku: str, quantity: int) -> None:
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise InvalidQuantityError(sku, quantity, "quantity must be a positive integer")

    # -------------------------------------------------------------------------
    # Single mutation point
    # -------------------------------------------------------------------------

    def _append_entry(
        self,
        item: InventoryItemModel,
        entry_type: HistoryEntryType,
        quantity_change: int,
        order_id: UUID | None,
        reason: str,
        performed_by: str,
    ) -> StockMutation:
        """
        Append one history entry and move the cached quantity with it.

        This is the only code that assigns ``quantity_on_hand``.
        """
        previous = item.quantity_on_hand
        new_quantity = previous + quantity_change
        if new_quantity < 0:
            raise InvalidQuantityError(
                item.sku, new_quantity, "quantity on hand cannot become negative",
            )

        sequence = item.last_sequence + 1
        occurred_at = self._clock.now_utc()
        payload = history_entry_payload(
            item_id=item.id,
            sequence=sequence,
            entry_type=entry_type.value,
            quantity_change=quantity_change,
            previous_quantity=previous,
            new_quantity=new_quantity,
            order_id=order_id,
            reason=reason,
            occurred_at=occurred_at,
        )
        entry_hash = hash_history_entry(payload, item.last_entry_hash)

        entry = InventoryHistoryModel(
            id=uuid4(),
            item=item,
            item_id=item.id,
            organization_id=item.organization_id,
            sequence=sequence,
            entry_type=entry_type.value,
            quantity_change=quantity_change,
            previous_quantity=previous,
            new_quantity=new_quantity,
            order_id=order_id,
            reason=reason,
            performed_by=performed_by,
            occurred_at=occurred_at,
            prev_hash=item.last_entry_hash,
            entry_hash=entry_hash,
        )
        self.session.add(entry)

        item.quantity_on_hand = new_quantity
        item.last_sequence = sequence
        item.last_entry_hash = entry_hash
        item.updated_by = performed_by

        self._flush("InventoryItem", item.sku, unique_conflicts=True)

        crossing = detect_crossing(previous, new_quantity, item.low_stock_threshold)
        logger.info(
            "stock_history_appended",
            extra={
                "sku": item.sku,
                "entry_type": entry_type.value,
                "sequence": sequence,
                "quantity_change": quantity_change,
                "new_quantity": new_quantity,
                "crossing": crossing.value if crossing else None,
            },
        )
        return StockMutation(item=item.to_dto(), entry=entry.to_dto(), crossing=crossing)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create_item(
        self,
        organization_id: str,
        sku: str,
        product_name: str,
        initial_quantity: int = 0,
        low_stock_threshold: int = 0,
        unit_cost: Decimal = Decimal("0"),
        *,
        reorder_point: int | None = None,
        reorder_quantity: int | None = None,
        lead_time_days: int | None = None,
        safety_stock_days: int | None = None,
        supplier_name: str | None = None,
        performed_by: str = DEFAULT_ACTOR,
    ) -> InventoryItemSnapshot:
        """
        Register a SKU and append its ``initial`` entry.

        Raises:
            DuplicateItemError: SKU already exists in the organization.
            InvalidQuantityError: negative initial quantity or threshold.
        """
        if initial_quantity < 0:
            raise InvalidQuantityError(sku, initial_quantity, "initial quantity cannot be negative")
        if low_stock_threshold < 0:
            raise InvalidQuantityError(sku, low_stock_threshold, "threshold cannot be negative")

        def _create() -> StockMutation:
            existing = self.session.execute(
                select(InventoryItemModel.id).where(
                    InventoryItemModel.organization_id == organization_id,
                    InventoryItemModel.sku == sku,
                )
            ).first()
            if existing is not None:
                raise DuplicateItemError(organization_id, sku)

            item = InventoryItemModel(
                id=uuid4(),
                organization_id=organization_id,
                sku=sku,
                product_name=product_name,
                quantity_on_hand=0,
                low_stock_threshold=low_stock_threshold,
                unit_cost=unit_cost,
                reorder_point=reorder_point,
                reorder_quantity=reorder_quantity,
                lead_time_days=lead_time_days,
                safety_stock_days=safety_stock_days,
                supplier_name=supplier_name,
                last_sequence=0,
                last_entry_hash=None,
                created_by=performed_by,
            )
            self.session.add(item)
            return self._append_entry(
                item,
                HistoryEntryType.INITIAL,
                initial_quantity,
                order_id=None,
                reason="Initial stock",
                performed_by=performed_by,
            )

        mutation = self._run("stock_create_item", _create)
        logger.info(
            "stock_item_created",
            extra={"sku": sku, "initial_quantity": initial_quantity},
        )
        return mutation.item

    def deduct(
        self,
        organization_id: str,
        sku: str,
        quantity: int,
        cause_order_id: UUID | None = None,
        performed_by: str = DEFAULT_ACTOR,
    ) -> StockMutation:
        """
        Remove ``quantity`` units for a sale.

        Raises:
            InsufficientStockError: fewer than ``quantity`` units on hand.
            InvalidQuantityError: ``quantity`` is not a positive integer.
        """
        self._require_positive(sku, quantity)

        def _deduct() -> StockMutation:
            item = self._load_for_update(organization_id, sku)
            if item.quantity_on_hand < quantity:
                logger.warning(
                    "stock_insufficient",
                    extra={
                        "sku": sku,
                        "requested": quantity,
                        "available": item.quantity_on_hand,
                    },
                )
                raise InsufficientStockError(
                    sku=sku,
                    requested=quantity,
                    available=item.quantity_on_hand,
                    product_name=item.product_name,
                )
            return self._append_entry(
                item,
                HistoryEntryType.SALE,
                -quantity,
                order_id=cause_order_id,
                reason=sale_reason(cause_order_id) if cause_order_id else "Sale",
                performed_by=performed_by,
            )

        mutation = self._run("stock_deduct", _deduct)
        logger.info(
            "stock_deducted",
            extra={"sku": sku, "quantity": quantity, "new_quantity": mutation.new_quantity},
        )
        self._after_commit(mutation)
        return mutation

    def restore(
        self,
        organization_id: str,
        sku: str,
        quantity: int,
        cause_order_id: UUID | None = None,
        reason: str | None = None,
        performed_by: str = DEFAULT_ACTOR,
    ) -> StockMutation:
        """Return ``quantity`` units, typically for a cancelled order."""
        self._require_positive(sku, quantity)
        if reason is None:
            reason = reversal_reason(cause_order_id) if cause_order_id else "Reversal"

        def _restore() -> StockMutation:
            item = self._load_for_update(organization_id, sku)
            return self._append_entry(
                item,
                HistoryEntryType.REVERSAL,
                quantity,
                order_id=cause_order_id,
                reason=reason,
                performed_by=performed_by,
            )

        mutation = self._run("stock_restore", _restore)
        logger.info(
            "stock_restored",
            extra={"sku": sku, "quantity": quantity, "new_quantity": mutation.new_quantity},
        )
        self._after_commit(mutation)
        return mutation

    def set_quantity_with_history(
        self,
        organization_id: str,
        sku: str,
        new_quantity: int,
        reason: str | None = None,
        performed_by: str | None = None,
    ) -> StockMutation:
        """
        Set an absolute quantity (stock count, delivery) through the ledger.

        A positive delta is recorded as ``restock``, anything else as
        ``adjustment``.  A target equal to the stock on hand still appends a
        zero-change ``adjustment``: it records that a count confirmed the
        quantity, with its reason and actor.

        Raises:
            InvalidQuantityError: ``new_quantity`` is negative.
        """
        if new_quantity < 0:
            raise InvalidQuantityError(sku, new_quantity, "quantity cannot be negative")

        def _set() -> StockMutation:
            item = self._load_for_update(organization_id, sku)
            delta = new_quantity - item.quantity_on_hand
            entry_type = HistoryEntryType.RESTOCK if delta > 0 else HistoryEntryType.ADJUSTMENT
            return self._append_entry(
                item,
                entry_type,
                delta,
                order_id=None,
                reason=reason or DEFAULT_ADJUSTMENT_REASON,
                performed_by=performed_by or DEFAULT_ACTOR,
            )

        mutation = self._run("stock_set_quantity", _set)
        logger.info(
            "stock_quantity_set",
            extra={
                "sku": sku,
                "entry_type": mutation.entry.entry_type.value,
                "new_quantity": mutation.new_quantity,
            },
        )
        self._after_commit(mutation)
        return mutation

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def check_stock(
        self, organization_id: str, sku: str, required_quantity: int,
    ) -> StockCheck:
        item = self._selector.get_item(organization_id, sku)
        return StockCheck(
            sku=sku,
            product_name=item.product_name,
            current_stock=item.quantity_on_hand,
            required_quantity=required_quantity,
        )

    def get_item(self, organization_id: str, sku: str) -> InventoryItemSnapshot:
        return self._selector.get_item(organization_id, sku)

    def list_items(self, organization_id: str) -> tuple[InventoryItemSnapshot, ...]:
        return self._selector.list_items(organization_id)

    def history(
        self, organization_id: str, sku: str,
    ) -> tuple[HistoryEntrySnapshot, ...]:
        item = self._selector.get_item(organization_id, sku)
        return self._selector.history(organization_id, item.item_id)

    def outstanding_deduction(
        self, organization_id: str, sku: str, order_id: UUID,
    ) -> int:
        """Net units currently deducted for ``order_id``, re-derived from history."""
        item = self._selector.get_item(organization_id, sku)
        net = -sum(
            entry.quantity_change
            for entry in self._selector.history_for_order(organization_id, order_id)
            if entry.item_id == item.item_id
        )
        return max(0, net)

    def verify_item(self, organization_id: str, sku: str) -> InventoryItemSnapshot:
        """
        Re-derive an item from its history and compare with the cache.

        Checks witness continuity, the hash chain and the cached quantity,
        sequence and tail hash.

        Raises:
            HistoryChainBrokenError: an entry's hash or link does not match.
            LedgerDivergenceError: the cache or a witness disagrees with the
                history sum.
        """
        item_model = self._load_for_update(organization_id, sku)
        entries = self._selector.history(organization_id, item_model.id)

        running = 0
        prev_hash: str | None = None
        for expected_sequence, entry in enumerate(entries, start=1):
            if entry.sequence != expected_sequence:
                raise HistoryChainBrokenError(
                    sku, entry.sequence, str(expected_sequence), str(entry.sequence),
                )
            if entry.prev_hash != prev_hash:
                raise HistoryChainBrokenError(
                    sku, entry.sequence, str(prev_hash), str(entry.prev_hash),
                )
            payload = history_entry_payload(
                item_id=entry.item_id,
                sequence=entry.sequence,
                entry_type=entry.entry_type.value,
                quantity_change=entry.quantity_change,
                previous_quantity=entry.previous_quantity,
                new_quantity=entry.new_quantity,
                order_id=entry.order_id,
                reason=entry.reason,
                occurred_at=entry.occurred_at,
            )
            expected_hash = hash_history_entry(payload, prev_hash)
            if expected_hash != entry.entry_hash:
                logger.critical(
                    "stock_history_tampered",
                    extra={"sku": sku, "sequence": entry.sequence},
                )
                raise HistoryChainBrokenError(
                    sku, entry.sequence, expected_hash, entry.entry_hash,
                )
            if (
                entry.previous_quantity != running
                or entry.previous_quantity + entry.quantity_change != entry.new_quantity
            ):
                raise LedgerDivergenceError(
                    sku,
                    cached_quantity=entry.new_quantity,
                    history_quantity=running + entry.quantity_change,
                    reason=f"witness mismatch at sequence {entry.sequence}",
                )
            running += entry.quantity_change
            prev_hash = entry.entry_hash

        if (
            running != item_model.quantity_on_hand
            or len(entries) != item_model.last_sequence
            or prev_hash != item_model.last_entry_hash
        ):
            logger.critical(
                "stock_ledger_diverged",
                extra={
                    "sku": sku,
                    "cached_quantity": item_model.quantity_on_hand,
                    "history_quantity": running,
                },
            )
            raise LedgerDivergenceError(
                sku,
                cached_quantity=item_model.quantity_on_hand,
                history_quantity=running,
                reason="cached tail does not match history",
            )
        return item_model.to_dto()
