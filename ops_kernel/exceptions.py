"""
Typed exception hierarchy for the consistency engine.

===============================================================================
TYPED EXCEPTIONS
===============================================================================

Callers catch by type and read structured attributes, never by parsing
messages:

    try:
        ledger.deduct(organization_id, sku, 8, cause_order_id=order_id)
    except InsufficientStockError as e:
        reject(code=e.code, sku=e.sku, available=e.available)

Every class carries a ``code`` class attribute (machine-readable, API-safe)
and stores its context as instance attributes so it survives logging and
serialization.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    OpsEngineError (base)
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- InvalidQuantityError
    |   +-- ItemNotFoundError
    |   +-- DuplicateItemError
    |
    +-- LedgerIntegrityError
    |   +-- LedgerDivergenceError
    |   +-- HistoryChainBrokenError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- OrderError
    |   +-- OrderNotFoundError
    |   +-- InvalidOrderTransitionError
    |
    +-- CustomerError
    |   +-- CustomerNotFoundError
    |   +-- LinkAmbiguousError
    |   +-- LinkNotFoundError
    |
    +-- BatchError
    |   +-- PartialBatchFailureError
    |   +-- ReconciliationCancelledError
    |   +-- TaskNotRegisteredError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                      | When Raised
--------------|---------------------------|-----------------------------------------
Stock         | INSUFFICIENT_STOCK        | Deduction exceeds quantity on hand
              | INVALID_QUANTITY          | Negative target or non-positive delta
              | ITEM_NOT_FOUND            | SKU unknown within the organization
              | DUPLICATE_ITEM            | SKU already exists in the organization
--------------|---------------------------|-----------------------------------------
Ledger        | LEDGER_DIVERGENCE         | Cached quantity differs from history
              | HISTORY_CHAIN_BROKEN      | History hash chain validation failed
--------------|---------------------------|-----------------------------------------
Concurrency   | CONCURRENT_MODIFICATION   | Optimistic write conflict, retries spent
--------------|---------------------------|-----------------------------------------
Immutability  | IMMUTABILITY_VIOLATION    | UPDATE/DELETE of a history entry
--------------|---------------------------|-----------------------------------------
Order         | ORDER_NOT_FOUND           | Order unknown within the organization
              | INVALID_ORDER_TRANSITION  | Status change not in the state machine
--------------|---------------------------|-----------------------------------------
Customer      | CUSTOMER_NOT_FOUND        | Customer unknown within the organization
              | LINK_AMBIGUOUS            | Several customers match an orphan order
              | LINK_NOT_FOUND            | No customer matches an orphan order
--------------|---------------------------|-----------------------------------------
Batch         | PARTIAL_BATCH_FAILURE     | One item of a batch failed
              | RECONCILIATION_CANCELLED  | Cancellation token observed
              | TASK_NOT_REGISTERED       | Unknown batch task type
--------------|---------------------------|-----------------------------------------
Config        | CONFIGURATION_ERROR       | Settings file or value rejected

===============================================================================
HANDLING PATTERNS
===============================================================================

1. INSUFFICIENT STOCK is a hard reject of the triggering order creation.
   The attributes carry the current stock level for the user-facing message.

2. CONCURRENT MODIFICATION is transient. Services retry with a fresh read up
   to the configured attempt count before raising it.

3. LEDGER INTEGRITY errors are bugs or tampering. Halt and investigate.

4. LINK and PARTIAL BATCH errors are counted by the reconciliation job and
   never abort the batch.

===============================================================================
"""


class OpsEngineError(Exception):
    """
    Base exception for all engine errors.

    Every subclass defines a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "OPS_ENGINE_ERROR"


# Stock-related exceptions


class StockError(OpsEngineError):
    """Base exception for stock ledger errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Requested deduction exceeds the quantity on hand."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        sku: str,
        requested: int,
        available: int,
        product_name: str | None = None,
    ):
        self.sku = sku
        self.requested = requested
        self.available = available
        self.product_name = product_name
        super().__init__(
            f"Insufficient stock for {sku}: requested {requested}, "
            f"available {available}"
        )


class InvalidQuantityError(StockError):
    """Quantity argument is negative or otherwise unusable."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, sku: str, quantity: int, reason: str):
        self.sku = sku
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity} for {sku}: {reason}")


class ItemNotFoundError(StockError):
    """No inventory item with this SKU exists in the organization."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, organization_id: str, sku: str):
        self.organization_id = organization_id
        self.sku = sku
        super().__init__(f"Inventory item {sku} not found in organization {organization_id}")


class DuplicateItemError(StockError):
    """An inventory item with this SKU already exists in the organization."""

    code: str = "DUPLICATE_ITEM"

    def __init__(self, organization_id: str, sku: str):
        self.organization_id = organization_id
        self.sku = sku
        super().__init__(f"Inventory item {sku} already exists in organization {organization_id}")


# Ledger integrity exceptions


class LedgerIntegrityError(OpsEngineError):
    """Base exception for history / cached-quantity integrity failures."""

    code: str = "LEDGER_INTEGRITY_ERROR"


class LedgerDivergenceError(LedgerIntegrityError):
    """Cached quantity on hand does not match the history it is derived from."""

    code: str = "LEDGER_DIVERGENCE"

    def __init__(self, sku: str, cached_quantity: int, history_quantity: int, reason: str = ""):
        self.sku = sku
        self.cached_quantity = cached_quantity
        self.history_quantity = history_quantity
        self.reason = reason
        detail = f" ({reason})" if reason else ""
        super().__init__(
            f"Ledger divergence on {sku}: cached {cached_quantity}, "
            f"history {history_quantity}{detail}"
        )


class HistoryChainBrokenError(LedgerIntegrityError):
    """Inventory history hash chain validation failed."""

    code: str = "HISTORY_CHAIN_BROKEN"

    def __init__(self, sku: str, sequence: int, expected_hash: str, actual_hash: str):
        self.sku = sku
        self.sequence = sequence
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"History chain broken for {sku} at entry {sequence}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Concurrency-related exceptions


class ConcurrencyError(OpsEngineError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """Optimistic write conflict: the row changed since it was read."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str, attempts: int = 1):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.attempts = attempts
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id} "
            f"after {attempts} attempt(s)"
        )


# Immutability-related exceptions


class ImmutabilityError(OpsEngineError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Order-related exceptions


class OrderError(OpsEngineError):
    """Base exception for order lifecycle errors."""

    code: str = "ORDER_ERROR"


class OrderNotFoundError(OrderError):
    """No order with this id exists in the organization."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, organization_id: str, order_id: str):
        self.organization_id = organization_id
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found in organization {organization_id}")


class InvalidOrderTransitionError(OrderError):
    """Requested status change is not allowed by the order state machine."""

    code: str = "INVALID_ORDER_TRANSITION"

    def __init__(self, order_id: str, from_status: str, to_status: str):
        self.order_id = order_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Order {order_id} cannot move from {from_status} to {to_status}"
        )


# Customer-related exceptions


class CustomerError(OpsEngineError):
    """Base exception for customer ledger errors."""

    code: str = "CUSTOMER_ERROR"


class CustomerNotFoundError(CustomerError):
    """No customer with this id exists in the organization."""

    code: str = "CUSTOMER_NOT_FOUND"

    def __init__(self, organization_id: str, customer_id: str):
        self.organization_id = organization_id
        self.customer_id = customer_id
        super().__init__(f"Customer {customer_id} not found in organization {organization_id}")


class LinkAmbiguousError(CustomerError):
    """Several customers match an orphan order."""

    code: str = "LINK_AMBIGUOUS"

    def __init__(self, order_id: str, matched_on: str, candidate_ids: tuple[str, ...]):
        self.order_id = order_id
        self.matched_on = matched_on
        self.candidate_ids = candidate_ids
        super().__init__(
            f"Order {order_id} matches {len(candidate_ids)} customers by {matched_on}"
        )


class LinkNotFoundError(CustomerError):
    """No customer matches an orphan order."""

    code: str = "LINK_NOT_FOUND"

    def __init__(self, order_id: str, customer_name: str | None, customer_phone: str | None):
        self.order_id = order_id
        self.customer_name = customer_name
        self.customer_phone = customer_phone
        super().__init__(f"No customer matches order {order_id}")


# Batch-related exceptions


class BatchError(OpsEngineError):
    """Base exception for batch processing errors."""

    code: str = "BATCH_ERROR"


class PartialBatchFailureError(BatchError):
    """A single batch item failed; the batch continues."""

    code: str = "PARTIAL_BATCH_FAILURE"

    def __init__(self, task_type: str, item_key: str, reason: str):
        self.task_type = task_type
        self.item_key = item_key
        self.reason = reason
        super().__init__(f"{task_type} item {item_key} failed: {reason}")


class ReconciliationCancelledError(BatchError):
    """Cooperative cancellation was requested during a batch run."""

    code: str = "RECONCILIATION_CANCELLED"

    def __init__(self, organization_id: str, phase: str, processed: int):
        self.organization_id = organization_id
        self.phase = phase
        self.processed = processed
        super().__init__(
            f"Reconciliation for {organization_id} cancelled during {phase} "
            f"after {processed} item(s)"
        )


class TaskNotRegisteredError(BatchError):
    """No batch task is registered for the requested type."""

    code: str = "TASK_NOT_REGISTERED"

    def __init__(self, task_type: str, available: tuple[str, ...]):
        self.task_type = task_type
        self.available = available
        super().__init__(
            f"No batch task registered for '{task_type}'. Available: {list(available)}"
        )


# Configuration exceptions


class ConfigurationError(OpsEngineError):
    """Settings file or value rejected."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}: {reason}")
