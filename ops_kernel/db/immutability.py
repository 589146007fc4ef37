"""
ORM-level enforcement of the inventory ledger rules.

===============================================================================
WHAT IS ENFORCED
===============================================================================

Entity                 | Rule                                  | Hook
-----------------------|---------------------------------------|-------------------
InventoryHistoryModel  | Never updated                         | before_update
InventoryHistoryModel  | Never deleted                         | before_delete
InventoryItemModel     | Never deleted                         | before_delete
InventoryItemModel     | quantity_on_hand only changes together| Session.before_flush
                       | with a pending history entry whose    |
                       | new_quantity and sequence match       |

The last rule is the flush-time guard behind the single mutation function in
StockLedger: any code path that sets the cached quantity without appending
history is rejected before SQL reaches the database.

    session.flush()
         |
         v
    [before_flush]   --> _check_quantity_backed_by_history() --> LedgerDivergenceError
         |
         v
    [before_update]  --> _check_history_immutability() ------> ImmutabilityViolationError
    [before_delete]  --> _check_history_delete() / _check_item_delete()
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
USAGE
===============================================================================

Called once at startup:

    from ops_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    # ... tamper with a row ...
    register_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from ops_kernel.exceptions import ImmutabilityViolationError, LedgerDivergenceError
from ops_kernel.logging_config import get_logger
from ops_kernel.models.inventory import InventoryHistoryModel, InventoryItemModel

logger = get_logger("db.immutability")


def _check_history_immutability(mapper, connection, target):
    """Prevent any update to an inventory history entry."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "InventoryHistory",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="InventoryHistory",
        entity_id=str(target.id),
        reason="Inventory history entries are immutable; append a correcting entry",
    )


def _check_history_delete(mapper, connection, target):
    """Prevent deletion of an inventory history entry."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "InventoryHistory",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="InventoryHistory",
        entity_id=str(target.id),
        reason="Inventory history entries cannot be deleted",
    )


def _check_item_delete(mapper, connection, target):
    """Prevent deletion of an item that owns history."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "InventoryItem",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="InventoryItem",
        entity_id=str(target.id),
        reason="Inventory items are referenced by history and cannot be deleted",
    )


def _pending_entry_for(session, item) -> InventoryHistoryModel | None:
    for obj in session.new:
        if (
            isinstance(obj, InventoryHistoryModel)
            and obj.item_id == item.id
            and obj.sequence == item.last_sequence
        ):
            return obj
    return None


def _check_quantity_backed_by_history(session, flush_context, instances):
    """
    Reject flushes where an item's cached quantity moved without history.

    Runs in SessionEvents.before_flush so the whole unit of work is visible:
    the item (new or dirty) and the history entry appended with it.
    """
    candidates = [
        obj for obj in list(session.new) + list(session.dirty)
        if isinstance(obj, InventoryItemModel)
    ]
    for item in candidates:
        state = inspect(item)
        if not state.pending:
            history = state.attrs.quantity_on_hand.history
            if not history.has_changes():
                continue
            previous = history.deleted[0] if history.deleted else item.quantity_on_hand
        else:
            previous = 0

        entry = _pending_entry_for(session, item)
        if (
            entry is None
            or entry.new_quantity != item.quantity_on_hand
            or entry.previous_quantity != previous
        ):
            logger.error(
                "ledger_divergence_blocked",
                extra={
                    "sku": item.sku,
                    "cached_quantity": item.quantity_on_hand,
                    "entry_new_quantity": entry.new_quantity if entry else None,
                },
            )
            raise LedgerDivergenceError(
                sku=item.sku,
                cached_quantity=item.quantity_on_hand,
                history_quantity=entry.new_quantity if entry else previous,
                reason="quantity_on_hand changed without a matching history entry",
            )


_LISTENERS = (
    (Session, "before_flush", _check_quantity_backed_by_history),
    (InventoryHistoryModel, "before_update", _check_history_immutability),
    (InventoryHistoryModel, "before_delete", _check_history_delete),
    (InventoryItemModel, "before_delete", _check_item_delete),
)


def register_immutability_listeners():
    """
    Register all ledger enforcement listeners (idempotent).
    """
    for target, event_name, listener_fn in _LISTENERS:
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)
    logger.debug("immutability_listeners_registered")


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if it was never registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove ledger enforcement listeners.

    WARNING: Only use this in tests that deliberately tamper with history to
    verify detection.
    """
    for target, event_name, listener_fn in _LISTENERS:
        _safe_remove_listener(target, event_name, listener_fn)
    logger.debug("immutability_listeners_unregistered")
