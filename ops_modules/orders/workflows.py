"""
Order Workflows.

State machine for order fulfillment.
"""

from dataclasses import dataclass

from ops_kernel.exceptions import InvalidOrderTransitionError
from ops_kernel.logging_config import get_logger
from ops_kernel.models.order import OrderStatus

logger = get_logger("modules.orders.workflows")


@dataclass(frozen=True)
class Transition:
    """A valid state transition; ``moves_stock`` transitions return deducted stock."""
    from_state: str
    to_state: str
    action: str
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()


# -----------------------------------------------------------------------------
# Fulfillment Workflow
# -----------------------------------------------------------------------------

_PENDING = OrderStatus.PENDING.value
_PROCESSING = OrderStatus.PROCESSING.value
_SHIPPED = OrderStatus.SHIPPED.value
_DELIVERED = OrderStatus.DELIVERED.value
_CANCELLED = OrderStatus.CANCELLED.value

ORDER_WORKFLOW = Workflow(
    name="order_fulfillment",
    description="Order fulfillment from entry to delivery",
    initial_state=_PENDING,
    states=(
        _PENDING,
        _PROCESSING,
        _SHIPPED,
        _DELIVERED,
        _CANCELLED,
    ),
    transitions=(
        Transition(_PENDING, _PROCESSING, action="mark_processing"),
        Transition(_PROCESSING, _SHIPPED, action="ship"),
        Transition(_SHIPPED, _DELIVERED, action="deliver"),
        Transition(_PENDING, _CANCELLED, action="cancel", moves_stock=True),
        Transition(_PROCESSING, _CANCELLED, action="cancel", moves_stock=True),
        Transition(_SHIPPED, _CANCELLED, action="cancel", moves_stock=True),
    ),
    terminal_states=(_DELIVERED, _CANCELLED),
)

logger.info(
    "order_fulfillment_workflow_registered",
    extra={
        "workflow_name": ORDER_WORKFLOW.name,
        "state_count": len(ORDER_WORKFLOW.states),
        "transition_count": len(ORDER_WORKFLOW.transitions),
        "initial_state": ORDER_WORKFLOW.initial_state,
    },
)


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    status: frozenset(
        OrderStatus(t.to_state)
        for t in ORDER_WORKFLOW.transitions
        if t.from_state == status.value
    )
    for status in OrderStatus
}


def is_terminal(status: OrderStatus) -> bool:
    return status.value in ORDER_WORKFLOW.terminal_states


def transition_for(
    order_id: str,
    from_status: OrderStatus,
    to_status: OrderStatus,
) -> Transition:
    """
    Return the workflow transition from ``from_status`` to ``to_status``.

    Raises:
        InvalidOrderTransitionError: if the workflow has no such transition.
    """
    for transition in ORDER_WORKFLOW.transitions:
        if (
            transition.from_state == from_status.value
            and transition.to_state == to_status.value
        ):
            return transition
    raise InvalidOrderTransitionError(order_id, from_status.value, to_status.value)


def validate_transition(
    order_id: str,
    from_status: OrderStatus,
    to_status: OrderStatus,
) -> None:
    transition_for(order_id, from_status, to_status)
