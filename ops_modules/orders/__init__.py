"""
Orders Module (``ops_modules.orders``).

Responsibility
--------------
Order fulfillment: the order state machine, the coordinator that moves
stock and customer aggregates with each transition, and the shipment
gateway boundary.

Architecture
------------
Layer: **Modules**.  Imports from ``ops_kernel`` but never the reverse.

Invariants
----------
- Each coordinator method owns its transaction boundary (commit / rollback).
- ``delivered`` and ``cancelled`` are terminal.
"""

from ops_modules.orders.config import OrderConfig
from ops_modules.orders.gateway import LocalShipmentGateway, ShipmentGateway
from ops_modules.orders.models import OrderRequest, ShipmentReceipt
from ops_modules.orders.service import OrderFulfillmentCoordinator
from ops_modules.orders.workflows import (
    ALLOWED_TRANSITIONS,
    ORDER_WORKFLOW,
    validate_transition,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "LocalShipmentGateway",
    "ORDER_WORKFLOW",
    "OrderConfig",
    "OrderFulfillmentCoordinator",
    "OrderRequest",
    "ShipmentGateway",
    "ShipmentReceipt",
    "validate_transition",
]
