"""
Shipment gateway boundary.

The carrier integration is an external collaborator; the coordinator only
depends on the ``ShipmentGateway`` protocol.
"""

from typing import Protocol, runtime_checkable
from uuid import uuid4

from ops_kernel.logging_config import get_logger
from ops_kernel.models.order import OrderSnapshot
from ops_modules.orders.models import ShipmentReceipt

logger = get_logger("modules.orders.gateway")


@runtime_checkable
class ShipmentGateway(Protocol):
    """Requests a shipment for an order that was just marked shipped."""

    def create_shipment(self, order: OrderSnapshot) -> ShipmentReceipt: ...


class LocalShipmentGateway:
    """
    Gateway for deployments without a carrier integration.

    Issues a local shipment id and a ``TRK``-prefixed tracking number.
    """

    def __init__(self, tracking_prefix: str = "TRK", carrier: str | None = None):
        self._tracking_prefix = tracking_prefix
        self._carrier = carrier

    def create_shipment(self, order: OrderSnapshot) -> ShipmentReceipt:
        token = uuid4().hex.upper()
        receipt = ShipmentReceipt(
            shipment_id=f"SHP-{token[:12]}",
            tracking_number=f"{self._tracking_prefix}{token[12:24]}",
            carrier=self._carrier,
        )
        logger.info(
            "shipment_created",
            extra={
                "order_number": order.order_number,
                "shipment_id": receipt.shipment_id,
                "tracking_number": receipt.tracking_number,
            },
        )
        return receipt
