"""
Orders Configuration Schema.
"""

from dataclasses import dataclass
from typing import Self

from ops_kernel.logging_config import get_logger

logger = get_logger("modules.orders.config")


@dataclass
class OrderConfig:
    """Configuration schema for the order fulfillment coordinator."""

    # Attempts per unit of work before ConcurrentModificationError
    max_retry_attempts: int = 5

    # Publish order-created / order-cancelled / shipment-created notices
    publish_order_events: bool = True

    def __post_init__(self):
        if self.max_retry_attempts < 1:
            raise ValueError("max_retry_attempts must be at least 1")

        logger.info(
            "order_config_initialized",
            extra={
                "max_retry_attempts": self.max_retry_attempts,
                "publish_order_events": self.publish_order_events,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("order_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        logger.info(
            "order_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
