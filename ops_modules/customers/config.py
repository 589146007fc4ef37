"""
Customer Configuration Schema.

Tier thresholds and the two counting policies shared by the incremental
customer ledger and the reconciliation fold.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from ops_kernel.domain.customers import (
    CancelledOrderPolicy,
    CustomerPolicy,
    DemotionPolicy,
)
from ops_kernel.logging_config import get_logger

logger = get_logger("modules.customers.config")


VALID_CANCELLED_ORDER_POLICIES = {p.value for p in CancelledOrderPolicy}
VALID_DEMOTION_POLICIES = {p.value for p in DemotionPolicy}


@dataclass
class CustomerConfig:
    """
    Configuration schema for the customers module.

        config = CustomerConfig(
            vip_threshold=Decimal("25000"),
            cancelled_order_policy="exclude_cancelled",
        )
    """

    vip_threshold: Decimal = Decimal("50000")
    loyalty_points_rate: Decimal = Decimal("100")  # currency units per point

    # See CancelledOrderPolicy / DemotionPolicy
    cancelled_order_policy: str = CancelledOrderPolicy.RETAIN_ON_CANCEL.value
    demotion_policy: str = DemotionPolicy.RECOMPUTE_ONLY.value

    def __post_init__(self):
        if self.vip_threshold <= 0:
            raise ValueError("vip_threshold must be positive")
        if self.loyalty_points_rate <= 0:
            raise ValueError("loyalty_points_rate must be positive")
        if self.cancelled_order_policy not in VALID_CANCELLED_ORDER_POLICIES:
            raise ValueError(
                f"cancelled_order_policy must be one of {VALID_CANCELLED_ORDER_POLICIES}, "
                f"got '{self.cancelled_order_policy}'"
            )
        if self.demotion_policy not in VALID_DEMOTION_POLICIES:
            raise ValueError(
                f"demotion_policy must be one of {VALID_DEMOTION_POLICIES}, "
                f"got '{self.demotion_policy}'"
            )

        logger.info(
            "customer_config_initialized",
            extra={
                "vip_threshold": self.vip_threshold,
                "loyalty_points_rate": self.loyalty_points_rate,
                "cancelled_order_policy": self.cancelled_order_policy,
                "demotion_policy": self.demotion_policy,
            },
        )

    def to_policy(self) -> CustomerPolicy:
        """The kernel-side policy object both aggregate paths consume."""
        return CustomerPolicy(
            vip_threshold=self.vip_threshold,
            loyalty_points_rate=self.loyalty_points_rate,
            cancelled_order_policy=CancelledOrderPolicy(self.cancelled_order_policy),
            demotion_policy=DemotionPolicy(self.demotion_policy),
        )

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("customer_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from a YAML file)."""
        logger.info(
            "customer_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        for key in ("vip_threshold", "loyalty_points_rate"):
            if key in data:
                data[key] = Decimal(str(data[key]))
        return cls(**data)
