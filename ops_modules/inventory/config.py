"""
Inventory Configuration Schema.

Defaults for the reorder advisor.  Per-item columns on the inventory item
(``lead_time_days``, ``safety_stock_days``, ``reorder_point``,
``reorder_quantity``) override these values.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from ops_kernel.logging_config import get_logger

logger = get_logger("modules.inventory.config")


@dataclass
class InventoryConfig:
    """
    Configuration schema for the inventory module.

    Override at instantiation with organization-specific values:

        config = InventoryConfig(
            default_lead_time_days=10,
            stale_daily_usage=2,
        )
    """

    # Reorder point
    default_lead_time_days: int = 7
    default_safety_stock_days: int = 3

    # Order quantity covers lead time plus this many days
    eoq_horizon_days: int = 14

    # Usage estimation
    usage_window_days: int = 30
    stale_daily_usage: int = 5  # sold before, but not inside the window
    cold_start_fraction: Decimal = Decimal("0.1")  # of stock on hand ...
    cold_start_period_days: int = 7  # ... spread over this many days
    minimum_daily_usage: int = 1

    def __post_init__(self):
        if self.default_lead_time_days < 0:
            raise ValueError("default_lead_time_days cannot be negative")
        if self.default_safety_stock_days < 0:
            raise ValueError("default_safety_stock_days cannot be negative")
        if self.eoq_horizon_days < 0:
            raise ValueError("eoq_horizon_days cannot be negative")
        if self.usage_window_days <= 0:
            raise ValueError("usage_window_days must be positive")
        if self.stale_daily_usage < 0:
            raise ValueError("stale_daily_usage cannot be negative")
        if not Decimal("0") < self.cold_start_fraction <= Decimal("1"):
            raise ValueError(
                f"cold_start_fraction must be in (0, 1], got {self.cold_start_fraction}"
            )
        if self.cold_start_period_days <= 0:
            raise ValueError("cold_start_period_days must be positive")
        if self.minimum_daily_usage < 0:
            raise ValueError("minimum_daily_usage cannot be negative")

        logger.info(
            "inventory_config_initialized",
            extra={
                "default_lead_time_days": self.default_lead_time_days,
                "default_safety_stock_days": self.default_safety_stock_days,
                "eoq_horizon_days": self.eoq_horizon_days,
                "usage_window_days": self.usage_window_days,
                "stale_daily_usage": self.stale_daily_usage,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard defaults."""
        logger.info("inventory_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from a YAML file)."""
        logger.info(
            "inventory_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        if "cold_start_fraction" in data:
            data["cold_start_fraction"] = Decimal(str(data["cold_start_fraction"]))
        return cls(**data)
