"""
EngineSettings schema.

The typed, frozen form of a settings file.  YAML is parsed into these types
by the loader; ``ops_config.bridges`` turns them into the module-level
config objects the services consume.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///ops_engine.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class InventorySettings:
    """Reorder defaults; items may override lead time and safety stock."""

    default_lead_time_days: int = 7
    default_safety_stock_days: int = 3
    eoq_horizon_days: int = 14
    usage_window_days: int = 30
    stale_daily_usage: int = 5
    cold_start_fraction: Decimal = Decimal("0.1")
    cold_start_period_days: int = 7
    minimum_daily_usage: int = 1


@dataclass(frozen=True)
class CustomerSettings:
    vip_threshold: Decimal = Decimal("50000")
    loyalty_points_rate: Decimal = Decimal("100")
    cancelled_order_policy: str = "retain_on_cancel"
    demotion_policy: str = "recompute_only"


@dataclass(frozen=True)
class OrderSettings:
    max_retry_attempts: int = 5
    publish_order_events: bool = True


@dataclass(frozen=True)
class ReconciliationSettings:
    max_workers: int = 1
    strict: bool = False


@dataclass(frozen=True)
class EngineSettings:
    """Root settings object.

    ``checksum`` identifies the source document; two files with the same
    content produce the same checksum.
    """

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    inventory: InventorySettings = field(default_factory=InventorySettings)
    customers: CustomerSettings = field(default_factory=CustomerSettings)
    orders: OrderSettings = field(default_factory=OrderSettings)
    reconciliation: ReconciliationSettings = field(default_factory=ReconciliationSettings)
    source: str | None = None
    checksum: str = ""
