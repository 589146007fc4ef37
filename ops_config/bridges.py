"""
Settings -> Module Config Bridges.

Functions that convert ``EngineSettings`` sections into the module-level
config objects.  These live in ops_config (the producer) so that neither
ops_kernel nor ops_modules imports ops_config.

Usage:
    from ops_config import load_settings
    from ops_config.bridges import build_customer_policy, build_inventory_config

    settings = load_settings(path)
    policy = build_customer_policy(settings)
"""

from __future__ import annotations

from dataclasses import asdict

from ops_config.schema import EngineSettings
from ops_kernel.domain.customers import CustomerPolicy
from ops_kernel.exceptions import ConfigurationError
from ops_modules.customers.config import CustomerConfig
from ops_modules.inventory.config import InventoryConfig
from ops_modules.orders.config import OrderConfig


def build_inventory_config(settings: EngineSettings) -> InventoryConfig:
    try:
        return InventoryConfig.from_dict(asdict(settings.inventory))
    except ValueError as exc:
        raise ConfigurationError("inventory", str(exc)) from exc


def build_customer_config(settings: EngineSettings) -> CustomerConfig:
    try:
        return CustomerConfig.from_dict(asdict(settings.customers))
    except ValueError as exc:
        raise ConfigurationError("customers", str(exc)) from exc


def build_customer_policy(settings: EngineSettings) -> CustomerPolicy:
    """The policy object shared by CustomerLedger and the reconciliation fold."""
    return build_customer_config(settings).to_policy()


def build_order_config(settings: EngineSettings) -> OrderConfig:
    try:
        return OrderConfig.from_dict(asdict(settings.orders))
    except ValueError as exc:
        raise ConfigurationError("orders", str(exc)) from exc


def validate_settings(settings: EngineSettings) -> None:
    """Build every module config once so bad values fail at load time.

    Raises:
        ConfigurationError: naming the first section that failed.
    """
    build_inventory_config(settings)
    build_customer_config(settings)
    build_order_config(settings)
    if settings.reconciliation.max_workers < 1:
        raise ConfigurationError("reconciliation.max_workers", "must be at least 1")
    if not settings.database.url:
        raise ConfigurationError("database.url", "must not be empty")
