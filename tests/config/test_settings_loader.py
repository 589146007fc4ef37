"""
Tests for ops_config: YAML loading, parsing, validation and the bridges
into module-level config objects.
"""

from decimal import Decimal
from pathlib import Path

import pytest

from ops_config import DEFAULT_SETTINGS_PATH, EngineSettings, load_settings
from ops_config.bridges import (
    build_customer_policy,
    build_inventory_config,
    build_order_config,
    validate_settings,
)
from ops_config.loader import compute_checksum, parse_settings
from ops_config.schema import ReconciliationSettings
from ops_kernel.domain.customers import CancelledOrderPolicy, DemotionPolicy
from ops_kernel.exceptions import ConfigurationError


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(text)
    return path


class TestLoadSettings:

    def test_bundled_defaults(self):
        settings = load_settings()

        assert settings.source == str(DEFAULT_SETTINGS_PATH)
        assert len(settings.checksum) == 64
        assert settings.inventory.default_lead_time_days == 7
        assert settings.inventory.cold_start_fraction == Decimal("0.1")
        assert settings.customers.vip_threshold == Decimal("50000")
        assert settings.orders.max_retry_attempts == 5
        assert settings.reconciliation.max_workers == 1

    def test_bundled_file_matches_schema_defaults(self):
        loaded = load_settings()
        defaults = EngineSettings()

        for section in ("database", "inventory", "customers", "orders", "reconciliation"):
            assert getattr(loaded, section) == getattr(defaults, section)

    def test_empty_file_means_all_defaults(self, tmp_path):
        settings = load_settings(_write(tmp_path, ""))
        assert settings.inventory == EngineSettings().inventory

    def test_partial_override(self, tmp_path):
        path = _write(tmp_path, (
            "inventory:\n"
            "  default_lead_time_days: 10\n"
            "  cold_start_fraction: 0.25\n"
            "customers:\n"
            "  vip_threshold: '25000'\n"
            "  cancelled_order_policy: exclude_cancelled\n"
        ))

        settings = load_settings(path)

        assert settings.inventory.default_lead_time_days == 10
        assert settings.inventory.default_safety_stock_days == 3
        assert settings.inventory.cold_start_fraction == Decimal("0.25")
        assert settings.customers.vip_threshold == Decimal("25000")
        assert settings.customers.cancelled_order_policy == "exclude_cancelled"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(_write(tmp_path, "inventory: [unclosed\n"))
        assert "invalid YAML" in exc_info.value.reason

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_settings(_write(tmp_path, "- one\n- two\n"))


class TestParseSettings:

    def test_unknown_section_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_settings({"ledger": {}})
        assert exc_info.value.key == "settings"

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_settings({"inventory": {"lead_time": 3}})
        assert exc_info.value.key == "inventory"
        assert "lead_time" in exc_info.value.reason

    @pytest.mark.parametrize(
        "data, key",
        [
            ({"database": {"pool_size": "many"}}, "database.pool_size"),
            ({"orders": {"max_retry_attempts": True}}, "orders.max_retry_attempts"),
            ({"orders": {"publish_order_events": "yes"}}, "orders.publish_order_events"),
            ({"customers": {"vip_threshold": "lots"}}, "customers.vip_threshold"),
            ({"database": {"url": 42}}, "database.url"),
        ],
    )
    def test_bad_value_types(self, data, key):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_settings(data)
        assert exc_info.value.key == key

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigurationError):
            parse_settings({"orders": 5})

    def test_null_section_uses_defaults(self):
        settings = parse_settings({"orders": None})
        assert settings.orders.max_retry_attempts == 5

    def test_checksum_ignores_key_order(self):
        first = {"orders": {"max_retry_attempts": 3, "publish_order_events": False}}
        second = {"orders": {"publish_order_events": False, "max_retry_attempts": 3}}

        assert compute_checksum(first) == compute_checksum(second)
        assert compute_checksum(first) != compute_checksum({})

    def test_settings_are_frozen(self):
        settings = parse_settings({})
        with pytest.raises(AttributeError):
            settings.orders = None


class TestValidateSettings:

    @pytest.mark.parametrize(
        "data, key",
        [
            ({"inventory": {"cold_start_fraction": "2"}}, "inventory"),
            ({"inventory": {"usage_window_days": 0}}, "inventory"),
            ({"customers": {"demotion_policy": "sometimes"}}, "customers"),
            ({"customers": {"vip_threshold": "0"}}, "customers"),
            ({"orders": {"max_retry_attempts": 0}}, "orders"),
            ({"reconciliation": {"max_workers": 0}}, "reconciliation.max_workers"),
            ({"database": {"url": ""}}, "database.url"),
        ],
    )
    def test_rejected_values(self, data, key):
        settings = parse_settings(data)
        with pytest.raises(ConfigurationError) as exc_info:
            validate_settings(settings)
        assert exc_info.value.key == key

    def test_load_validates(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_settings(_write(tmp_path, "reconciliation:\n  max_workers: 0\n"))


class TestBridges:

    def test_inventory_config(self):
        settings = parse_settings({"inventory": {"stale_daily_usage": 2}})

        config = build_inventory_config(settings)

        assert config.stale_daily_usage == 2
        assert config.default_lead_time_days == 7

    def test_customer_policy(self):
        settings = parse_settings({"customers": {
            "vip_threshold": "1000",
            "cancelled_order_policy": "count_all_placed",
            "demotion_policy": "never",
        }})

        policy = build_customer_policy(settings)

        assert policy.vip_threshold == Decimal("1000")
        assert policy.cancelled_order_policy == CancelledOrderPolicy.COUNT_ALL_PLACED
        assert policy.demotion_policy == DemotionPolicy.NEVER

    def test_order_config(self):
        settings = parse_settings({"orders": {"publish_order_events": False}})
        assert build_order_config(settings).publish_order_events is False

    def test_reconciliation_defaults(self):
        assert parse_settings({}).reconciliation == ReconciliationSettings()
