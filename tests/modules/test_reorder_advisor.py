"""
Tests for ReorderAdvisor against real ledger history.
"""

from decimal import Decimal

import pytest

from ops_modules.inventory.advisor import ReorderAdvisor
from ops_modules.inventory.config import InventoryConfig
from ops_modules.inventory.models import ReorderUrgency


@pytest.fixture
def advisor(session, deterministic_clock) -> ReorderAdvisor:
    return ReorderAdvisor(session, clock=deterministic_clock)


class TestUsageFromHistory:

    def test_new_sku_uses_cold_start(self, advisor, make_item):
        item = make_item("SKU-NEW", quantity=140)
        # 140 * 0.1 / 7
        assert advisor.estimate_daily_usage(item) == 2

    def test_usage_from_sale_entries(
        self, advisor, stock_ledger, org_id, make_item, deterministic_clock,
    ):
        make_item("SKU-1", quantity=100)
        stock_ledger.deduct(org_id, "SKU-1", 10)
        stock_ledger.deduct(org_id, "SKU-1", 6)
        deterministic_clock.advance_days(1)
        stock_ledger.deduct(org_id, "SKU-1", 4)

        item = stock_ledger.get_item(org_id, "SKU-1")

        # 20 units over 3 sale entries = 6.67 -> 7
        assert advisor.estimate_daily_usage(item) == 7

    def test_same_day_sales_do_not_inflate_urgency(
        self, advisor, stock_ledger, org_id, make_item,
    ):
        make_item("SKU-1", quantity=80, threshold=5)
        for _ in range(3):
            stock_ledger.deduct(org_id, "SKU-1", 10)

        suggestion = advisor.suggest(stock_ledger.get_item(org_id, "SKU-1"))

        # 30 units over 3 sales: 10 a day, 50 left is more than two days
        assert suggestion.daily_usage == 10
        assert suggestion.urgency == ReorderUrgency.LOW

    def test_old_sales_fall_back_to_stale_usage(
        self, advisor, stock_ledger, org_id, make_item, deterministic_clock,
    ):
        make_item("SKU-1", quantity=100)
        stock_ledger.deduct(org_id, "SKU-1", 30)
        deterministic_clock.advance_days(60)

        item = stock_ledger.get_item(org_id, "SKU-1")

        assert advisor.estimate_daily_usage(item) == 5


class TestSuggest:

    def test_suggestion_fields(self, advisor, stock_ledger, org_id, make_item):
        make_item("SKU-1", quantity=30, threshold=25, unit_cost=Decimal("2.50"))
        stock_ledger.deduct(org_id, "SKU-1", 8)

        suggestion = advisor.suggest(stock_ledger.get_item(org_id, "SKU-1"))

        assert suggestion.current_stock == 22
        assert suggestion.daily_usage == 8
        assert suggestion.reorder_point == 8 * 7 + 8 * 3
        assert suggestion.suggested_quantity == 8 * (7 + 14)
        assert suggestion.urgency == ReorderUrgency.MEDIUM
        assert suggestion.estimated_cost == Decimal("2.50") * 168
        assert suggestion.lead_time_days == 7

    def test_item_overrides_win(self, advisor, stock_ledger, org_id, make_item):
        make_item(
            "SKU-1",
            quantity=30,
            reorder_point=12,
            reorder_quantity=40,
            lead_time_days=2,
            supplier_name="Acme Supply",
        )

        suggestion = advisor.suggest(stock_ledger.get_item(org_id, "SKU-1"))

        assert suggestion.reorder_point == 12
        assert suggestion.suggested_quantity == 40
        assert suggestion.lead_time_days == 2
        assert suggestion.supplier_name == "Acme Supply"

    def test_custom_config_changes_derived_values(
        self, session, deterministic_clock, stock_ledger, org_id, make_item,
    ):
        advisor = ReorderAdvisor(
            session,
            config=InventoryConfig(default_lead_time_days=10, default_safety_stock_days=0),
            clock=deterministic_clock,
        )
        make_item("SKU-1", quantity=50)
        stock_ledger.deduct(org_id, "SKU-1", 5)

        suggestion = advisor.suggest(stock_ledger.get_item(org_id, "SKU-1"))

        assert suggestion.reorder_point == 50
        assert suggestion.suggested_quantity == 5 * (10 + 14)


class TestSuggestionsForOrganization:

    def test_ranked_and_filtered(self, advisor, stock_ledger, org_id, make_item):
        make_item("SKU-OUT", quantity=0)
        make_item("SKU-HIGH", quantity=20)
        stock_ledger.deduct(org_id, "SKU-HIGH", 10)  # 10 left, usage 10
        make_item("SKU-FINE", quantity=1000)  # cold start usage 15, plenty left

        suggestions = advisor.suggestions_for_organization(org_id)

        assert [s.sku for s in suggestions] == ["SKU-OUT", "SKU-HIGH"]
        assert suggestions[0].urgency == ReorderUrgency.CRITICAL
        assert suggestions[1].urgency == ReorderUrgency.HIGH

    def test_other_organization_excluded(self, advisor, stock_ledger, make_item):
        make_item("SKU-OUT", quantity=0)
        assert advisor.suggestions_for_organization("org-other") == ()


class TestConfigValidation:

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"default_lead_time_days": -1},
            {"usage_window_days": 0},
            {"cold_start_fraction": Decimal("0")},
            {"cold_start_fraction": Decimal("1.5")},
            {"cold_start_period_days": 0},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            InventoryConfig(**kwargs)

    def test_from_dict_coerces_fraction(self):
        config = InventoryConfig.from_dict({"cold_start_fraction": 0.2, "stale_daily_usage": 3})
        assert config.cold_start_fraction == Decimal("0.2")
        assert config.stale_daily_usage == 3
