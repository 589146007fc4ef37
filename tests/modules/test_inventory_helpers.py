"""
Tests for the pure inventory calculations.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ops_kernel.domain.stock import HistoryEntrySnapshot, HistoryEntryType
from ops_modules.inventory.helpers import (
    calculate_order_quantity,
    calculate_reorder_point,
    classify_urgency,
    estimate_daily_usage,
    rank_suggestions,
)
from ops_modules.inventory.models import ReorderSuggestion, ReorderUrgency

AS_OF = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
ITEM_ID = uuid4()


def _entry(quantity_change: int, when: datetime, entry_type=HistoryEntryType.SALE) -> HistoryEntrySnapshot:
    return HistoryEntrySnapshot(
        entry_id=uuid4(),
        item_id=ITEM_ID,
        sequence=1,
        entry_type=entry_type,
        quantity_change=quantity_change,
        previous_quantity=100,
        new_quantity=100 + quantity_change,
        order_id=None,
        reason="Sale",
        performed_by="system",
        occurred_at=when,
        prev_hash=None,
        entry_hash="0" * 64,
    )


def _suggestion(sku: str, urgency: ReorderUrgency, stock: int) -> ReorderSuggestion:
    return ReorderSuggestion(
        item_id=uuid4(),
        organization_id="org",
        sku=sku,
        product_name=sku,
        current_stock=stock,
        low_stock_threshold=5,
        daily_usage=1,
        reorder_point=10,
        suggested_quantity=21,
        urgency=urgency,
        unit_cost=Decimal("2"),
        estimated_cost=Decimal("42"),
    )


class TestEstimateDailyUsage:

    def test_cold_start_uses_fraction_of_stock(self):
        # 100 * 0.1 / 7 = 1.43 -> 2
        assert estimate_daily_usage(100, [], AS_OF) == 2

    def test_cold_start_never_below_minimum(self):
        assert estimate_daily_usage(0, [], AS_OF) == 1

    def test_non_sale_entries_count_as_cold_start(self):
        history = [_entry(50, AS_OF, HistoryEntryType.RESTOCK)]
        assert estimate_daily_usage(70, history, AS_OF) == 1

    def test_recent_sales_divided_by_sale_entries(self):
        history = [
            _entry(-4, AS_OF - timedelta(days=1)),
            _entry(-3, AS_OF - timedelta(days=1, hours=2)),
            _entry(-3, AS_OF - timedelta(days=5)),
        ]
        # 10 units over 3 sale entries = 3.33 -> 4
        assert estimate_daily_usage(50, history, AS_OF) == 4

    def test_several_sales_on_one_day(self):
        same_day = AS_OF - timedelta(days=2)
        history = [
            _entry(-10, same_day),
            _entry(-10, same_day + timedelta(hours=1)),
            _entry(-10, same_day + timedelta(hours=2)),
        ]
        assert estimate_daily_usage(50, history, AS_OF) == 10

    def test_divisor_capped_at_window_length(self):
        history = [
            _entry(-1, AS_OF - timedelta(hours=i)) for i in range(40)
        ]
        # 40 units, 40 entries, divisor capped at 30 -> 1.33 -> 2
        assert estimate_daily_usage(50, history, AS_OF) == 2

    def test_fractional_usage_rounds_up(self):
        history = [
            _entry(-3, AS_OF - timedelta(days=1)),
            _entry(-4, AS_OF - timedelta(days=2)),
        ]
        assert estimate_daily_usage(50, history, AS_OF) == 4

    def test_sales_outside_window_are_stale(self):
        history = [_entry(-20, AS_OF - timedelta(days=45))]
        assert estimate_daily_usage(50, history, AS_OF) == 5

    def test_stale_value_is_configurable(self):
        history = [_entry(-20, AS_OF - timedelta(days=45))]
        assert estimate_daily_usage(50, history, AS_OF, stale_daily_usage=2) == 2

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValueError):
            estimate_daily_usage(-1, [], AS_OF)


class TestReorderFormulas:

    def test_reorder_point(self):
        assert calculate_reorder_point(5, 7, 3) == 50

    def test_reorder_point_zero_usage(self):
        assert calculate_reorder_point(0, 7, 3) == 0

    def test_order_quantity_covers_lead_time_and_horizon(self):
        assert calculate_order_quantity(5, 7) == 105
        assert calculate_order_quantity(5, 7, horizon_days=0) == 35

    @pytest.mark.parametrize("args", [(-1, 7, 3), (5, -1, 3), (5, 7, -1)])
    def test_negative_inputs_rejected(self, args):
        with pytest.raises(ValueError):
            calculate_reorder_point(*args)
        with pytest.raises(ValueError):
            calculate_order_quantity(*args)


class TestClassifyUrgency:

    @pytest.mark.parametrize(
        "quantity, usage, threshold, expected",
        [
            (0, 5, 20, ReorderUrgency.CRITICAL),
            (0, 0, 0, ReorderUrgency.CRITICAL),
            (10, 5, 20, ReorderUrgency.HIGH),
            (11, 5, 20, ReorderUrgency.MEDIUM),
            (20, 5, 20, ReorderUrgency.MEDIUM),
            (21, 5, 20, ReorderUrgency.LOW),
        ],
    )
    def test_bands(self, quantity, usage, threshold, expected):
        assert classify_urgency(quantity, usage, threshold) == expected


class TestRankSuggestions:

    def test_low_dropped_and_sorted_by_urgency_then_stock(self):
        ranked = rank_suggestions([
            _suggestion("A", ReorderUrgency.MEDIUM, 4),
            _suggestion("B", ReorderUrgency.LOW, 50),
            _suggestion("C", ReorderUrgency.HIGH, 3),
            _suggestion("D", ReorderUrgency.CRITICAL, 0),
            _suggestion("E", ReorderUrgency.HIGH, 1),
        ])

        assert [s.sku for s in ranked] == ["D", "E", "C", "A"]

    def test_empty(self):
        assert rank_suggestions([]) == ()

    def test_days_of_stock(self):
        assert _suggestion("A", ReorderUrgency.HIGH, 7).days_of_stock == 7
