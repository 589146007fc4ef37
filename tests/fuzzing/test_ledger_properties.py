"""
Property-based tests for the stock ledger and the pure inventory/customer
functions.

Boundaries fuzzed here:
- Random deduct / restore / set sequences against a live ledger
- Stock level crossings for every (before, after, threshold) triple
- Reorder urgency bands
- Customer aggregate fold under reordering of orders
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from ops_kernel.domain.customers import CustomerPolicy
from ops_kernel.domain.stock import StockLevel, classify_stock_level, detect_crossing
from ops_kernel.exceptions import InsufficientStockError
from ops_kernel.models.order import OrderSnapshot, OrderStatus, PaymentStatus
from ops_kernel.services.stock_ledger import StockLedger
from ops_modules.customers.helpers import fold_customer_orders
from ops_modules.inventory.helpers import classify_urgency
from ops_modules.inventory.models import ReorderUrgency

_LEDGER_SETTINGS = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)

operations = st.lists(
    st.one_of(
        st.tuples(st.just("deduct"), st.integers(min_value=1, max_value=30)),
        st.tuples(st.just("restore"), st.integers(min_value=1, max_value=30)),
        st.tuples(st.just("set"), st.integers(min_value=0, max_value=60)),
    ),
    min_size=1,
    max_size=12,
)


class TestLedgerSequences:

    @given(initial=st.integers(min_value=0, max_value=50), ops=operations)
    @_LEDGER_SETTINGS
    def test_quantity_always_equals_history_sum(
        self, session, deterministic_clock, org_id, initial, ops,
    ):
        ledger = StockLedger(session, clock=deterministic_clock)
        sku = f"FUZZ-{uuid4().hex[:10]}"
        ledger.create_item(org_id, sku, "Fuzzed", initial_quantity=initial)
        expected = initial
        entries = 1

        for op, amount in ops:
            if op == "deduct":
                if amount > expected:
                    with pytest.raises(InsufficientStockError):
                        ledger.deduct(org_id, sku, amount)
                    continue
                ledger.deduct(org_id, sku, amount)
                expected -= amount
            elif op == "restore":
                ledger.restore(org_id, sku, amount)
                expected += amount
            else:
                ledger.set_quantity_with_history(org_id, sku, amount)
                expected = amount
            entries += 1

        item = ledger.verify_item(org_id, sku)
        history = ledger.history(org_id, sku)
        assert item.quantity_on_hand == expected
        assert item.quantity_on_hand >= 0
        assert len(history) == entries
        assert sum(e.quantity_change for e in history) == expected
        for before, after in zip(history, history[1:]):
            assert after.previous_quantity == before.new_quantity
            assert after.prev_hash == before.entry_hash


class TestStockLevelProperties:

    @given(
        before=st.integers(min_value=0, max_value=100),
        after=st.integers(min_value=0, max_value=100),
        threshold=st.integers(min_value=0, max_value=50),
    )
    def test_crossing_only_when_level_worsens(self, before, after, threshold):
        crossing = detect_crossing(before, after, threshold)
        level_after = classify_stock_level(after, threshold)

        if crossing is not None:
            assert crossing == level_after
            assert after < before
            assert classify_stock_level(before, threshold) != level_after
        if after >= before:
            assert crossing is None

    @given(
        quantity=st.integers(min_value=0, max_value=1000),
        threshold=st.integers(min_value=0, max_value=1000),
    )
    def test_zero_is_the_only_critical_level(self, quantity, threshold):
        level = classify_stock_level(quantity, threshold)
        assert (level == StockLevel.CRITICAL) == (quantity == 0)

    @given(
        quantity=st.integers(min_value=0, max_value=1000),
        usage=st.integers(min_value=1, max_value=100),
        threshold=st.integers(min_value=0, max_value=1000),
    )
    def test_urgency_critical_iff_out_of_stock(self, quantity, usage, threshold):
        urgency = classify_urgency(quantity, usage, threshold)
        assert (urgency == ReorderUrgency.CRITICAL) == (quantity == 0)


def _order(amount: Decimal, cancelled: bool, day: int) -> OrderSnapshot:
    return OrderSnapshot(
        order_id=uuid4(),
        organization_id="org",
        order_number=f"ORD-{uuid4().hex[:6]}",
        customer_id=None,
        customer_name=None,
        customer_phone=None,
        product_sku="SKU-1",
        quantity=1,
        amount=amount,
        paid_amount=Decimal("0"),
        outstanding_amount=amount,
        payment_status=PaymentStatus.PENDING,
        status=OrderStatus.CANCELLED if cancelled else OrderStatus.PENDING,
        inventory_deducted=not cancelled,
        order_date=datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(days=day),
    )


orders = st.lists(
    st.builds(
        _order,
        amount=st.decimals(min_value=Decimal("0.01"), max_value=Decimal("99999.99"), places=2),
        cancelled=st.booleans(),
        day=st.integers(min_value=0, max_value=365),
    ),
    max_size=15,
)


class TestFoldProperties:

    @given(orders=orders, data=st.data())
    def test_fold_ignores_order(self, orders, data):
        shuffled = data.draw(st.permutations(orders))
        policy = CustomerPolicy()
        assert fold_customer_orders(orders, policy) == fold_customer_orders(shuffled, policy)

    @given(orders=orders)
    def test_fold_totals_match_live_orders(self, orders):
        agg = fold_customer_orders(orders, CustomerPolicy())
        live = [o for o in orders if o.status != OrderStatus.CANCELLED]

        assert agg.total_purchases == sum((o.amount for o in live), Decimal("0"))
        assert agg.total_orders == len(live)
        assert agg.last_order_date == max((o.order_date for o in live), default=None)
        assert agg.outstanding_balance >= 0
        assert agg.loyalty_points >= 0
