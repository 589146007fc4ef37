"""
Tests for ReconciliationJob: orphan order linking followed by a full
recompute of customer aggregates.
"""

import threading
from decimal import Decimal

import pytest

from ops_batch.reconciliation import ReconciliationJob, ReconciliationSummary
from ops_kernel.domain.customers import (
    CancelledOrderPolicy,
    CustomerPolicy,
    CustomerType,
)
from ops_kernel.exceptions import (
    PartialBatchFailureError,
    ReconciliationCancelledError,
)
from ops_kernel.selectors.order_selector import OrderSelector
from ops_modules.orders.models import OrderRequest


@pytest.fixture
def job(session_factory, deterministic_clock) -> ReconciliationJob:
    return ReconciliationJob(session_factory, clock=deterministic_clock)


@pytest.fixture
def place_order(coordinator, org_id, make_item):
    """Factory: place an order against a well-stocked SKU."""
    make_item("SKU-1", quantity=1000)
    counter = iter(range(1, 1000))

    def _place(amount="100", customer_name=None, customer_phone=None, customer_id=None):
        return coordinator.create_order(
            org_id,
            OrderRequest(
                order_number=f"ORD-{next(counter):04d}",
                product_sku="SKU-1",
                quantity=1,
                amount=Decimal(amount),
                customer_id=customer_id,
                customer_name=customer_name,
                customer_phone=customer_phone,
            ),
        )

    return _place


class TestLinkAndRecompute:

    def test_cancelled_order_excluded_from_recompute(
        self, job, coordinator, customer_ledger, place_order, make_customer, org_id,
    ):
        customer = make_customer("Ada Lovelace")
        kept = place_order("300", customer_name="Ada Lovelace")
        dropped = place_order("700", customer_name="ada lovelace ")
        coordinator.cancel(org_id, dropped.order_id)

        summary = job.run(org_id)

        assert summary.linked == 2
        assert summary.unmatched == 0
        assert summary.customers_updated == 1
        assert summary.customers_changed == 1
        assert summary.errors == 0
        assert summary.cancelled is False

        agg = customer_ledger.get_customer(org_id, customer.customer_id).aggregates
        assert agg.total_purchases == Decimal("300")
        assert agg.total_orders == 1
        assert agg.loyalty_points == 3
        assert agg.customer_type == CustomerType.REGULAR
        assert agg.outstanding_balance == Decimal("300")
        assert coordinator.get_order(org_id, kept.order_id).customer_id == customer.customer_id

    def test_order_dates_come_from_live_orders(
        self, job, coordinator, customer_ledger, place_order, make_customer,
        org_id, deterministic_clock,
    ):
        customer = make_customer("Ada Lovelace")
        kept = place_order("300", customer_name="Ada Lovelace")
        deterministic_clock.advance_days(10)
        dropped = place_order("700", customer_name="Ada Lovelace")
        coordinator.cancel(org_id, dropped.order_id)

        job.run(org_id)

        agg = customer_ledger.get_customer(org_id, customer.customer_id).aggregates
        assert agg.first_order_date == kept.order_date
        assert agg.last_order_date == kept.order_date

    def test_count_all_placed_policy_counts_cancelled(
        self, session_factory, deterministic_clock, coordinator, customer_ledger,
        place_order, make_customer, org_id,
    ):
        customer = make_customer("Ada Lovelace")
        place_order("300", customer_name="Ada Lovelace")
        dropped = place_order("700", customer_name="Ada Lovelace")
        coordinator.cancel(org_id, dropped.order_id)
        job = ReconciliationJob(
            session_factory,
            policy=CustomerPolicy(
                cancelled_order_policy=CancelledOrderPolicy.COUNT_ALL_PLACED,
            ),
            clock=deterministic_clock,
        )

        job.run(org_id)

        agg = customer_ledger.get_customer(org_id, customer.customer_id).aggregates
        assert agg.total_orders == 2
        assert agg.total_purchases == Decimal("300")

    def test_second_run_changes_nothing(self, job, place_order, make_customer, org_id):
        make_customer("Ada Lovelace")
        place_order("300", customer_name="Ada Lovelace")
        place_order("60000", customer_name="Ada Lovelace")

        first = job.run(org_id)
        second = job.run(org_id)

        assert first.linked == 2
        assert first.customers_changed == 1
        assert second.linked == 0
        assert second.already_linked == 2
        assert second.customers_updated == 1
        assert second.customers_changed == 0

    def test_recompute_repairs_drifted_aggregates(
        self, job, customer_ledger, place_order, make_customer, org_id,
    ):
        customer = make_customer("Grace Hopper")
        place_order("60000", customer_id=customer.customer_id)
        customer_ledger.apply_payment(org_id, customer.customer_id, Decimal("1000"))

        summary = job.run(org_id)

        assert summary.linked == 0
        assert summary.already_linked == 1
        assert summary.customers_changed == 1
        agg = customer_ledger.get_customer(org_id, customer.customer_id).aggregates
        assert agg.outstanding_balance == Decimal("60000")
        assert agg.customer_type == CustomerType.VIP
        assert agg.loyalty_points == 600

    def test_phone_match(self, job, coordinator, place_order, make_customer, org_id):
        customer = make_customer("Grace Hopper", phone="+1 555 0100")
        order = place_order(customer_name="G. Hopper", customer_phone="15550100")

        job.run(org_id)

        assert coordinator.get_order(org_id, order.order_id).customer_id == customer.customer_id

    def test_locked_type_survives_recompute(
        self, job, customer_ledger, place_order, make_customer, org_id,
    ):
        customer = make_customer("Ada Lovelace")
        customer_ledger.set_type_override(org_id, customer.customer_id, CustomerType.INACTIVE)
        place_order("60000", customer_name="Ada Lovelace")

        job.run(org_id)

        stored = customer_ledger.get_customer(org_id, customer.customer_id)
        assert stored.aggregates.customer_type == CustomerType.INACTIVE
        assert stored.aggregates.total_purchases == Decimal("60000")


class TestUnmatchedOrders:

    def test_ambiguous_name_is_reported_not_guessed(
        self, job, session, place_order, make_customer, org_id, captured_logs,
    ):
        make_customer("Alex Smith")
        make_customer("Alex Smith")
        order = place_order(customer_name="Alex Smith")

        summary = job.run(org_id)

        assert summary.linked == 0
        assert summary.unmatched == 1
        assert summary.ambiguous == 1
        assert summary.unmatched_order_ids == (str(order.order_id),)
        assert OrderSelector(session).get(org_id, order.order_id).customer_id is None
        assert any(r["message"] == "order_link_ambiguous" for r in captured_logs())

    def test_unknown_customer_is_unmatched(self, job, place_order, make_customer, org_id):
        make_customer("Ada Lovelace")
        place_order(customer_name="Nobody Known")

        summary = job.run(org_id)

        assert summary.unmatched == 1
        assert summary.ambiguous == 0
        assert summary.errors == 0

    def test_other_organization_untouched(self, job, place_order, make_customer):
        make_customer("Ada Lovelace")
        place_order(customer_name="Ada Lovelace")

        summary = job.run("org-other")

        assert summary.linked == 0
        assert summary.customers_updated == 0


class TestFailuresAndCancellation:

    def test_cancel_before_start_skips_recompute(
        self, job, place_order, make_customer, org_id, captured_logs,
    ):
        make_customer("Ada Lovelace")
        place_order(customer_name="Ada Lovelace")
        token = threading.Event()
        token.set()

        summary = job.run(org_id, cancel_token=token)

        assert summary.cancelled is True
        assert summary.linked == 0
        assert summary.customers_updated == 0
        messages = [r["message"] for r in captured_logs()]
        assert "reconciliation_recompute_skipped" in messages
        assert "reconciliation_cancelled" in messages

    def test_strict_cancel_raises(self, job, place_order, org_id):
        place_order(customer_name="Ada Lovelace")
        token = threading.Event()
        token.set()

        with pytest.raises(ReconciliationCancelledError) as exc_info:
            job.run(org_id, cancel_token=token, strict=True)

        assert exc_info.value.phase == "link"
        assert exc_info.value.processed == 0

    def test_item_failure_counted_and_strict_raises(
        self, job, place_order, make_customer, org_id, monkeypatch,
    ):
        make_customer("Ada Lovelace")
        place_order(customer_name="Ada Lovelace")

        def _broken_fold(*args, **kwargs):
            raise RuntimeError("fold failed")

        monkeypatch.setattr("ops_batch.tasks.customer_tasks.fold_customer_orders", _broken_fold)

        summary = job.run(org_id)
        assert summary.errors == 1
        assert summary.linked == 1

        with pytest.raises(PartialBatchFailureError) as exc_info:
            job.run(org_id, strict=True)
        assert exc_info.value.task_type == "customers.recompute"
        assert exc_info.value.code == "PARTIAL_BATCH_FAILURE"


class TestWorkersAndSummary:

    def test_parallel_recompute(self, session_factory, deterministic_clock, place_order, make_customer, org_id):
        names = [f"Customer {i}" for i in range(6)]
        for name in names:
            make_customer(name)
            place_order("250", customer_name=name)
        job = ReconciliationJob(session_factory, clock=deterministic_clock, max_workers=3)

        summary = job.run(org_id)

        assert summary.linked == 6
        assert summary.customers_updated == 6
        assert summary.customers_changed == 6
        assert summary.errors == 0

    def test_invalid_worker_count(self, session_factory):
        with pytest.raises(ValueError):
            ReconciliationJob(session_factory, max_workers=0)

    def test_summary_to_dict(self):
        summary = ReconciliationSummary(
            organization_id="org", unmatched=1, unmatched_order_ids=("o-1",),
        )
        data = summary.to_dict()
        assert data["unmatched_order_ids"] == ["o-1"]
        assert data["organization_id"] == "org"
        assert data["cancelled"] is False

    def test_run_logs_bind_job_context(self, job, org_id, captured_logs):
        job.run(org_id)

        completed = [r for r in captured_logs() if r["message"] == "reconciliation_completed"]
        assert len(completed) == 1
        assert completed[0]["job_name"] == "customer_reconciliation"
        assert completed[0]["organization_id"] == org_id
        assert "correlation_id" in completed[0]
