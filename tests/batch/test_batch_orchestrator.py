"""
Tests for BatchOrchestrator wiring.
"""

import threading

import pytest

from ops_batch.domain.types import BatchJobStatus
from ops_batch.orchestrator import (
    INVENTORY_SWEEPS,
    BatchOrchestrator,
    default_task_registry,
)
from ops_batch.reconciliation import ReconciliationJob
from ops_kernel.domain.notifications import NotificationType
from ops_kernel.exceptions import TaskNotRegisteredError


class TestDefaultRegistry:

    def test_customer_tasks_always_registered(self):
        registry = default_task_registry()
        assert registry.list_tasks() == ("customers.link_orders", "customers.recompute")

    def test_inventory_tasks_need_a_publisher(self, alert_publisher):
        registry = default_task_registry(alert_publisher)
        for task_type in INVENTORY_SWEEPS:
            assert task_type in registry
        assert len(registry) == 4


class TestBatchOrchestrator:

    def test_sweeps_without_publisher_fail(self, session_factory, deterministic_clock, org_id):
        orchestrator = BatchOrchestrator(session_factory, clock=deterministic_clock)

        with pytest.raises(TaskNotRegisteredError) as exc_info:
            orchestrator.run_inventory_sweeps(org_id)

        assert exc_info.value.task_type == "inventory.low_stock_sweep"

    def test_run_inventory_sweeps(
        self, session_factory, alert_publisher, deterministic_clock, org_id, make_item,
    ):
        make_item("SKU-OUT", quantity=0, product_name="Empty Thing")
        orchestrator = BatchOrchestrator(
            session_factory, alert_publisher=alert_publisher, clock=deterministic_clock,
        )

        results = orchestrator.run_inventory_sweeps(org_id)

        assert [r.task_type for r in results] == list(INVENTORY_SWEEPS)
        assert all(r.status == BatchJobStatus.COMPLETED for r in results)
        kinds = {r.notification_type for r in alert_publisher.unread(org_id)}
        assert kinds == {NotificationType.STOCK_CRITICAL, NotificationType.REORDER_REQUIRED}

    def test_cancelled_sweep_stops_the_sequence(
        self, session_factory, alert_publisher, deterministic_clock, org_id, make_item,
    ):
        make_item("SKU-OUT", quantity=0)
        orchestrator = BatchOrchestrator(
            session_factory, alert_publisher=alert_publisher, clock=deterministic_clock,
        )
        token = threading.Event()
        token.set()

        results = orchestrator.run_inventory_sweeps(org_id, cancel_token=token)

        assert len(results) == 1
        assert results[0].status == BatchJobStatus.CANCELLED
        assert alert_publisher.unread(org_id) == ()

    def test_executor_shares_registry(self, session_factory, alert_publisher):
        orchestrator = BatchOrchestrator(session_factory, alert_publisher=alert_publisher)

        executor = orchestrator.create_executor()

        assert executor.task_registry is orchestrator.task_registry

    def test_create_reconciliation_job(self, session_factory, deterministic_clock, org_id):
        orchestrator = BatchOrchestrator(session_factory, clock=deterministic_clock)

        job = orchestrator.create_reconciliation_job(max_workers=2)

        assert isinstance(job, ReconciliationJob)
        summary = job.run(org_id)
        assert summary.errors == 0
        assert summary.linked == 0
