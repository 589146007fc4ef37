"""
BatchOrchestrator -- DI container for the batch processing system.

Contract:
    Wires a TaskRegistry with the task implementations, creates
    BatchExecutors and ReconciliationJobs, and runs the inventory sweeps.
    Single place where batch dependencies are composed.

Architecture: ops_batch (top-level).  The canonical entry point for
    scripts that run batch work.

Invariants enforced:
    - Every component receives the same Clock.
    - Inventory tasks are registered only when an AlertPublisher is wired.
"""

from __future__ import annotations

import threading
from typing import Callable

from sqlalchemy.orm import Session

from ops_batch.domain.types import BatchRunResult
from ops_batch.reconciliation import ReconciliationJob
from ops_batch.services.executor import BatchExecutor
from ops_batch.tasks.base import TaskRegistry
from ops_batch.tasks.customer_tasks import LinkOrdersTask, RecomputeCustomerTask
from ops_batch.tasks.inventory_tasks import LowStockSweepTask, ReorderCheckTask
from ops_kernel.domain.clock import Clock, SystemClock
from ops_kernel.domain.customers import CustomerPolicy
from ops_kernel.logging_config import get_logger
from ops_kernel.services.alert_publisher import AlertPublisher
from ops_kernel.services.retry import DEFAULT_MAX_ATTEMPTS
from ops_modules.inventory.config import InventoryConfig

logger = get_logger("batch.orchestrator")

INVENTORY_SWEEPS = ("inventory.low_stock_sweep", "inventory.reorder_check")


def default_task_registry(
    alert_publisher: AlertPublisher | None = None,
    customer_policy: CustomerPolicy | None = None,
    inventory_config: InventoryConfig | None = None,
) -> TaskRegistry:
    """Create a TaskRegistry pre-loaded with every task implementation."""
    registry = TaskRegistry()
    registry.register(LinkOrdersTask())
    registry.register(RecomputeCustomerTask(customer_policy))
    if alert_publisher is not None:
        registry.register(LowStockSweepTask(alert_publisher))
        registry.register(ReorderCheckTask(alert_publisher, inventory_config))
    return registry


class BatchOrchestrator:
    """DI container for the batch processing system.

    Non-goals:
        - Does NOT schedule.  Callers decide when a run happens.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        alert_publisher: AlertPublisher | None = None,
        customer_policy: CustomerPolicy | None = None,
        inventory_config: InventoryConfig | None = None,
        clock: Clock | None = None,
        max_retry_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self._session_factory = session_factory
        self._alert_publisher = alert_publisher
        self._customer_policy = customer_policy or CustomerPolicy()
        self._clock = clock or SystemClock()
        self._max_retry_attempts = max_retry_attempts
        self._task_registry = default_task_registry(
            alert_publisher, self._customer_policy, inventory_config,
        )

    @property
    def task_registry(self) -> TaskRegistry:
        return self._task_registry

    def create_executor(self) -> BatchExecutor:
        return BatchExecutor(
            self._session_factory,
            self._task_registry,
            clock=self._clock,
            max_attempts=self._max_retry_attempts,
        )

    def create_reconciliation_job(self, max_workers: int = 1) -> ReconciliationJob:
        return ReconciliationJob(
            self._session_factory,
            policy=self._customer_policy,
            clock=self._clock,
            max_workers=max_workers,
            max_retry_attempts=self._max_retry_attempts,
        )

    def run_inventory_sweeps(
        self,
        organization_id: str,
        cancel_token: threading.Event | None = None,
    ) -> tuple[BatchRunResult, ...]:
        """Run the low-stock sweep, then the reorder check.

        Raises:
            TaskNotRegisteredError: if no AlertPublisher was wired.
        """
        executor = self.create_executor()
        results = []
        for task_type in INVENTORY_SWEEPS:
            result = executor.execute(
                task_type,
                {"organization_id": organization_id},
                cancel_token=cancel_token,
            )
            results.append(result)
            if result.cancelled:
                break
        logger.info(
            "inventory_sweeps_completed",
            extra={
                "organization_id": organization_id,
                "runs": len(results),
                "succeeded": sum(r.succeeded for r in results),
            },
        )
        return tuple(results)
