"""
ReconciliationJob -- repairs customer state from the authoritative orders.

Contract:
    ``run(organization_id)`` executes two phases through the BatchExecutor:

    1. **Link**: every order without a customer is matched by normalized
       name, then by phone digits.  A unique match writes ``customer_id``;
       ambiguous and unknown matches are logged and counted as unmatched,
       never guessed.
    2. **Recompute**: every customer's aggregates are overwritten with a
       fold over their orders.

Architecture: ops_batch (top-level).  Composes the customer tasks with a
    private TaskRegistry; imports kernel selectors for the pre-run count.

Invariants enforced:
    - Each link and each recompute commits in its own transaction, so an
      interrupted run resumes where it stopped.
    - Idempotent: a second run over unchanged data links nothing and
      reports ``customers_changed == 0``.
    - Cancellation between items; a cancelled link phase skips recompute.
    - Per-item failures are aggregated into ``errors``; ``strict=True``
      turns them (and cancellation) into exceptions after the run.
"""

from __future__ import annotations

import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable
from uuid import uuid4

from sqlalchemy.orm import Session

from ops_batch.domain.types import BatchItemStatus, BatchRunResult
from ops_batch.services.executor import BatchExecutor
from ops_batch.tasks.base import TaskRegistry
from ops_batch.tasks.customer_tasks import LinkOrdersTask, RecomputeCustomerTask
from ops_kernel.domain.clock import Clock, SystemClock
from ops_kernel.domain.customers import CustomerPolicy
from ops_kernel.exceptions import (
    LinkAmbiguousError,
    LinkNotFoundError,
    PartialBatchFailureError,
    ReconciliationCancelledError,
)
from ops_kernel.logging_config import LogContext, get_logger
from ops_kernel.selectors.order_selector import OrderSelector
from ops_kernel.services.retry import DEFAULT_MAX_ATTEMPTS

logger = get_logger("batch.reconciliation")

JOB_NAME = "customer_reconciliation"

_UNMATCHED_CODES = frozenset({LinkAmbiguousError.code, LinkNotFoundError.code})


@dataclass(frozen=True)
class ReconciliationSummary:
    """Outcome of one reconciliation run.

    ``unmatched`` includes ``ambiguous``.  ``customers_updated`` counts
    customers whose recompute committed; ``customers_changed`` counts those
    whose stored aggregates actually differed.
    """

    organization_id: str
    linked: int = 0
    already_linked: int = 0
    unmatched: int = 0
    ambiguous: int = 0
    customers_updated: int = 0
    customers_changed: int = 0
    errors: int = 0
    unmatched_order_ids: tuple[str, ...] = ()
    cancelled: bool = False
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["unmatched_order_ids"] = list(self.unmatched_order_ids)
        return data


class ReconciliationJob:
    """Links orphan orders and recomputes customer aggregates.

    Contract:
        - Sessions come from ``session_factory``; the job never shares a
          session across items or threads.
        - The recompute phase runs across ``max_workers`` threads.

    Non-goals:
        - Does NOT touch stock.  Inventory is verified by
          ``StockLedger.verify_item``.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        policy: CustomerPolicy | None = None,
        clock: Clock | None = None,
        max_workers: int = 1,
        max_retry_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._session_factory = session_factory
        self._policy = policy or CustomerPolicy()
        self._clock = clock or SystemClock()
        self._max_workers = max_workers

        self._link_task = LinkOrdersTask()
        self._recompute_task = RecomputeCustomerTask(self._policy)
        registry = TaskRegistry()
        registry.register(self._link_task)
        registry.register(self._recompute_task)
        self._executor = BatchExecutor(
            session_factory,
            registry,
            clock=self._clock,
            max_attempts=max_retry_attempts,
        )

    def run(
        self,
        organization_id: str,
        cancel_token: threading.Event | None = None,
        strict: bool = False,
    ) -> ReconciliationSummary:
        """Run both phases for one organization.

        Raises:
            ReconciliationCancelledError: ``strict`` and the token was set
                before every item ran.
            PartialBatchFailureError: ``strict`` and at least one item failed.
        """
        start = time.monotonic()
        correlation_id = str(uuid4())
        parameters = {"organization_id": organization_id}

        with LogContext.bind(
            job_name=JOB_NAME,
            organization_id=organization_id,
            correlation_id=correlation_id,
        ):
            logger.info("reconciliation_started", extra={"max_workers": self._max_workers})

            session = self._session_factory()
            try:
                already_linked = OrderSelector(session).count_linked(organization_id)
            finally:
                session.close()

            link_run = self._executor.execute(
                self._link_task.task_type, parameters, cancel_token=cancel_token,
            )
            recompute_run: BatchRunResult | None = None
            if link_run.cancelled:
                logger.warning(
                    "reconciliation_recompute_skipped",
                    extra={"reason": "cancelled_during_link"},
                )
            else:
                recompute_run = self._executor.execute(
                    self._recompute_task.task_type,
                    parameters,
                    cancel_token=cancel_token,
                    max_workers=self._max_workers,
                )

            summary = self._summarize(
                organization_id,
                already_linked,
                link_run,
                recompute_run,
                int((time.monotonic() - start) * 1000),
            )
            logger.info(
                "reconciliation_cancelled" if summary.cancelled else "reconciliation_completed",
                extra={
                    key: value
                    for key, value in summary.to_dict().items()
                    if key not in ("organization_id", "unmatched_order_ids")
                },
            )

        if strict:
            self._raise_if_incomplete(organization_id, link_run, recompute_run)
        return summary

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _summarize(
        organization_id: str,
        already_linked: int,
        link_run: BatchRunResult,
        recompute_run: BatchRunResult | None,
        duration_ms: int,
    ) -> ReconciliationSummary:
        unmatched = tuple(
            r for r in link_run.results_with_status(BatchItemStatus.SKIPPED)
            if r.error_code in _UNMATCHED_CODES
        )
        # Orders linked by someone else between prepare and execute
        raced = sum(
            1 for r in link_run.results_with_status(BatchItemStatus.SKIPPED)
            if r.result_data and r.result_data.get("already_linked")
        )

        customers_updated = 0
        customers_changed = 0
        errors = link_run.failed
        if recompute_run is not None:
            succeeded = recompute_run.results_with_status(BatchItemStatus.SUCCEEDED)
            customers_updated = len(succeeded)
            customers_changed = sum(
                1 for r in succeeded if r.result_data and r.result_data.get("changed")
            )
            errors += recompute_run.failed

        return ReconciliationSummary(
            organization_id=organization_id,
            linked=link_run.succeeded,
            already_linked=already_linked + raced,
            unmatched=len(unmatched),
            ambiguous=sum(1 for r in unmatched if r.error_code == LinkAmbiguousError.code),
            customers_updated=customers_updated,
            customers_changed=customers_changed,
            errors=errors,
            unmatched_order_ids=tuple(r.item_key for r in unmatched),
            cancelled=link_run.cancelled or (
                recompute_run is not None and recompute_run.cancelled
            ),
            duration_ms=duration_ms,
        )

    def _raise_if_incomplete(
        self,
        organization_id: str,
        link_run: BatchRunResult,
        recompute_run: BatchRunResult | None,
    ) -> None:
        if link_run.cancelled:
            raise ReconciliationCancelledError(organization_id, "link", link_run.processed)
        if recompute_run is not None and recompute_run.cancelled:
            raise ReconciliationCancelledError(
                organization_id, "recompute", recompute_run.processed,
            )
        for run in (link_run, recompute_run):
            if run is None:
                continue
            failures = run.results_with_status(BatchItemStatus.FAILED)
            if failures:
                first = failures[0]
                raise PartialBatchFailureError(
                    run.task_type,
                    first.item_key,
                    first.error_message or first.error_code or "unknown",
                )
