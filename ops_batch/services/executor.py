"""
BatchExecutor -- transaction-per-item batch execution engine.

Contract:
    Runs a registered task over the items it prepares.  Every item runs in
    its own session and its own transaction: SUCCEEDED items are committed,
    SKIPPED and FAILED items are rolled back.

Architecture: ops_batch/services.  Imports from ops_batch.domain,
    ops_batch.tasks and kernel services.

Invariants enforced:
    - Per-item isolation: one failing item never undoes committed items and
      never aborts the run.
    - Optimistic conflicts are retried per item through ``run_with_retry``.
    - Cooperative cancellation: the token is checked before each item; items
      not started when it is set produce no result.
    - All timestamps come from the injected Clock.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable
from uuid import uuid4

from sqlalchemy.orm import Session

from ops_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchJobStatus,
    BatchRunResult,
)
from ops_batch.tasks.base import BatchItemInput, BatchTask, TaskRegistry
from ops_kernel.domain.clock import Clock, SystemClock
from ops_kernel.logging_config import LogContext, get_logger
from ops_kernel.services.retry import DEFAULT_MAX_ATTEMPTS, run_with_retry

logger = get_logger("batch.executor")


class BatchExecutor:
    """Batch execution engine with a transaction per item.

    Contract:
        - ``execute()`` prepares the items of one task and runs them,
          sequentially or across ``max_workers`` threads.
        - Each worker thread uses its own session from ``session_factory``.

    Non-goals:
        - Does NOT persist runs -- results are returned to the caller.
        - Does NOT schedule -- callers decide when a run happens.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        task_registry: TaskRegistry,
        clock: Clock | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self._session_factory = session_factory
        self._task_registry = task_registry
        self._clock = clock or SystemClock()
        self._max_attempts = max_attempts

    @property
    def task_registry(self) -> TaskRegistry:
        return self._task_registry

    # -------------------------------------------------------------------------
    # Execute
    # -------------------------------------------------------------------------

    def execute(
        self,
        task_type: str,
        parameters: dict[str, Any],
        cancel_token: threading.Event | None = None,
        max_workers: int = 1,
    ) -> BatchRunResult:
        """Run ``task_type`` over every item it prepares.

        Raises:
            TaskNotRegisteredError: If task_type is not registered.
            Exception: whatever ``prepare_items`` raises; nothing has been
                written at that point.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        task = self._task_registry.get(task_type)
        run_id = uuid4()
        start_time = time.monotonic()
        started_at = self._clock.now_utc()

        session = self._session_factory()
        try:
            items = task.prepare_items(parameters, session, started_at)
        finally:
            session.close()

        logger.info(
            "batch_run_started",
            extra={
                "run_id": str(run_id),
                "task_type": task_type,
                "total_items": len(items),
                "max_workers": max_workers,
            },
        )

        context = LogContext.get_all()

        def _worker(item: BatchItemInput) -> BatchItemResult | None:
            if cancel_token is not None and cancel_token.is_set():
                return None
            with LogContext.bind(**context):
                return self._execute_item(task, item, parameters, started_at)

        if max_workers == 1:
            results = []
            for item in items:
                result = _worker(item)
                if result is None:
                    break
                results.append(result)
        else:
            with ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix=f"batch-{task_type}",
            ) as pool:
                results = [r for r in pool.map(_worker, items) if r is not None]
            results.sort(key=lambda r: r.item_index)

        cancelled = cancel_token is not None and cancel_token.is_set() and len(results) < len(items)
        succeeded = sum(1 for r in results if r.status == BatchItemStatus.SUCCEEDED)
        failed = sum(1 for r in results if r.status == BatchItemStatus.FAILED)
        skipped = sum(1 for r in results if r.status == BatchItemStatus.SKIPPED)

        if cancelled:
            status = BatchJobStatus.CANCELLED
        elif failed == 0 and skipped == 0:
            status = BatchJobStatus.COMPLETED
        elif succeeded == 0 and skipped == 0:
            status = BatchJobStatus.FAILED
        else:
            status = BatchJobStatus.PARTIALLY_COMPLETED

        completed_at = self._clock.now_utc()
        total_duration = int((time.monotonic() - start_time) * 1000)

        logger.info(
            "batch_run_cancelled" if cancelled else "batch_run_completed",
            extra={
                "run_id": str(run_id),
                "task_type": task_type,
                "status": status.value,
                "total_items": len(items),
                "succeeded": succeeded,
                "failed": failed,
                "skipped": skipped,
                "duration_ms": total_duration,
            },
        )

        return BatchRunResult(
            run_id=run_id,
            task_type=task_type,
            status=status,
            total_items=len(items),
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            item_results=tuple(results),
            cancelled=cancelled,
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=total_duration,
        )

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _execute_item(
        self,
        task: BatchTask,
        item: BatchItemInput,
        parameters: dict[str, Any],
        as_of,
    ) -> BatchItemResult:
        item_start = time.monotonic()
        item_started_at = self._clock.now_utc()
        session = self._session_factory()

        def _attempt():
            result = task.execute_item(item, parameters, session, as_of)
            if result.status != BatchItemStatus.SUCCEEDED:
                # Only SUCCEEDED items may leave writes behind
                session.rollback()
            return result

        try:
            result = run_with_retry(
                session,
                _attempt,
                operation_name=task.task_type,
                max_attempts=self._max_attempts,
            )
            item_result = BatchItemResult(
                item_index=item.item_index,
                item_key=item.item_key,
                status=result.status,
                error_code=result.error_code,
                error_message=result.error_message,
                result_data=result.result_data,
                duration_ms=int((time.monotonic() - item_start) * 1000),
                started_at=item_started_at,
                completed_at=self._clock.now_utc(),
            )
        except Exception as exc:
            error_code = getattr(exc, "code", "UNHANDLED_EXCEPTION")
            logger.error(
                "batch_item_failed",
                extra={
                    "task_type": task.task_type,
                    "item_key": item.item_key,
                    "error_code": error_code,
                },
                exc_info=True,
            )
            item_result = BatchItemResult(
                item_index=item.item_index,
                item_key=item.item_key,
                status=BatchItemStatus.FAILED,
                error_code=error_code,
                error_message=str(exc),
                duration_ms=int((time.monotonic() - item_start) * 1000),
                started_at=item_started_at,
                completed_at=self._clock.now_utc(),
            )
        finally:
            session.close()

        if item_result.status == BatchItemStatus.SKIPPED:
            logger.info(
                "batch_item_skipped",
                extra={
                    "task_type": task.task_type,
                    "item_key": item.item_key,
                    "error_code": item_result.error_code,
                },
            )
        return item_result
