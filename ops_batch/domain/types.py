"""
ops_batch.domain.types -- Pure frozen dataclasses for the batch system.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.

Invariants enforced:
    - All DTOs are frozen dataclasses (immutable).
    - ``BatchRunResult`` counters always add up to the number of items that
      were processed; items never started because of cancellation are not
      counted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


# =============================================================================
# Status enums
# =============================================================================


class BatchJobStatus(str, Enum):
    """Run-level status."""

    COMPLETED = "completed"  # All items succeeded
    FAILED = "failed"  # Every item failed
    CANCELLED = "cancelled"  # Stopped by the cancellation token
    PARTIALLY_COMPLETED = "partially_completed"  # Some items failed or were skipped


class BatchItemStatus(str, Enum):
    """Per-item status within a run."""

    SUCCEEDED = "succeeded"  # Committed
    FAILED = "failed"  # Rolled back after an error
    SKIPPED = "skipped"  # Nothing to do, or deliberately not decided


# =============================================================================
# Result DTOs
# =============================================================================


@dataclass(frozen=True)
class BatchItemResult:
    """Immutable result of processing a single batch item.

    Each item runs in its own transaction: failure of one item does not
    undo the items before it.
    """

    item_index: int  # 0-indexed position in the batch
    item_key: str  # Business identifier (order_id, customer_id, sku)
    status: BatchItemStatus
    error_code: str | None = None
    error_message: str | None = None
    result_data: dict[str, Any] | None = None
    duration_ms: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class BatchRunResult:
    """Immutable result of executing a complete batch run.

    Returned by ``BatchExecutor.execute()``.
    """

    run_id: UUID
    task_type: str
    status: BatchJobStatus
    total_items: int
    succeeded: int
    failed: int
    skipped: int
    item_results: tuple[BatchItemResult, ...] = ()
    cancelled: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed + self.skipped

    def results_with_status(self, status: BatchItemStatus) -> tuple[BatchItemResult, ...]:
        return tuple(r for r in self.item_results if r.status == status)
