"""
Batch task contract and registry.

A batch task splits one run into independent items (one customer, one SKU)
and processes each item in a session the executor hands it.  The executor
owns transactions, retries and cancellation; a task only reads and flushes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from sqlalchemy.orm import Session

from ops_batch.domain.types import BatchItemStatus
from ops_kernel.exceptions import TaskNotRegisteredError


@dataclass(frozen=True)
class BatchItemInput:
    """One unit of work: its position in the run, a stable key and a payload."""

    item_index: int
    item_key: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchTaskResult:
    """What a task reports for one item; SUCCEEDED items are committed."""

    status: BatchItemStatus
    result_data: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None


@runtime_checkable
class BatchTask(Protocol):
    """
    Interface of a batch task.

    ``prepare_items`` snapshots the eligible keys (customer ids, SKUs) for
    ``parameters["organization_id"]``; ``execute_item`` re-reads the row
    behind one key and returns a BatchTaskResult.  Neither method commits.
    Optimistic-lock conflicts propagate so the executor can retry the item.
    """

    @property
    def task_type(self) -> str: ...

    @property
    def description(self) -> str: ...

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]: ...

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult: ...


class TaskRegistry:
    """Tasks keyed by ``task_type``; a type can be registered once."""

    def __init__(self) -> None:
        self._by_type: dict[str, BatchTask] = {}

    def register(self, task: BatchTask) -> None:
        if task.task_type in self._by_type:
            raise ValueError(f"Task type '{task.task_type}' is already registered")
        self._by_type[task.task_type] = task

    def get(self, task_type: str) -> BatchTask:
        """
        Raises:
            TaskNotRegisteredError: nothing registered under ``task_type``.
        """
        task = self._by_type.get(task_type)
        if task is None:
            raise TaskNotRegisteredError(task_type, self.list_tasks())
        return task

    def list_tasks(self) -> tuple[str, ...]:
        return tuple(sorted(self._by_type))

    def __len__(self) -> int:
        return len(self._by_type)

    def __contains__(self, task_type: str) -> bool:
        return task_type in self._by_type
