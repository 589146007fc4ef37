"""
ops_batch.tasks -- Task protocol, registry, and task implementations.

base.py imports nothing from ops_modules.  Task files import from their
respective ops_modules packages.
"""

from ops_batch.tasks.base import (
    BatchItemInput,
    BatchTask,
    BatchTaskResult,
    TaskRegistry,
)
from ops_batch.tasks.customer_tasks import LinkOrdersTask, RecomputeCustomerTask
from ops_batch.tasks.inventory_tasks import LowStockSweepTask, ReorderCheckTask

__all__ = [
    "BatchItemInput",
    "BatchTask",
    "BatchTaskResult",
    "LinkOrdersTask",
    "LowStockSweepTask",
    "RecomputeCustomerTask",
    "ReorderCheckTask",
    "TaskRegistry",
]
