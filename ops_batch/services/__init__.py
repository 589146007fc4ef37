"""Batch services: the per-item executor."""

from ops_batch.services.executor import BatchExecutor

__all__ = ["BatchExecutor"]
