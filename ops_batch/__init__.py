"""
ops_batch -- Batch processing for the consistency engine.

Provides a batch executor with a transaction per item, cooperative
cancellation and an optional worker pool, the customer reconciliation job,
and the inventory sweeps (reorder checks, low-stock notices).

Architecture:
    ops_batch/ is a top-level package.  Nothing in ops_kernel/ or
    ops_modules/ imports from ops_batch.

Invariants:
    - One transaction per item; a failed item never undoes another.
    - Clock injection (no datetime.now() calls).
    - Cancellation is checked between items, never inside one.
    - Re-running a job over unchanged data changes nothing.
"""
