"""
Ops Kernel

The consistency core of the operations engine:
- Append-only, hash-chained inventory history
- Stock quantities that never diverge from their history
- Denormalized customer aggregates with a repair path
- Optimistic concurrency with bounded retries
- Deduplicated stock and order alerts
"""

__version__ = "0.1.0"
