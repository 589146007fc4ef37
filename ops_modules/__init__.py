"""
Ops Modules.

Orchestration layers over the Ops Kernel.  Each module contains:
- Domain models (the nouns)
- Pure helpers (formulas and folds)
- Workflows (state machines)
- Configuration schemas (policy and settings)
- A thin service that owns its transaction boundary

Modules:
- Inventory: reorder points, order quantities, urgency
- Orders: create / ship / cancel against the stock ledger
- Customers: order linking and the aggregate fold

Ledger writes live in the kernel; modules only orchestrate them.
"""

from ops_modules import customers, inventory, orders

__all__ = [
    "customers",
    "inventory",
    "orders",
]
