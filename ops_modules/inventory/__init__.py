"""
Inventory Module (``ops_modules.inventory``).

Responsibility
--------------
Reorder advice over the stock ledger: daily usage estimates, reorder
points, order quantities and urgency tiers.  Stock mutation itself belongs
to ``ops_kernel.services.stock_ledger``; this package only reads.

Architecture
------------
Layer: **Modules** -- config schema, pure helpers, frozen read models and a
read-only advisor.  Imports from ``ops_kernel`` but never the reverse.
"""

from ops_modules.inventory.advisor import ReorderAdvisor
from ops_modules.inventory.config import InventoryConfig
from ops_modules.inventory.models import ReorderSuggestion, ReorderUrgency

__all__ = [
    "InventoryConfig",
    "ReorderAdvisor",
    "ReorderSuggestion",
    "ReorderUrgency",
]
