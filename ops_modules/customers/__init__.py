"""
Customers Module (``ops_modules.customers``).

Responsibility
--------------
Pure matching and folding rules for customer aggregates, plus the
configuration that selects the cancelled-order and demotion policies.
The aggregate writes themselves belong to
``ops_kernel.services.customer_ledger``.
"""

from ops_modules.customers.config import CustomerConfig
from ops_modules.customers.helpers import (
    fold_customer_orders,
    match_customer,
    normalize_name,
    normalize_phone,
)

__all__ = [
    "CustomerConfig",
    "fold_customer_orders",
    "match_customer",
    "normalize_name",
    "normalize_phone",
]
