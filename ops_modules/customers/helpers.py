"""
Customer Pure Functions (``ops_modules.customers.helpers``).

Responsibility
--------------
The two pure halves of reconciliation: matching an orphan order to a
customer, and folding a customer's orders into the aggregate tuple.

Invariants
----------
- ``match_customer`` never guesses: several candidates raise
  ``LinkAmbiguousError``, none raise ``LinkNotFoundError``.
- ``fold_customer_orders`` depends only on its arguments, so folding the
  same orders twice yields equal aggregates.
- Purchases and outstanding balance sum non-cancelled orders only.

Failure Modes
-------------
- ``LinkAmbiguousError`` / ``LinkNotFoundError`` from ``match_customer``.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from ops_kernel.domain.customers import (
    CancelledOrderPolicy,
    CustomerAggregates,
    CustomerPolicy,
    CustomerSnapshot,
    CustomerType,
    DemotionPolicy,
    derive_customer_type,
    loyalty_points_for,
    promote_only,
)
from ops_kernel.exceptions import LinkAmbiguousError, LinkNotFoundError
from ops_kernel.models.order import OrderSnapshot, OrderStatus

_NON_DIGITS = re.compile(r"\D")


def normalize_name(name: str | None) -> str:
    """Lowercase and trim; ``None`` becomes the empty string."""
    return (name or "").strip().lower()


def normalize_phone(phone: str | None) -> str:
    """Digits only; ``None`` becomes the empty string."""
    return _NON_DIGITS.sub("", phone or "")


def match_customer(
    order: OrderSnapshot,
    customers: Sequence[CustomerSnapshot],
) -> UUID:
    """
    Find the single customer an orphan order belongs to.

    A unique exact name match (case-insensitive, trimmed) wins.  Without
    one, the phone number (digits only) is tried.

    Raises:
        LinkAmbiguousError: the deciding key matches several customers.
        LinkNotFoundError: neither key matches any customer.
    """
    name = normalize_name(order.customer_name)
    if name:
        by_name = [c for c in customers if normalize_name(c.name) == name]
        if len(by_name) == 1:
            return by_name[0].customer_id
    else:
        by_name = []

    phone = normalize_phone(order.customer_phone)
    if phone:
        by_phone = [c for c in customers if normalize_phone(c.phone) == phone]
        if len(by_phone) == 1:
            return by_phone[0].customer_id
        if len(by_phone) > 1:
            raise LinkAmbiguousError(
                str(order.order_id),
                "phone",
                tuple(str(c.customer_id) for c in by_phone),
            )

    if len(by_name) > 1:
        raise LinkAmbiguousError(
            str(order.order_id),
            "name",
            tuple(str(c.customer_id) for c in by_name),
        )
    raise LinkNotFoundError(
        str(order.order_id), order.customer_name, order.customer_phone,
    )


def fold_customer_orders(
    orders: Sequence[OrderSnapshot],
    policy: CustomerPolicy,
    current_type: CustomerType = CustomerType.NEW,
) -> CustomerAggregates:
    """
    Recompute a customer's aggregates from its full order set.

    ``total_orders`` follows the cancelled-order policy.  The tier is
    derived purely from the folded totals, except under the ``never``
    demotion policy, where it may only rise above ``current_type``.
    First and last order dates span the non-cancelled orders only; a
    customer with nothing live has no order dates.
    """
    live = [o for o in orders if o.status != OrderStatus.CANCELLED]
    if policy.cancelled_order_policy == CancelledOrderPolicy.COUNT_ALL_PLACED:
        counted = len(orders)
    else:
        counted = len(live)

    total_purchases = sum((o.amount for o in live), Decimal("0"))
    outstanding = sum((o.outstanding_amount for o in live), Decimal("0"))

    derived = derive_customer_type(total_purchases, counted, policy.vip_threshold)
    if policy.demotion_policy == DemotionPolicy.NEVER:
        customer_type = promote_only(current_type, derived)
    else:
        customer_type = derived

    dates = [o.order_date for o in live]
    return CustomerAggregates(
        total_purchases=total_purchases,
        total_orders=counted,
        outstanding_balance=outstanding,
        loyalty_points=loyalty_points_for(total_purchases, policy.loyalty_points_rate),
        customer_type=customer_type,
        first_order_date=min(dates) if dates else None,
        last_order_date=max(dates) if dates else None,
    )
