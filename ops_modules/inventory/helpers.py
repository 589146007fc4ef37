"""
Inventory Pure Functions (``ops_modules.inventory.helpers``).

Responsibility
--------------
Stateless calculations for daily usage, reorder points, order quantities
and reorder urgency.  No I/O, no session, no clock: the caller passes
``as_of`` explicitly.

Invariants
----------
- Every quantity in and out is a whole number of units; fractional results
  round up (``ceil``) so an estimate never under-orders.
- ``classify_urgency`` returns CRITICAL if and only if the quantity is 0.

Failure Modes
-------------
- ``ValueError`` on negative quantities or day counts.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Sequence

from ops_kernel.domain.stock import HistoryEntrySnapshot, HistoryEntryType
from ops_modules.inventory.models import (
    URGENCY_RANK,
    ReorderSuggestion,
    ReorderUrgency,
)


def estimate_daily_usage(
    quantity_on_hand: int,
    history: Iterable[HistoryEntrySnapshot],
    as_of: datetime,
    window_days: int = 30,
    stale_daily_usage: int = 5,
    cold_start_fraction: Decimal = Decimal("0.1"),
    cold_start_period_days: int = 7,
    minimum: int = 1,
) -> int:
    """
    Estimate units sold per day.

    Three cases, in order:
        1. Sale entries inside the trailing window: total units sold divided
           by the number of those sale entries (at most the window length),
           rounded up.
        2. No sale entry ever (a new SKU): a cold-start guess of
           ``cold_start_fraction`` of the stock per ``cold_start_period_days``.
        3. Sales exist but none inside the window: ``stale_daily_usage``.

    Cases 1 and 2 never return less than ``minimum``.
    """
    if quantity_on_hand < 0:
        raise ValueError(f"quantity_on_hand cannot be negative, got {quantity_on_hand}")
    if window_days <= 0:
        raise ValueError(f"window_days must be positive, got {window_days}")

    sales = [e for e in history if e.entry_type == HistoryEntryType.SALE]
    if not sales:
        guess = Decimal(quantity_on_hand) * cold_start_fraction / Decimal(cold_start_period_days)
        return max(minimum, math.ceil(guess))

    window_start = as_of - timedelta(days=window_days)
    recent = [e for e in sales if window_start <= e.occurred_at <= as_of]
    if not recent:
        return stale_daily_usage

    units = sum(abs(e.quantity_change) for e in recent)
    divisor = min(window_days, len(recent))
    return max(minimum, math.ceil(Decimal(units) / Decimal(divisor)))


def calculate_reorder_point(
    daily_usage: int,
    lead_time_days: int,
    safety_stock_days: int,
) -> int:
    """
    Stock level at which to reorder: lead-time demand plus safety stock.

    Raises:
        ValueError: if any input is negative.
    """
    if daily_usage < 0 or lead_time_days < 0 or safety_stock_days < 0:
        raise ValueError("daily_usage, lead_time_days and safety_stock_days must be >= 0")
    return math.ceil(daily_usage * lead_time_days + daily_usage * safety_stock_days)


def calculate_order_quantity(
    daily_usage: int,
    lead_time_days: int,
    horizon_days: int = 14,
) -> int:
    """Units to order so stock covers the lead time plus ``horizon_days``."""
    if daily_usage < 0 or lead_time_days < 0 or horizon_days < 0:
        raise ValueError("daily_usage, lead_time_days and horizon_days must be >= 0")
    return math.ceil(daily_usage * (lead_time_days + horizon_days))


def classify_urgency(
    quantity_on_hand: int,
    daily_usage: int,
    low_stock_threshold: int,
) -> ReorderUrgency:
    """
    Urgency band of an item.

    CRITICAL when out of stock, HIGH when at most two days of usage remain,
    MEDIUM at or under the low-stock threshold, LOW otherwise.
    """
    if quantity_on_hand == 0:
        return ReorderUrgency.CRITICAL
    if quantity_on_hand <= 2 * daily_usage:
        return ReorderUrgency.HIGH
    if quantity_on_hand <= low_stock_threshold:
        return ReorderUrgency.MEDIUM
    return ReorderUrgency.LOW


def rank_suggestions(
    suggestions: Sequence[ReorderSuggestion],
) -> tuple[ReorderSuggestion, ...]:
    """
    Drop LOW suggestions and order the rest: most urgent first, then the
    lowest stock.  The sort is stable, so ties keep their input order.
    """
    actionable = [s for s in suggestions if s.is_actionable]
    return tuple(
        sorted(actionable, key=lambda s: (URGENCY_RANK[s.urgency], s.current_stock))
    )
