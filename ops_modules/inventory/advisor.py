"""
Reorder Advisor (``ops_modules.inventory.advisor``).

Responsibility
--------------
Reads stock ledger state and sale history and turns them into reorder
suggestions: estimated daily usage, reorder point, order quantity and an
urgency tier per item.

Architecture
------------
Layer: **Modules** -- read-only orchestration.  Loads snapshots through
``InventorySelector`` and delegates every formula to
``ops_modules.inventory.helpers``.  Never writes.

Invariants
----------
- Per-item overrides win: ``reorder_point`` and ``reorder_quantity`` on the
  item replace the derived values; ``lead_time_days`` and
  ``safety_stock_days`` replace the configured defaults.
- Suggestion lists exclude LOW urgency and are sorted critical, high,
  medium, then by ascending stock.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Sequence

from sqlalchemy.orm import Session

from ops_kernel.domain.clock import Clock, SystemClock
from ops_kernel.domain.stock import (
    HistoryEntrySnapshot,
    HistoryEntryType,
    InventoryItemSnapshot,
)
from ops_kernel.logging_config import get_logger
from ops_kernel.selectors.inventory_selector import InventorySelector
from ops_modules.inventory.config import InventoryConfig
from ops_modules.inventory.helpers import (
    calculate_order_quantity,
    calculate_reorder_point,
    classify_urgency,
    estimate_daily_usage,
    rank_suggestions,
)
from ops_modules.inventory.models import ReorderSuggestion, ReorderUrgency

logger = get_logger("modules.inventory.advisor")


class ReorderAdvisor:
    """
    Computes reorder suggestions from stock and usage history.

    Contract
    --------
    Methods accepting ``daily_usage`` use it as given; when omitted the
    usage is estimated from the item's sale history as of ``clock.now_utc()``.

    Non-goals
    ---------
    - Placing purchase orders.  Suggestions are read models only.
    """

    def __init__(
        self,
        session: Session,
        config: InventoryConfig | None = None,
        clock: Clock | None = None,
    ):
        self._selector = InventorySelector(session)
        self._config = config or InventoryConfig.with_defaults()
        self._clock = clock or SystemClock()

    @property
    def config(self) -> InventoryConfig:
        return self._config

    def _sale_history(self, item: InventoryItemSnapshot) -> tuple[HistoryEntrySnapshot, ...]:
        return self._selector.history(
            item.organization_id, item.item_id, entry_type=HistoryEntryType.SALE,
        )

    def _lead_time(self, item: InventoryItemSnapshot) -> int:
        if item.lead_time_days is not None:
            return item.lead_time_days
        return self._config.default_lead_time_days

    def _safety_stock_days(self, item: InventoryItemSnapshot) -> int:
        if item.safety_stock_days is not None:
            return item.safety_stock_days
        return self._config.default_safety_stock_days

    def estimate_daily_usage(
        self,
        item: InventoryItemSnapshot,
        history: Iterable[HistoryEntrySnapshot] | None = None,
        as_of: datetime | None = None,
    ) -> int:
        if history is None:
            history = self._sale_history(item)
        return estimate_daily_usage(
            item.quantity_on_hand,
            history,
            as_of=as_of or self._clock.now_utc(),
            window_days=self._config.usage_window_days,
            stale_daily_usage=self._config.stale_daily_usage,
            cold_start_fraction=self._config.cold_start_fraction,
            cold_start_period_days=self._config.cold_start_period_days,
            minimum=self._config.minimum_daily_usage,
        )

    def reorder_point(
        self, item: InventoryItemSnapshot, daily_usage: int | None = None,
    ) -> int:
        if item.reorder_point is not None:
            return item.reorder_point
        if daily_usage is None:
            daily_usage = self.estimate_daily_usage(item)
        return calculate_reorder_point(
            daily_usage, self._lead_time(item), self._safety_stock_days(item),
        )

    def economic_order_quantity(
        self, item: InventoryItemSnapshot, daily_usage: int | None = None,
    ) -> int:
        if item.reorder_quantity is not None:
            return item.reorder_quantity
        if daily_usage is None:
            daily_usage = self.estimate_daily_usage(item)
        return calculate_order_quantity(
            daily_usage, self._lead_time(item), self._config.eoq_horizon_days,
        )

    def urgency(
        self, item: InventoryItemSnapshot, daily_usage: int | None = None,
    ) -> ReorderUrgency:
        if daily_usage is None:
            daily_usage = self.estimate_daily_usage(item)
        return classify_urgency(
            item.quantity_on_hand, daily_usage, item.low_stock_threshold,
        )

    def suggest(
        self, item: InventoryItemSnapshot, as_of: datetime | None = None,
    ) -> ReorderSuggestion:
        """Build the suggestion for one item, whatever its urgency."""
        usage = self.estimate_daily_usage(item, as_of=as_of)
        quantity = self.economic_order_quantity(item, usage)
        return ReorderSuggestion(
            item_id=item.item_id,
            organization_id=item.organization_id,
            sku=item.sku,
            product_name=item.product_name,
            current_stock=item.quantity_on_hand,
            low_stock_threshold=item.low_stock_threshold,
            daily_usage=usage,
            reorder_point=self.reorder_point(item, usage),
            suggested_quantity=quantity,
            urgency=self.urgency(item, usage),
            unit_cost=item.unit_cost,
            estimated_cost=item.unit_cost * Decimal(quantity),
            supplier_name=item.supplier_name,
            lead_time_days=self._lead_time(item),
        )

    def suggestions_for(
        self, items: Sequence[InventoryItemSnapshot],
    ) -> tuple[ReorderSuggestion, ...]:
        """Actionable suggestions for ``items``, most urgent first."""
        ranked = rank_suggestions([self.suggest(item) for item in items])
        logger.info(
            "reorder_suggestions_computed",
            extra={
                "items_considered": len(items),
                "suggestions": len(ranked),
                "critical": sum(1 for s in ranked if s.urgency == ReorderUrgency.CRITICAL),
            },
        )
        return ranked

    def suggestions_for_organization(
        self, organization_id: str,
    ) -> tuple[ReorderSuggestion, ...]:
        return self.suggestions_for(self._selector.list_items(organization_id))
