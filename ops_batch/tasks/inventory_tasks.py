"""
Batch tasks: inventory (reorder checks, low-stock sweep).

Both tasks are read-only against the ledger and publish through the
AlertPublisher, which suppresses a notice while an unread one for the same
SKU is still open.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from ops_batch.domain.types import BatchItemStatus
from ops_batch.tasks.base import BatchItemInput, BatchTaskResult
from ops_kernel.domain.stock import StockLevel
from ops_kernel.selectors.inventory_selector import InventorySelector
from ops_kernel.services.alert_publisher import AlertPublisher
from ops_modules.inventory.advisor import ReorderAdvisor
from ops_modules.inventory.config import InventoryConfig
from ops_modules.inventory.models import ReorderUrgency


class ReorderCheckTask:
    """Batch task publishing reorder-required notices for urgent SKUs."""

    def __init__(
        self,
        alert_publisher: AlertPublisher,
        config: InventoryConfig | None = None,
    ):
        self._alerts = alert_publisher
        self._config = config

    @property
    def task_type(self) -> str:
        return "inventory.reorder_check"

    @property
    def description(self) -> str:
        return "Publish reorder notices for critical and high urgency items"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        items = InventorySelector(session).list_items(parameters["organization_id"])
        return tuple(
            BatchItemInput(item_index=i, item_key=item.sku, payload={"sku": item.sku})
            for i, item in enumerate(items)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        organization_id = parameters["organization_id"]
        snapshot = InventorySelector(session).get_item(organization_id, item.payload["sku"])
        suggestion = ReorderAdvisor(session, config=self._config).suggest(snapshot, as_of=as_of)

        notification_id = None
        if suggestion.urgency in (ReorderUrgency.CRITICAL, ReorderUrgency.HIGH):
            notification_id = self._alerts.publish_reorder_required(
                organization_id,
                suggestion.sku,
                suggestion.product_name,
                suggestion.current_stock,
                suggestion.suggested_quantity,
                critical=suggestion.urgency == ReorderUrgency.CRITICAL,
            )

        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={
                "sku": suggestion.sku,
                "urgency": suggestion.urgency.value,
                "published": notification_id is not None,
            },
        )


class LowStockSweepTask:
    """Batch task publishing low/critical notices for items below threshold.

    Level-triggered, unlike the ledger's edge-triggered crossings: it also
    covers items that were already low when their unread notice was read.
    """

    def __init__(self, alert_publisher: AlertPublisher):
        self._alerts = alert_publisher

    @property
    def task_type(self) -> str:
        return "inventory.low_stock_sweep"

    @property
    def description(self) -> str:
        return "Publish low-stock and out-of-stock notices"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        items = InventorySelector(session).items_at_or_below_threshold(
            parameters["organization_id"],
        )
        return tuple(
            BatchItemInput(item_index=i, item_key=item.sku, payload={"sku": item.sku})
            for i, item in enumerate(items)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        snapshot = InventorySelector(session).get_item(
            parameters["organization_id"], item.payload["sku"],
        )
        level = snapshot.stock_level
        if level == StockLevel.OK:
            # Restocked since prepare_items
            return BatchTaskResult(
                status=BatchItemStatus.SKIPPED,
                result_data={"sku": snapshot.sku, "level": level.value},
            )

        notification_id = self._alerts.publish_stock_level(snapshot, level)
        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={
                "sku": snapshot.sku,
                "level": level.value,
                "published": notification_id is not None,
            },
        )
