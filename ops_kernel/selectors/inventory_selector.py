"""
InventorySelector -- read side of the stock ledger.

Used by the reorder advisor, batch sweeps and dashboards.  Returns frozen
snapshots; history is always ordered by sequence.
"""

from datetime import datetime

from sqlalchemy import select

from ops_kernel.domain.stock import (
    HistoryEntrySnapshot,
    HistoryEntryType,
    InventoryItemSnapshot,
)
from ops_kernel.exceptions import ItemNotFoundError
from ops_kernel.models.inventory import InventoryHistoryModel, InventoryItemModel
from ops_kernel.selectors.base import BaseSelector


class InventorySelector(BaseSelector[InventoryItemModel]):
    """Read-only queries over inventory items and their history."""

    def get_item(self, organization_id: str, sku: str) -> InventoryItemSnapshot:
        """
        Raises:
            ItemNotFoundError: if the SKU is unknown in this organization.
        """
        model = self._execute(
            select(InventoryItemModel).where(
                InventoryItemModel.organization_id == organization_id,
                InventoryItemModel.sku == sku,
            )
        ).scalar_one_or_none()
        if model is None:
            raise ItemNotFoundError(organization_id, sku)
        return model.to_dto()

    def list_items(self, organization_id: str) -> tuple[InventoryItemSnapshot, ...]:
        models = self._execute(
            select(InventoryItemModel)
            .where(InventoryItemModel.organization_id == organization_id)
            .order_by(InventoryItemModel.sku)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)

    def items_at_or_below_threshold(
        self, organization_id: str,
    ) -> tuple[InventoryItemSnapshot, ...]:
        """Items currently at zero or at/below their low-stock threshold."""
        models = self._execute(
            select(InventoryItemModel)
            .where(
                InventoryItemModel.organization_id == organization_id,
                InventoryItemModel.quantity_on_hand <= InventoryItemModel.low_stock_threshold,
            )
            .order_by(InventoryItemModel.quantity_on_hand, InventoryItemModel.sku)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)

    def history(
        self,
        organization_id: str,
        item_id,
        since: datetime | None = None,
        entry_type: HistoryEntryType | None = None,
    ) -> tuple[HistoryEntrySnapshot, ...]:
        """History entries of one item in sequence order, optionally filtered."""
        query = select(InventoryHistoryModel).where(
            InventoryHistoryModel.organization_id == organization_id,
            InventoryHistoryModel.item_id == item_id,
        )
        if since is not None:
            query = query.where(InventoryHistoryModel.occurred_at >= since)
        if entry_type is not None:
            query = query.where(InventoryHistoryModel.entry_type == entry_type.value)
        models = self._execute(
            query.order_by(InventoryHistoryModel.sequence)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)

    def history_for_order(
        self, organization_id: str, order_id,
    ) -> tuple[HistoryEntrySnapshot, ...]:
        """Every entry caused by one order, across items, in append order."""
        models = self._execute(
            select(InventoryHistoryModel)
            .where(
                InventoryHistoryModel.organization_id == organization_id,
                InventoryHistoryModel.order_id == order_id,
            )
            .order_by(InventoryHistoryModel.occurred_at, InventoryHistoryModel.sequence)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)
