"""
Inventory ORM models: items and their append-only history.

Responsibility:
    Persistence for ``InventoryItemModel`` (one row per SKU per organization,
    with a cached ``quantity_on_hand``) and ``InventoryHistoryModel`` (the
    append-only, hash-chained ledger the cache is derived from).

Architecture position:
    Kernel > Models.  Imports only from db/ and domain/.

Invariants enforced:
    - (organization_id, sku) is unique.
    - (item_id, sequence) is unique: one entry per position in the chain,
      so two writers can never both append entry N.
    - ``version_id`` is the optimistic lock counter; SQLAlchemy adds
      ``WHERE version_id = :old`` to every UPDATE and raises StaleDataError
      when another transaction got there first.
    - quantity_on_hand >= 0 (CHECK constraint).

Audit relevance:
    History rows are never updated or deleted (db/immutability.py).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ops_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from ops_kernel.domain.stock import (
    HistoryEntrySnapshot,
    HistoryEntryType,
    InventoryItemSnapshot,
)


class InventoryItemModel(TrackedBase):
    """
    One stocked SKU within an organization.

    Contract:
        ``quantity_on_hand``, ``last_sequence`` and ``last_entry_hash`` are a
        cache of the history tail.  They are written only by
        ``StockLedger._append_entry`` together with a new history row.

    Guarantees:
        - Concurrent writers are detected through ``version_id``.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint("organization_id", "sku", name="uq_inventory_org_sku"),
        CheckConstraint("quantity_on_hand >= 0", name="ck_inventory_non_negative"),
        Index("idx_inventory_org", "organization_id"),
    )

    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)

    quantity_on_hand: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    low_stock_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Per-item overrides; None means "derive from usage"
    reorder_point: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reorder_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lead_time_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    safety_stock_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    supplier_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # History tail
    last_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_entry_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem {self.sku} qty={self.quantity_on_hand} v{self.version_id}>"

    def to_dto(self) -> InventoryItemSnapshot:
        return InventoryItemSnapshot(
            item_id=self.id,
            organization_id=self.organization_id,
            sku=self.sku,
            product_name=self.product_name,
            quantity_on_hand=self.quantity_on_hand,
            low_stock_threshold=self.low_stock_threshold,
            unit_cost=self.unit_cost,
            reorder_point=self.reorder_point,
            reorder_quantity=self.reorder_quantity,
            lead_time_days=self.lead_time_days,
            safety_stock_days=self.safety_stock_days,
            supplier_name=self.supplier_name,
            last_sequence=self.last_sequence,
        )


class InventoryHistoryModel(Base):
    """
    Append-only inventory history entry.

    Contract:
        Rows are sacred -- never updated or deleted.  Each row hashes its
        payload together with the previous row's hash for the same item.

    Guarantees:
        - ``previous_quantity + quantity_change == new_quantity``.
        - ``previous_quantity`` equals the previous row's ``new_quantity``.
    """

    __tablename__ = "inventory_history"

    __table_args__ = (
        UniqueConstraint("item_id", "sequence", name="uq_history_item_sequence"),
        CheckConstraint(
            "previous_quantity + quantity_change = new_quantity",
            name="ck_history_witness",
        ),
        Index("idx_history_order", "order_id"),
        Index("idx_history_org_occurred", "organization_id", "occurred_at"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=False,
    )
    # Many-to-one only; orders the INSERT after a pending item in the same flush
    item: Mapped[InventoryItemModel] = relationship()
    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    entry_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    new_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    order_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reason: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    performed_by: Mapped[str] = mapped_column(String(100), nullable=False, default="system")
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<InventoryHistory #{self.sequence} {self.entry_type} "
            f"{self.quantity_change:+d} -> {self.new_quantity}>"
        )

    def to_dto(self) -> HistoryEntrySnapshot:
        return HistoryEntrySnapshot(
            entry_id=self.id,
            item_id=self.item_id,
            sequence=self.sequence,
            entry_type=HistoryEntryType(self.entry_type),
            quantity_change=self.quantity_change,
            previous_quantity=self.previous_quantity,
            new_quantity=self.new_quantity,
            order_id=self.order_id,
            reason=self.reason,
            performed_by=self.performed_by,
            occurred_at=self.occurred_at,
            prev_hash=self.prev_hash,
            entry_hash=self.entry_hash,
        )
