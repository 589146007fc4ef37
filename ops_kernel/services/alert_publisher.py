"""
AlertPublisher -- turns ledger threshold crossings and order events into
notification records.

Responsibility:
    Formats notifications, suppresses duplicates (an unread notification of
    the same type and ref already exists), and hands records to a
    NotificationSink.

Architecture position:
    Kernel > Services.  Depends on domain DTOs and a sink protocol.  The SQL
    sink writes through its own session factory, outside the ledger
    transaction.

Invariants enforced:
    - Publishing is fire-and-forget: a sink failure is logged and reported
      as ``None``; it never propagates into the ledger operation that
      triggered it.
    - At most one unread notification per (organization, type, ref).

Failure modes:
    - Read-side calls (``unread``, ``mark_read``) propagate sink errors.
"""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from ops_kernel.domain.clock import Clock, SystemClock
from ops_kernel.domain.notifications import (
    NotificationRecord,
    NotificationType,
    Severity,
)
from ops_kernel.domain.stock import InventoryItemSnapshot, StockLevel, StockMutation
from ops_kernel.logging_config import get_logger
from ops_kernel.models.notification import NotificationModel

logger = get_logger("services.alert_publisher")


@runtime_checkable
class NotificationSink(Protocol):
    """Destination for notification records."""

    def has_unread(
        self,
        organization_id: str,
        notification_type: NotificationType,
        ref_id: str | None,
    ) -> bool: ...

    def publish(self, record: NotificationRecord) -> UUID: ...

    def mark_read(self, organization_id: str, notification_id: UUID) -> bool: ...

    def unread(self, organization_id: str) -> tuple[NotificationRecord, ...]: ...


class SqlNotificationSink:
    """
    NotificationSink backed by the ``notifications`` table.

    Contract:
        Every call opens its own session from ``session_factory`` and commits
        it, so notification writes never share a transaction with the
        caller's ledger mutation.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def has_unread(
        self,
        organization_id: str,
        notification_type: NotificationType,
        ref_id: str | None,
    ) -> bool:
        session = self._session_factory()
        try:
            found = session.execute(
                select(NotificationModel.id).where(
                    NotificationModel.organization_id == organization_id,
                    NotificationModel.notification_type == notification_type.value,
                    NotificationModel.ref_id == ref_id,
                    NotificationModel.is_read.is_(False),
                ).limit(1)
            ).first()
            return found is not None
        finally:
            session.close()

    def publish(self, record: NotificationRecord) -> UUID:
        session = self._session_factory()
        try:
            session.add(NotificationModel.from_dto(record))
            session.commit()
            return record.notification_id
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def mark_read(self, organization_id: str, notification_id: UUID) -> bool:
        session = self._session_factory()
        try:
            model = session.execute(
                select(NotificationModel).where(
                    NotificationModel.organization_id == organization_id,
                    NotificationModel.id == notification_id,
                )
            ).scalar_one_or_none()
            if model is None:
                return False
            model.is_read = True
            session.commit()
            return True
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def unread(self, organization_id: str) -> tuple[NotificationRecord, ...]:
        session = self._session_factory()
        try:
            models = session.execute(
                select(NotificationModel)
                .where(
                    NotificationModel.organization_id == organization_id,
                    NotificationModel.is_read.is_(False),
                )
                .order_by(NotificationModel.created_at)
            ).scalars().all()
            return tuple(m.to_dto() for m in models)
        finally:
            session.close()


class AlertPublisher:
    """
    Publishes deduplicated notifications.

    Contract:
        ``publish`` returns the new notification id, or ``None`` when the
        notification was suppressed as a duplicate or the sink failed.

    Non-goals:
        - Delivery (email, push) belongs to the sink's consumers.
    """

    def __init__(self, sink: NotificationSink, clock: Clock | None = None):
        self._sink = sink
        self._clock = clock or SystemClock()

    def publish(
        self,
        organization_id: str,
        notification_type: NotificationType,
        severity: Severity,
        title: str,
        message: str,
        ref_id: str | None = None,
    ) -> UUID | None:
        try:
            if self._sink.has_unread(organization_id, notification_type, ref_id):
                logger.debug(
                    "alert_suppressed_duplicate",
                    extra={
                        "notification_type": notification_type.value,
                        "ref_id": ref_id,
                    },
                )
                return None

            record = NotificationRecord(
                notification_id=uuid4(),
                organization_id=organization_id,
                notification_type=notification_type,
                severity=severity,
                title=title,
                message=message,
                ref_id=ref_id,
                created_at=self._clock.now_utc(),
            )
            notification_id = self._sink.publish(record)
        except Exception:
            logger.error(
                "alert_publish_failed",
                extra={
                    "notification_type": notification_type.value,
                    "ref_id": ref_id,
                },
                exc_info=True,
            )
            return None

        logger.info(
            "alert_published",
            extra={
                "notification_type": notification_type.value,
                "severity": severity.value,
                "ref_id": ref_id,
            },
        )
        return notification_id

    # -------------------------------------------------------------------------
    # Stock alerts
    # -------------------------------------------------------------------------

    def publish_stock_level(
        self,
        item: InventoryItemSnapshot,
        level: StockLevel,
    ) -> UUID | None:
        if level == StockLevel.CRITICAL:
            return self.publish(
                item.organization_id,
                NotificationType.STOCK_CRITICAL,
                Severity.CRITICAL,
                title=f"Out of Stock: {item.product_name}",
                message=f"{item.product_name} is out of stock. Reorder immediately!",
                ref_id=item.sku,
            )
        if level == StockLevel.LOW:
            return self.publish(
                item.organization_id,
                NotificationType.LOW_STOCK,
                Severity.WARNING,
                title=f"Low Stock Alert: {item.product_name}",
                message=(
                    f"{item.product_name} is running low "
                    f"({item.quantity_on_hand} units remaining)."
                ),
                ref_id=item.sku,
            )
        return None

    def publish_mutation(self, mutation: StockMutation) -> UUID | None:
        """Publish the crossing carried by a ledger mutation, if any."""
        if mutation.crossing is None:
            return None
        return self.publish_stock_level(mutation.item, mutation.crossing)

    def publish_insufficient_stock(
        self,
        organization_id: str,
        sku: str,
        product_name: str | None,
        requested: int,
        available: int,
    ) -> UUID | None:
        name = product_name or sku
        return self.publish(
            organization_id,
            NotificationType.STOCK_CRITICAL,
            Severity.CRITICAL,
            title=f"Insufficient Stock: {name}",
            message=(
                f"Cannot fulfill order. Only {available} units available, "
                f"but {requested} requested."
            ),
            ref_id=sku,
        )

    def publish_reorder_required(
        self,
        organization_id: str,
        sku: str,
        product_name: str,
        current_stock: int,
        suggested_quantity: int,
        critical: bool,
    ) -> UUID | None:
        return self.publish(
            organization_id,
            NotificationType.REORDER_REQUIRED,
            Severity.CRITICAL if critical else Severity.WARNING,
            title=f"Reorder Required: {product_name}",
            message=(
                f"Stock level: {current_stock} units. "
                f"Suggested order: {suggested_quantity} units."
            ),
            ref_id=sku,
        )

    # -------------------------------------------------------------------------
    # Order alerts
    # -------------------------------------------------------------------------

    def publish_order_event(
        self,
        organization_id: str,
        notification_type: NotificationType,
        order_id: UUID,
        title: str,
        message: str,
        severity: Severity = Severity.INFO,
    ) -> UUID | None:
        return self.publish(
            organization_id,
            notification_type,
            severity,
            title=title,
            message=message,
            ref_id=str(order_id),
        )

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def unread(self, organization_id: str) -> tuple[NotificationRecord, ...]:
        return self._sink.unread(organization_id)

    def mark_read(self, organization_id: str, notification_id: UUID) -> bool:
        marked = self._sink.mark_read(organization_id, notification_id)
        if marked:
            logger.info(
                "alert_marked_read",
                extra={"notification_id": str(notification_id)},
            )
        return marked
