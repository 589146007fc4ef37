"""
Notification domain types.

Pure DTOs exchanged between the AlertPublisher and a NotificationSink.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class NotificationType(str, Enum):
    """Kinds of notification the engine emits."""

    LOW_STOCK = "low-stock"
    STOCK_CRITICAL = "stock-critical"
    REORDER_REQUIRED = "reorder-required"
    ORDER_CREATED = "order-created"
    ORDER_CANCELLED = "order-cancelled"
    SHIPMENT_CREATED = "shipment-created"


class Severity(str, Enum):
    """Notification severity."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
    SUCCESS = "success"


@dataclass(frozen=True)
class NotificationRecord:
    """A notification as handed to the sink."""

    notification_id: UUID
    organization_id: str
    notification_type: NotificationType
    severity: Severity
    title: str
    message: str
    ref_id: str | None
    created_at: datetime
    is_read: bool = False
