"""
Notification ORM model (the SQL notification sink's storage).
"""

from datetime import datetime

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ops_kernel.db.base import Base, UTCDateTime
from ops_kernel.domain.notifications import (
    NotificationRecord,
    NotificationType,
    Severity,
)


class NotificationModel(Base):
    """A notification awaiting (or past) operator attention."""

    __tablename__ = "notifications"

    __table_args__ = (
        Index("idx_notifications_unread", "organization_id", "notification_type", "ref_id", "is_read"),
    )

    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)
    notification_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(String(1000), nullable=False)
    ref_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<Notification {self.notification_type} ref={self.ref_id} read={self.is_read}>"

    @classmethod
    def from_dto(cls, record: NotificationRecord) -> "NotificationModel":
        return cls(
            id=record.notification_id,
            organization_id=record.organization_id,
            notification_type=record.notification_type.value,
            severity=record.severity.value,
            title=record.title,
            message=record.message,
            ref_id=record.ref_id,
            is_read=record.is_read,
            created_at=record.created_at,
        )

    def to_dto(self) -> NotificationRecord:
        return NotificationRecord(
            notification_id=self.id,
            organization_id=self.organization_id,
            notification_type=NotificationType(self.notification_type),
            severity=Severity(self.severity),
            title=self.title,
            message=self.message,
            ref_id=self.ref_id,
            created_at=self.created_at,
            is_read=self.is_read,
        )
