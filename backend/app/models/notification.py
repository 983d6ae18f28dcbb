"""
Notification outbox database model.

Rows are written in the same transaction as the order or payment change
that triggers them and delivered after commit by the dispatcher.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
import enum


class NotificationKind(str, enum.Enum):
    ORDER_CONFIRMATION = "ORDER_CONFIRMATION"
    STATUS_UPDATE = "STATUS_UPDATE"
    PAYMENT_CONFIRMATION = "PAYMENT_CONFIRMATION"


class OutboxStatus(str, enum.Enum):
    PENDING = "PENDING"  # Waiting for (re)delivery
    SENT = "SENT"
    FAILED = "FAILED"  # Retry budget spent, copied to the DLQ


class NotificationOutbox(Base):
    """
    Outbound email message.

    A SENT row is never delivered again, so a redelivered dispatch is a no-op.
    """
    __tablename__ = "notification_outbox"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    kind = Column(Enum(NotificationKind), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True, index=True)
    recipient = Column(String(255), nullable=False)
    payload = Column(JSON, nullable=True)  # Template context (old/new status, transaction number...)

    # Delivery state
    status = Column(Enum(OutboxStatus), default=OutboxStatus.PENDING, nullable=False, index=True)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
    message_id = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<NotificationOutbox(id={self.id}, kind='{self.kind.value}', status='{self.status.value}')>"
