"""
Order database model.

Line items and status history are JSON snapshots embedded in the row; see
backend.app.domain.orders.values for their value types.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, Enum, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.order_enums import DeliveryStatus, PaymentStatus, PaymentMethod
from backend.app.models.locale_enums import Country


class Order(Base):
    """
    Order model.

    Created once by checkout. Afterwards it only changes through delivery
    status transitions, payment recording and delivery-note annotation.
    ``items`` is never rewritten after insert.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identification (<COUNTRY><YY><MM>-<7 digits>)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    country = Column(Enum(Country), nullable=False, index=True)
    currency_code = Column(String(3), nullable=False)

    # Ownership - null for guest checkout
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    # Recipient
    recipient_name = Column(String(200), nullable=True)
    recipient_email = Column(String(255), nullable=False)
    recipient_phone = Column(String(50), nullable=True)

    # Shipping address
    shipping_address = Column(Text, nullable=False)
    shipping_city = Column(String(100), nullable=False)
    shipping_state = Column(String(100), nullable=True)
    shipping_zip_code = Column(String(20), nullable=True)
    shipping_country = Column(String(100), nullable=False)

    # Snapshot of ordered lines
    items = Column(JSON, nullable=False)

    # Financials
    subtotal = Column(Numeric(12, 2), nullable=False)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)

    # Delivery
    delivery_status = Column(Enum(DeliveryStatus), default=DeliveryStatus.PENDING, nullable=False, index=True)
    tracking_number = Column(String(100), nullable=True)
    carrier = Column(String(100), nullable=True)
    estimated_delivery_date = Column(DateTime(timezone=True), nullable=True)
    actual_delivery_date = Column(DateTime(timezone=True), nullable=True)
    delivery_notes = Column(Text, nullable=True)
    status_history = Column(JSON, nullable=False)

    # Payment
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False, index=True)
    payment_method = Column(Enum(PaymentMethod), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    payment_reference = Column(String(255), nullable=True)
    payment_notes = Column(Text, nullable=True)

    # Set by the notification dispatcher for email threading
    email_message_id = Column(String(255), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status='{self.delivery_status.value}')>"
