"""
Order Pydantic schemas.

Defines request and response models for checkout, delivery management,
payment recording and public tracking.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.order_enums import DeliveryStatus, PaymentStatus, PaymentMethod
from backend.app.models.locale_enums import Country
from backend.app.schemas.transaction import TransactionResponse


class OrderItemIn(BaseModel):
    """One cart line. Prices exclude tax; tax_amount is per unit."""
    product_id: int = Field(..., gt=0, description="Product ID")
    quantity: int = Field(..., ge=1, description="Quantity ordered")
    unit_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="Unit price excluding tax")
    tax_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100, description="Tax rate in percent")
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2, description="Tax per unit")


class CreateOrderRequest(BaseModel):
    """Schema for checkout (guest or authenticated)."""
    items: List[OrderItemIn] = Field(..., min_length=1)
    country: Country = Field(..., description="Selling country (ISO 3166 alpha-2)")

    recipient_name: Optional[str] = Field(None, max_length=200)
    recipient_email: EmailStr = Field(..., description="Confirmation and tracking email")
    recipient_phone: Optional[str] = Field(None, max_length=50)

    shipping_address: str = Field(..., min_length=1)
    shipping_city: str = Field(..., min_length=1, max_length=100)
    shipping_state: Optional[str] = Field(None, max_length=100)
    shipping_zip_code: Optional[str] = Field(None, max_length=20)
    shipping_country: str = Field(..., min_length=1, max_length=100)


class ChangeDeliveryStatusRequest(BaseModel):
    """Schema for moving an order along the delivery state machine."""
    delivery_status: DeliveryStatus
    notes: Optional[str] = Field(None, max_length=1000)
    tracking_number: Optional[str] = Field(None, max_length=100)
    carrier: Optional[str] = Field(None, max_length=100)
    estimated_delivery_date: Optional[datetime] = None


class DeliveryNotesRequest(BaseModel):
    notes: str = Field(..., min_length=1, max_length=2000)


class MarkAsPaidRequest(BaseModel):
    """Schema for recording a payment against an order."""
    payment_method: PaymentMethod
    payment_reference: Optional[str] = Field(None, max_length=255)
    payment_notes: Optional[str] = Field(None, max_length=1000)


class OrderItemResponse(BaseModel):
    product_id: int
    quantity: int
    unit_price: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal


class StatusHistoryResponse(BaseModel):
    status: DeliveryStatus
    timestamp: Optional[datetime] = None
    updated_by: Optional[int] = None
    notes: Optional[str] = None


class OrderResponse(BaseModel):
    """Schema for order response."""
    id: int
    order_number: str
    country: Country
    currency_code: str
    user_id: Optional[int]

    recipient_name: Optional[str]
    recipient_email: str
    recipient_phone: Optional[str]
    shipping_address: str
    shipping_city: str
    shipping_state: Optional[str]
    shipping_zip_code: Optional[str]
    shipping_country: str

    items: List[OrderItemResponse]
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal

    delivery_status: DeliveryStatus
    tracking_number: Optional[str]
    carrier: Optional[str]
    estimated_delivery_date: Optional[datetime]
    actual_delivery_date: Optional[datetime]
    delivery_notes: Optional[str]
    status_history: List[StatusHistoryResponse]

    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod]
    paid_at: Optional[datetime]
    payment_reference: Optional[str]
    payment_notes: Optional[str]

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PublicOrderResponse(BaseModel):
    """What public tracking reveals: no ownership or payment internals."""
    order_number: str
    country: Country
    currency_code: str
    recipient_name: Optional[str]
    shipping_city: str
    shipping_country: str
    items: List[OrderItemResponse]
    total_amount: Decimal
    delivery_status: DeliveryStatus
    payment_status: PaymentStatus
    tracking_number: Optional[str]
    carrier: Optional[str]
    estimated_delivery_date: Optional[datetime]
    actual_delivery_date: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    """Schema for paginated order list."""
    items: List[OrderResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class TimelineStep(BaseModel):
    id: int
    order: int
    status: DeliveryStatus
    label: str
    timestamp: Optional[datetime] = None
    is_completed: bool
    is_current: bool
    notes: Optional[str] = None


class OrderTimelineResponse(BaseModel):
    order_id: int
    current_status: DeliveryStatus
    timeline: List[TimelineStep]


class TrackOrderResponse(BaseModel):
    order: PublicOrderResponse
    timeline: List[TimelineStep]


class MarkAsPaidResponse(BaseModel):
    order: OrderResponse
    transaction: TransactionResponse
