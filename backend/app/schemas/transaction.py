"""
Ledger Pydantic schemas.

Defines request and response models for sales, expenses and the
financial summary.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List
from backend.app.models.ledger_enums import TransactionType, ExpenseCategory
from backend.app.models.order_enums import PaymentMethod
from backend.app.models.locale_enums import Country, Currency


class SaleItemIn(BaseModel):
    """One sold line. product_id is optional for items outside the catalog."""
    product_id: Optional[int] = Field(None, gt=0)
    product_name: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    tax_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)


class CreateSaleRequest(BaseModel):
    """Schema for recording a manual sale."""
    country: Country
    currency: Optional[Currency] = None
    items: List[SaleItemIn] = Field(..., min_length=1)

    user_id: Optional[int] = Field(None, gt=0)
    customer_name: Optional[str] = Field(None, max_length=200)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = Field(None, max_length=50)

    transaction_date: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class CreateExpenseRequest(BaseModel):
    """Schema for recording an expense."""
    country: Country
    currency: Optional[Currency] = None
    category: ExpenseCategory
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: str = Field(..., min_length=1)

    vendor: Optional[str] = Field(None, max_length=255)
    invoice_number: Optional[str] = Field(None, max_length=100)
    receipt_url: Optional[str] = Field(None, max_length=500)
    transaction_date: Optional[date] = None
    notes: Optional[str] = None


class SaleItemResponse(BaseModel):
    product_id: Optional[int] = None
    product_name: str
    quantity: int
    unit_price: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal


class TransactionResponse(BaseModel):
    """Schema for a ledger entry."""
    id: int
    transaction_number: str
    type: TransactionType
    order_id: Optional[int]
    user_id: Optional[int]
    customer_name: Optional[str]
    customer_email: Optional[str]
    customer_phone: Optional[str]
    country: Country
    currency: str
    items: Optional[List[SaleItemResponse]]
    expense_category: Optional[ExpenseCategory]
    vendor: Optional[str]
    invoice_number: Optional[str]
    receipt_url: Optional[str]
    description: str
    transaction_date: date
    subtotal: Optional[Decimal]
    vat_amount: Decimal
    amount: Decimal
    payment_method: Optional[PaymentMethod]
    payment_reference: Optional[str]
    notes: Optional[str]
    recorded_by: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class TransactionListResponse(BaseModel):
    """Schema for paginated ledger listing."""
    items: List[TransactionResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class SummaryResponse(BaseModel):
    total_sales: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    sales_count: int
    expenses_count: int
