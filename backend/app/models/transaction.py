"""
Ledger transaction database model.

Append-only record of a sale or an expense.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, Date, DateTime, ForeignKey, Enum, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.ledger_enums import TransactionType, ExpenseCategory
from backend.app.models.order_enums import PaymentMethod
from backend.app.models.locale_enums import Country


class Transaction(Base):
    """
    Ledger entry.

    NO updates allowed (no updated_at). Correction is an explicit
    administrative delete followed by a new entry.
    ``amount`` is unsigned; ``type`` decides whether it is income or cost.
    """
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identification (<SAL|EXP>-<COUNTRY><YY><MM>-<7 digits>)
    transaction_number = Column(String(40), unique=True, nullable=False, index=True)
    type = Column(Enum(TransactionType), nullable=False, index=True)

    # Set only when the sale came from an order payment
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True, index=True)

    # Customer (sales)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    customer_name = Column(String(200), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)

    country = Column(Enum(Country), nullable=False, index=True)
    currency = Column(String(3), nullable=False)

    # Sales: snapshot of sold lines
    items = Column(JSON, nullable=True)

    # Expenses
    expense_category = Column(Enum(ExpenseCategory), nullable=True)
    vendor = Column(String(255), nullable=True)
    invoice_number = Column(String(100), nullable=True)
    receipt_url = Column(String(500), nullable=True)

    description = Column(Text, nullable=False)
    transaction_date = Column(Date, nullable=False, index=True)

    # Financials
    subtotal = Column(Numeric(12, 2), nullable=True)
    vat_amount = Column(Numeric(12, 2), nullable=False, default=0)
    amount = Column(Numeric(12, 2), nullable=False)

    # Payment (sales)
    payment_method = Column(Enum(PaymentMethod), nullable=True)
    payment_reference = Column(String(255), nullable=True)

    notes = Column(Text, nullable=True)
    recorded_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Transaction(id={self.id}, number='{self.transaction_number}', amount={self.amount})>"
