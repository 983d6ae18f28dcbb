"""
Ledger Service (Domain Logic).

Append-only sales and expenses ledger: direct entries, listing, summary
and administrative deletion. There is no update path; a wrong entry is
deleted and recorded again.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core import clock
from backend.app.core.exceptions import ResourceNotFoundError, ValidationFailureError
from backend.app.domain.billing.currency import currency_for_country
from backend.app.domain.orders.values import SaleLine, to_money
from backend.app.domain.sequencing.sequence_allocator import SequenceAllocator, transaction_number_scope
from backend.app.models.ledger_enums import TransactionType
from backend.app.models.locale_enums import Country
from backend.app.models.transaction import Transaction

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "transaction_date": Transaction.transaction_date,
    "amount": Transaction.amount,
    "type": Transaction.type,
    "country": Transaction.country,
    "created_at": Transaction.created_at,
    "transaction_number": Transaction.transaction_number,
}
DEFAULT_SORT = "transaction_date"


def _sale_lines(items) -> List[SaleLine]:
    return [
        SaleLine(
            product_id=item.product_id,
            product_name=item.product_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            tax_percentage=item.tax_percentage,
            tax_amount=item.tax_amount,
        )
        for item in items
    ]


def _currency_code(currency, country) -> str:
    """Explicit currency wins; otherwise the country's, as for orders."""
    if currency:
        return getattr(currency, "value", currency)
    return currency_for_country(country)


def _date_filters(query, start_date: Optional[date], end_date: Optional[date]):
    if start_date and end_date and start_date > end_date:
        raise ValidationFailureError(
            "start_date must not be after end_date",
            details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()}
        )
    if start_date:
        query = query.where(Transaction.transaction_date >= start_date)
    if end_date:
        query = query.where(Transaction.transaction_date <= end_date)
    return query


class LedgerService:

    @staticmethod
    async def _insert(db: AsyncSession, transaction_type: TransactionType, admin_id: Optional[int], **fields) -> Transaction:
        """Allocate a number and insert one entry in a single transaction."""
        created_at = clock.now()
        try:
            transaction_number = await SequenceAllocator.allocate(
                db, transaction_number_scope(transaction_type, fields["country"], created_at)
            )
            transaction = Transaction(
                transaction_number=transaction_number,
                type=transaction_type,
                recorded_by=admin_id,
                created_at=created_at,
                **fields
            )
            db.add(transaction)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Ledger entry recorded",
            extra={
                "transaction_number": transaction.transaction_number,
                "type": transaction_type.value,
                "amount": str(transaction.amount),
                "admin_id": admin_id,
            }
        )
        return transaction

    @staticmethod
    async def create_sale(db: AsyncSession, payload, admin_id: Optional[int]) -> Transaction:
        """
        Record a manual sale (no order, no stock movement).

        Amounts are computed from the lines: subtotal = sum(price x qty),
        vat = sum(per-unit tax x qty), amount = subtotal + vat.
        """
        lines = _sale_lines(payload.items)
        if not lines:
            raise ValidationFailureError("Sale must contain at least one item")

        subtotal = to_money(sum((line.unit_price * line.quantity for line in lines), Decimal("0")))
        vat = to_money(sum((line.tax_amount * line.quantity for line in lines), Decimal("0")))

        return await LedgerService._insert(
            db,
            TransactionType.SALE,
            admin_id,
            order_id=None,
            user_id=payload.user_id,
            customer_name=payload.customer_name,
            customer_email=payload.customer_email,
            customer_phone=payload.customer_phone,
            country=payload.country,
            currency=_currency_code(payload.currency, payload.country),
            items=[line.to_dict() for line in lines],
            description=f"Manual sale - {len(lines)} item(s)",
            transaction_date=payload.transaction_date or clock.today(),
            subtotal=subtotal,
            vat_amount=vat,
            amount=to_money(subtotal + vat),
            payment_method=payload.payment_method,
            payment_reference=payload.payment_reference,
            notes=payload.notes,
        )

    @staticmethod
    async def create_expense(db: AsyncSession, payload, admin_id: Optional[int]) -> Transaction:
        """Record an expense. Carries category/vendor/invoice instead of items."""
        return await LedgerService._insert(
            db,
            TransactionType.EXPENSE,
            admin_id,
            order_id=None,
            country=payload.country,
            currency=_currency_code(payload.currency, payload.country),
            items=None,
            expense_category=payload.category,
            vendor=payload.vendor,
            invoice_number=payload.invoice_number,
            receipt_url=payload.receipt_url,
            description=payload.description,
            transaction_date=payload.transaction_date or clock.today(),
            subtotal=None,
            vat_amount=Decimal("0.00"),
            amount=to_money(payload.amount),
            notes=payload.notes,
        )

    @staticmethod
    async def list_transactions(
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        transaction_type: Optional[TransactionType] = None,
        country: Optional[Country] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        sort_by: str = DEFAULT_SORT,
        sort_order: str = "desc",
    ) -> Tuple[List[Transaction], int]:
        """Filtered, sorted page of entries. Unknown sort columns fall back to transaction_date."""
        query = select(Transaction)
        if transaction_type:
            query = query.where(Transaction.type == transaction_type)
        if country:
            query = query.where(Transaction.country == country)
        query = _date_filters(query, start_date, end_date)

        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

        sort_key = sort_by if sort_by in SORTABLE_COLUMNS else DEFAULT_SORT
        column = SORTABLE_COLUMNS[sort_key]
        ordering = [column.asc() if (sort_order or "").lower() == "asc" else column.desc()]
        if sort_key != "created_at":
            ordering.append(Transaction.created_at.desc())
        ordering.append(Transaction.id.desc())

        result = await db.execute(query.order_by(*ordering).offset((page - 1) * limit).limit(limit))
        return list(result.scalars().all()), total

    @staticmethod
    async def get_transaction(db: AsyncSession, transaction_id: int) -> Transaction:
        transaction = await db.get(Transaction, transaction_id)
        if not transaction:
            raise ResourceNotFoundError("Transaction", transaction_id)
        return transaction

    @staticmethod
    async def get_by_transaction_number(db: AsyncSession, transaction_number: str) -> Transaction:
        result = await db.execute(
            select(Transaction).where(Transaction.transaction_number == transaction_number)
        )
        transaction = result.scalar_one_or_none()
        if not transaction:
            raise ResourceNotFoundError("Transaction", transaction_number)
        return transaction

    @staticmethod
    async def get_summary(
        db: AsyncSession,
        country: Optional[Country] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Sales vs. expenses over the filtered set, computed on read."""
        query = select(
            Transaction.type,
            func.coalesce(func.sum(Transaction.amount), 0),
            func.count(Transaction.id),
        )
        if country:
            query = query.where(Transaction.country == country)
        query = _date_filters(query, start_date, end_date)

        result = await db.execute(query.group_by(Transaction.type))
        totals = {TransactionType(row[0]): (to_money(row[1]), row[2]) for row in result.all()}

        total_sales, sales_count = totals.get(TransactionType.SALE, (Decimal("0.00"), 0))
        total_expenses, expenses_count = totals.get(TransactionType.EXPENSE, (Decimal("0.00"), 0))

        return {
            "total_sales": total_sales,
            "total_expenses": total_expenses,
            "net_profit": to_money(total_sales - total_expenses),
            "sales_count": sales_count,
            "expenses_count": expenses_count,
        }

    @staticmethod
    async def delete_transaction(db: AsyncSession, transaction_id: int) -> Transaction:
        """Administrative removal. Returns the deleted row's last state."""
        transaction = await LedgerService.get_transaction(db, transaction_id)
        try:
            await db.delete(transaction)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.warning(
            "Ledger entry deleted",
            extra={"transaction_id": transaction_id, "transaction_number": transaction.transaction_number}
        )
        return transaction
