"""
Payment Service (Domain Logic).

Records that an order has been paid and writes the matching sale entry
to the ledger. Both happen in one transaction.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core import clock
from backend.app.core.exceptions import AlreadyPaidError
from backend.app.domain.orders.order_service import OrderService
from backend.app.domain.orders.values import SaleLine, lines_from_json
from backend.app.domain.sequencing.sequence_allocator import SequenceAllocator, transaction_number_scope
from backend.app.models.ledger_enums import TransactionType
from backend.app.models.notification import NotificationKind
from backend.app.models.order import Order
from backend.app.models.order_enums import PaymentMethod, PaymentStatus
from backend.app.models.product import Product
from backend.app.models.transaction import Transaction
from backend.app.models.user import User
from backend.app.services.notification_service import enqueue_notification

logger = logging.getLogger(__name__)


class PaymentService:

    @staticmethod
    async def mark_as_paid(
        db: AsyncSession,
        order_id: int,
        payment_method: PaymentMethod,
        admin_id: Optional[int],
        payment_reference: Optional[str] = None,
        payment_notes: Optional[str] = None,
    ) -> Tuple[Order, Transaction]:
        """
        Mark an order as paid.

        Flow (single transaction, order row locked):
        1. Load order, refuse if already PAID
        2. Stamp payment fields
        3. Allocate SAL-<country><YY><MM>- number
        4. Insert the sale entry with a snapshot of the order
        5. Queue the payment confirmation for the account holder
        6. Commit

        Raises:
            ResourceNotFoundError: unknown order
            AlreadyPaidError: order was already paid
        """
        try:
            order = await OrderService.get_order(db, order_id, for_update=True)

            if order.payment_status == PaymentStatus.PAID:
                raise AlreadyPaidError(order.id)

            paid_at = clock.now()
            order.payment_status = PaymentStatus.PAID
            order.payment_method = payment_method
            order.payment_reference = payment_reference
            order.payment_notes = payment_notes
            order.paid_at = paid_at
            order.updated_at = paid_at

            transaction_number = await SequenceAllocator.allocate(
                db, transaction_number_scope(TransactionType.SALE, order.country, paid_at)
            )

            order_lines = lines_from_json(order.items)
            names = await PaymentService._product_names(db, [line.product_id for line in order_lines])
            sale_lines = [SaleLine.from_order_line(line, names.get(line.product_id)) for line in order_lines]

            transaction = Transaction(
                transaction_number=transaction_number,
                type=TransactionType.SALE,
                order_id=order.id,
                user_id=order.user_id,
                customer_name=order.recipient_name,
                customer_email=order.recipient_email,
                customer_phone=order.recipient_phone,
                country=order.country,
                currency=order.currency_code,
                items=[line.to_dict() for line in sale_lines],
                description=f"Payment for order {order.order_number}",
                transaction_date=paid_at.date(),
                subtotal=order.subtotal,
                vat_amount=order.tax_amount,
                amount=order.total_amount,
                payment_method=payment_method,
                payment_reference=payment_reference,
                notes=payment_notes,
                recorded_by=admin_id,
                created_at=paid_at,
            )
            db.add(transaction)
            await db.flush()

            account_holder = await db.get(User, order.user_id) if order.user_id else None
            if account_holder and account_holder.email:
                await enqueue_notification(
                    db,
                    NotificationKind.PAYMENT_CONFIRMATION,
                    order,
                    account_holder.email,
                    payload={
                        "transaction_number": transaction.transaction_number,
                        "amount": str(transaction.amount),
                        "currency": transaction.currency,
                        "payment_method": PaymentMethod(payment_method).value,
                    },
                )

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Order marked as paid",
            extra={
                "order_id": order.id,
                "order_number": order.order_number,
                "transaction_number": transaction.transaction_number,
                "admin_id": admin_id,
            }
        )
        return order, transaction

    @staticmethod
    async def _product_names(db: AsyncSession, product_ids):
        if not product_ids:
            return {}
        result = await db.execute(select(Product.id, Product.name).where(Product.id.in_(product_ids)))
        return {product_id: name for product_id, name in result.all()}
