"""
Order Service (Domain Logic).

Order creation, delivery-status changes, reads and public tracking.

Every mutation runs as one transaction on the caller's session and either
commits completely or rolls back completely. Notifications are written to
the outbox inside that transaction; delivery happens after commit.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core import clock
from backend.app.core.exceptions import (
    OrderTrackingError,
    ResourceNotFoundError,
    ValidationFailureError,
)
from backend.app.domain.billing.currency import currency_for_country
from backend.app.domain.inventory.inventory_ledger import InventoryLedger
from backend.app.domain.orders.state_machine import assert_transition
from backend.app.domain.orders.timeline import (
    initial_status_history,
    order_timeline,
    record_status,
)
from backend.app.domain.orders.values import (
    OrderLine,
    compute_totals,
    history_from_json,
    history_to_json,
)
from backend.app.domain.sequencing.sequence_allocator import SequenceAllocator, order_number_scope
from backend.app.models.notification import NotificationKind
from backend.app.models.order import Order
from backend.app.models.order_enums import DeliveryStatus, PaymentStatus
from backend.app.services.notification_service import enqueue_notification

logger = logging.getLogger(__name__)


def _order_lines(items) -> List[OrderLine]:
    return [
        OrderLine(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            tax_percentage=item.tax_percentage,
            tax_amount=item.tax_amount,
        )
        for item in items
    ]


def _normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


class OrderService:

    @staticmethod
    async def create_order(db: AsyncSession, payload, user_id: Optional[int] = None) -> Order:
        """
        Create an order.

        Flow:
        1. Pre-validate products and stock (outside the write transaction)
        2. Allocate the order number for <country><YY><MM>-
        3. Reserve stock (conditional decrement, authoritative)
        4. Seed status history
        5. Insert the order (PENDING / PENDING)
        6. Queue the confirmation email in the outbox
        7. Commit

        Any failure in 2-7 rolls everything back.

        Args:
            db: Database session
            payload: CreateOrderRequest (or any object with the same attributes)
            user_id: Account holder, None for guest checkout

        Returns:
            The committed Order

        Raises:
            ProductNotFoundError, InsufficientStockError, SequenceAllocationError
        """
        lines = _order_lines(payload.items)
        if not lines:
            raise ValidationFailureError("Order must contain at least one item")

        await InventoryLedger.validate(db, lines)

        placed_at = clock.now()
        try:
            order_number = await SequenceAllocator.allocate(db, order_number_scope(payload.country, placed_at))
            await InventoryLedger.reserve(db, lines)

            totals = compute_totals(lines)
            history = initial_status_history(placed_at, user_id)

            order = Order(
                order_number=order_number,
                country=payload.country,
                currency_code=currency_for_country(payload.country),
                user_id=user_id,
                recipient_name=payload.recipient_name,
                recipient_email=payload.recipient_email,
                recipient_phone=payload.recipient_phone,
                shipping_address=payload.shipping_address,
                shipping_city=payload.shipping_city,
                shipping_state=payload.shipping_state,
                shipping_zip_code=payload.shipping_zip_code,
                shipping_country=payload.shipping_country,
                items=[line.to_dict() for line in lines],
                subtotal=totals.subtotal,
                tax_amount=totals.tax_amount,
                total_amount=totals.total_amount,
                delivery_status=DeliveryStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                status_history=history_to_json(history),
                created_at=placed_at,
                updated_at=placed_at,
            )
            db.add(order)
            await db.flush()

            if order.recipient_email:
                await enqueue_notification(db, NotificationKind.ORDER_CONFIRMATION, order, order.recipient_email)

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Order created",
            extra={
                "order_id": order.id,
                "order_number": order.order_number,
                "user_id": user_id,
                "total_amount": str(order.total_amount),
            }
        )
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int, for_update: bool = False) -> Order:
        query = select(Order).where(Order.id == order_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(query)
        order = result.scalar_one_or_none()
        if not order:
            raise ResourceNotFoundError("Order", order_id)
        return order

    @staticmethod
    async def get_order_by_number(db: AsyncSession, order_number: str) -> Order:
        result = await db.execute(select(Order).where(Order.order_number == order_number))
        order = result.scalar_one_or_none()
        if not order:
            raise ResourceNotFoundError("Order", order_number)
        return order

    @staticmethod
    async def list_orders(
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        delivery_status: Optional[DeliveryStatus] = None,
        user_id: Optional[int] = None,
    ) -> Tuple[List[Order], int]:
        """Newest first. Returns (orders, total)."""
        query = select(Order)
        count_query = select(func.count(Order.id))

        if delivery_status:
            query = query.where(Order.delivery_status == delivery_status)
            count_query = count_query.where(Order.delivery_status == delivery_status)

        if user_id is not None:
            query = query.where(Order.user_id == user_id)
            count_query = count_query.where(Order.user_id == user_id)

        total = (await db.execute(count_query)).scalar() or 0

        query = query.order_by(Order.created_at.desc(), Order.id.desc()).offset((page - 1) * limit).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all()), total

    @staticmethod
    async def list_user_orders(db: AsyncSession, user_id: int, page: int = 1, limit: int = 10) -> Tuple[List[Order], int]:
        return await OrderService.list_orders(db, page=page, limit=limit, user_id=user_id)

    @staticmethod
    async def change_delivery_status(
        db: AsyncSession,
        order_id: int,
        new_status: DeliveryStatus,
        actor_id: Optional[int],
        notes: Optional[str] = None,
        tracking_number: Optional[str] = None,
        carrier: Optional[str] = None,
        estimated_delivery_date: Optional[datetime] = None,
    ) -> Order:
        """Move an order to ``new_status``. See ``transition_delivery_status``."""
        order, _ = await OrderService.transition_delivery_status(
            db,
            order_id,
            new_status,
            actor_id,
            notes=notes,
            tracking_number=tracking_number,
            carrier=carrier,
            estimated_delivery_date=estimated_delivery_date,
        )
        return order

    @staticmethod
    async def transition_delivery_status(
        db: AsyncSession,
        order_id: int,
        new_status: DeliveryStatus,
        actor_id: Optional[int],
        notes: Optional[str] = None,
        tracking_number: Optional[str] = None,
        carrier: Optional[str] = None,
        estimated_delivery_date: Optional[datetime] = None,
    ) -> Tuple[Order, DeliveryStatus]:
        """
        Move an order to ``new_status`` and return it with the status it
        left, as read under the row lock.

        The order row is locked for the whole change, so two concurrent
        changes on the same order serialize and the second one is checked
        against the first one's result.

        Raises:
            ResourceNotFoundError: unknown order
            InvalidTransitionError: move not in the transition table
        """
        new_status = DeliveryStatus(new_status)
        try:
            order = await OrderService.get_order(db, order_id, for_update=True)
            old_status = order.delivery_status
            assert_transition(old_status, new_status)

            changed_at = clock.now()
            order.delivery_status = new_status

            if tracking_number:
                order.tracking_number = tracking_number
            if carrier:
                order.carrier = carrier
            if estimated_delivery_date:
                order.estimated_delivery_date = estimated_delivery_date
            if new_status == DeliveryStatus.DELIVERED:
                order.actual_delivery_date = changed_at

            history = record_status(
                history_from_json(order.status_history),
                new_status,
                at=changed_at,
                updated_by=actor_id,
                notes=notes,
            )
            # Reassign so the JSON column is flagged dirty
            order.status_history = history_to_json(history)
            order.updated_at = changed_at

            if order.recipient_email:
                await enqueue_notification(
                    db,
                    NotificationKind.STATUS_UPDATE,
                    order,
                    order.recipient_email,
                    payload={
                        "old_status": old_status.value,
                        "new_status": new_status.value,
                        "notes": notes,
                    },
                )

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Delivery status changed",
            extra={
                "order_id": order.id,
                "order_number": order.order_number,
                "old_status": old_status.value,
                "new_status": new_status.value,
                "actor_id": actor_id,
            }
        )
        return order, old_status

    @staticmethod
    async def add_delivery_notes(db: AsyncSession, order_id: int, notes: str) -> Order:
        """Overwrite ``delivery_notes``. Annotation only, status is untouched."""
        order = await OrderService.get_order(db, order_id)
        try:
            order.delivery_notes = notes
            order.updated_at = clock.now()
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return order

    @staticmethod
    async def get_timeline(db: AsyncSession, order_id: int) -> Dict[str, Any]:
        order = await OrderService.get_order(db, order_id)
        return OrderService.timeline_for(order)

    @staticmethod
    def timeline_for(order: Order) -> Dict[str, Any]:
        return {
            "order_id": order.id,
            "current_status": order.delivery_status,
            "timeline": order_timeline(order),
        }

    @staticmethod
    async def track_order(
        db: AsyncSession,
        order_number: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Public tracking lookup.

        The caller must prove knowledge of the recipient email or phone.
        Unknown numbers and wrong identity fail identically.

        Raises:
            ValidationFailureError: neither email nor phone given
            OrderTrackingError: no match
        """
        email = _normalize_email(email)
        phone = (phone or "").strip()
        if not email and not phone:
            raise ValidationFailureError("Either email or phone number is required to track an order")

        result = await db.execute(select(Order).where(Order.order_number == order_number.strip()))
        order = result.scalar_one_or_none()
        if order is None:
            raise OrderTrackingError()

        email_matches = bool(email) and _normalize_email(order.recipient_email) == email
        phone_matches = bool(phone) and (order.recipient_phone or "").strip() == phone
        if not (email_matches or phone_matches):
            logger.info("Tracking identity mismatch", extra={"order_number": order.order_number})
            raise OrderTrackingError()

        return {"order": order, "timeline": order_timeline(order)}
