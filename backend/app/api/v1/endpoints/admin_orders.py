"""
Admin Order API Endpoints.

Back-office order management: listing, delivery status changes,
delivery notes and payment recording.
"""

from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.core.guards import require_role
from backend.app.domain.orders.order_service import OrderService
from backend.app.domain.billing.payment_service import PaymentService
from backend.app.models.enums import UserRole
from backend.app.models.order_enums import DeliveryStatus
from backend.app.schemas.order import (
    ChangeDeliveryStatusRequest, DeliveryNotesRequest, MarkAsPaidRequest,
    MarkAsPaidResponse, OrderListResponse, OrderResponse
)
from backend.app.schemas.pagination import total_pages
from backend.app.schemas.transaction import TransactionResponse
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.notification_service import NotificationDispatcher, get_notification_dispatcher

router = APIRouter(prefix="/admin/orders", tags=["Admin - Orders"])


@router.get("", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Items per page"),
    delivery_status: Optional[DeliveryStatus] = Query(None, description="Filter by delivery status"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """List all orders, newest first (Admin only)."""
    orders, total = await OrderService.list_orders(db, page=page, limit=limit, delivery_status=delivery_status)
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit)
    )


@router.patch("/{order_id}/delivery-status", response_model=OrderResponse)
async def change_delivery_status(
    background_tasks: BackgroundTasks,
    order_id: int = Path(..., description="Order ID"),
    status_data: ChangeDeliveryStatusRequest = ...,
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """
    Move an order along the delivery state machine (Admin only).

    Invalid moves return 400 with the allowed next statuses.
    """
    order, old_status = await OrderService.transition_delivery_status(
        db,
        order_id,
        status_data.delivery_status,
        actor_id=current_user["user_id"],
        notes=status_data.notes,
        tracking_number=status_data.tracking_number,
        carrier=status_data.carrier,
        estimated_delivery_date=status_data.estimated_delivery_date,
    )

    await log_event(
        db=db,
        action=AuditAction.DELIVERY_STATUS_CHANGED,
        actor_id=current_user["user_id"],
        entity_type="order",
        entity_id=order.id,
        metadata={
            "order_number": order.order_number,
            "old_status": old_status.value,
            "new_status": order.delivery_status.value
        }
    )

    background_tasks.add_task(dispatcher.dispatch_for_order, order.id)

    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/delivery-notes", response_model=OrderResponse)
async def update_delivery_notes(
    order_id: int = Path(..., description="Order ID"),
    notes_data: DeliveryNotesRequest = ...,
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Replace the delivery notes (Admin only). Does not change status."""
    order = await OrderService.add_delivery_notes(db, order_id, notes_data.notes)

    await log_event(
        db=db,
        action=AuditAction.DELIVERY_NOTES_UPDATED,
        actor_id=current_user["user_id"],
        entity_type="order",
        entity_id=order.id,
        metadata={"order_number": order.order_number}
    )

    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/mark-as-paid", response_model=MarkAsPaidResponse)
async def mark_order_as_paid(
    background_tasks: BackgroundTasks,
    order_id: int = Path(..., description="Order ID"),
    payment_data: MarkAsPaidRequest = ...,
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """
    Record payment for an order and write the sale to the ledger (Admin only).

    A second call for the same order returns 409.
    """
    order, transaction = await PaymentService.mark_as_paid(
        db,
        order_id,
        payment_data.payment_method,
        admin_id=current_user["user_id"],
        payment_reference=payment_data.payment_reference,
        payment_notes=payment_data.payment_notes,
    )

    await log_event(
        db=db,
        action=AuditAction.ORDER_MARKED_PAID,
        actor_id=current_user["user_id"],
        entity_type="order",
        entity_id=order.id,
        metadata={
            "order_number": order.order_number,
            "transaction_number": transaction.transaction_number,
            "amount": str(transaction.amount),
            "payment_method": payment_data.payment_method.value
        }
    )

    background_tasks.add_task(dispatcher.dispatch_for_order, order.id)

    return MarkAsPaidResponse(
        order=OrderResponse.model_validate(order),
        transaction=TransactionResponse.model_validate(transaction)
    )
