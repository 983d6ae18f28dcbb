"""
Order API Endpoints.

Checkout (guest or authenticated), customer order reads and public
order tracking.
"""

from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.core.dependencies import get_current_user, get_optional_user
from backend.app.core.guards import verify_order_access
from backend.app.domain.orders.order_service import OrderService
from backend.app.schemas.order import (
    CreateOrderRequest, OrderResponse, OrderListResponse,
    OrderTimelineResponse, TrackOrderResponse, PublicOrderResponse
)
from backend.app.schemas.pagination import total_pages
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.notification_service import NotificationDispatcher, get_notification_dispatcher

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: CreateOrderRequest,
    background_tasks: BackgroundTasks,
    current_user: Optional[dict] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """
    Place an order.

    Without a bearer token the order is a guest order (no owner).
    Stock is reserved atomically; the confirmation email is sent after
    the order is committed.
    """
    user_id = current_user["user_id"] if current_user else None

    order = await OrderService.create_order(db, order_data, user_id)

    await log_event(
        db=db,
        action=AuditAction.ORDER_CREATED,
        actor_id=user_id,
        entity_type="order",
        entity_id=order.id,
        metadata={
            "order_number": order.order_number,
            "total_amount": str(order.total_amount),
            "guest": user_id is None
        }
    )

    background_tasks.add_task(dispatcher.dispatch_for_order, order.id)

    return OrderResponse.model_validate(order)


@router.get("/track", response_model=TrackOrderResponse)
async def track_order(
    order_number: str = Query(..., min_length=1, max_length=32),
    email: Optional[str] = Query(None, max_length=255),
    phone: Optional[str] = Query(None, max_length=50),
    db: AsyncSession = Depends(get_db)
):
    """
    Public order tracking.

    Requires the recipient email or phone on record. Unknown order numbers
    and mismatched details return the same 404.
    """
    result = await OrderService.track_order(db, order_number, email=email, phone=phone)
    return TrackOrderResponse(
        order=PublicOrderResponse.model_validate(result["order"]),
        timeline=result["timeline"]
    )


@router.get("/me", response_model=OrderListResponse)
async def list_my_orders(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Items per page"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List the authenticated customer's orders, newest first."""
    orders, total = await OrderService.list_user_orders(db, current_user["user_id"], page=page, limit=limit)
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit)
    )


@router.get("/number/{order_number}", response_model=OrderResponse)
async def get_order_by_number(
    order_number: str = Path(..., description="Order number"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    order = await OrderService.get_order_by_number(db, order_number)
    verify_order_access(order, current_user)
    return OrderResponse.model_validate(order)


@router.get("/number/{order_number}/timeline", response_model=OrderTimelineResponse)
async def get_order_timeline_by_number(
    order_number: str = Path(..., description="Order number"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    order = await OrderService.get_order_by_number(db, order_number)
    verify_order_access(order, current_user)
    return OrderService.timeline_for(order)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int = Path(..., description="Order ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get one order (owner or admin)."""
    order = await OrderService.get_order(db, order_id)
    verify_order_access(order, current_user)
    return OrderResponse.model_validate(order)


@router.get("/{order_id}/timeline", response_model=OrderTimelineResponse)
async def get_order_timeline(
    order_id: int = Path(..., description="Order ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Four-step delivery timeline (owner or admin)."""
    order = await OrderService.get_order(db, order_id)
    verify_order_access(order, current_user)
    return OrderService.timeline_for(order)
