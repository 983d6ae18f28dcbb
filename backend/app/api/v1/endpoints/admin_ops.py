"""
Admin Operations API Endpoints.

Notification outbox maintenance (drain pending emails, inspect and retry
dead-lettered ones) and the audit trail.
"""

from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.models.dlq import DLQStatus
from backend.app.models.enums import UserRole
from backend.app.core.guards import require_role
from backend.app.schemas.notification import AuditLogResponse, DeadLetterResponse, DrainResponse
from backend.app.services.audit import log_event, get_audit_trail, AuditAction
from backend.app.services.notification_service import (
    NotificationDispatcher,
    get_notification_dispatcher,
    list_dead_letters,
    requeue_dead_letter,
)

router = APIRouter(prefix="/admin/ops", tags=["Admin - Ops"])


@router.post("/notifications/drain", response_model=DrainResponse)
async def drain_notifications(
    limit: Optional[int] = Query(None, ge=1, le=500, description="Max messages to process"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """Deliver pending outbox messages now (Admin only)."""
    return await dispatcher.drain(limit)


@router.get("/dlq", response_model=List[DeadLetterResponse])
async def list_dlq_items(
    dlq_status: Optional[DLQStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """List dead-lettered notifications, newest first (Admin only)."""
    items = await list_dead_letters(db, status=dlq_status, limit=limit)
    return [DeadLetterResponse.model_validate(item) for item in items]


@router.post("/dlq/{dlq_id}/retry", response_model=DeadLetterResponse)
async def retry_dlq_item(
    background_tasks: BackgroundTasks,
    dlq_id: int = Path(..., description="DLQ Item ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """
    Requeue a dead-lettered notification with a fresh attempt budget
    and try delivering it again (Admin only).
    """
    item = await requeue_dead_letter(db, dlq_id)

    await log_event(
        db=db,
        action=AuditAction.NOTIFICATION_REQUEUED,
        actor_id=current_user["user_id"],
        entity_type="notification",
        entity_id=item.outbox_id,
        metadata={"dlq_id": item.id, "task_name": item.task_name}
    )

    background_tasks.add_task(dispatcher.dispatch, [item.outbox_id])

    return DeadLetterResponse.model_validate(item)


@router.get("/audit", response_model=List[AuditLogResponse])
async def list_audit_trail(
    entity_type: Optional[str] = Query(None, description="order, transaction or notification"),
    entity_id: Optional[int] = Query(None),
    action: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Audit trail, most recent first (Admin only)."""
    entries = await get_audit_trail(
        db, entity_type=entity_type, entity_id=entity_id, action=action, limit=limit
    )
    return [AuditLogResponse.model_validate(entry) for entry in entries]
