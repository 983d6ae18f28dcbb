"""
Audit logging service for order, payment and ledger actions.

Provides a single append-only trail of who changed what. Rows are written
after the business transaction has committed, so a failed operation
leaves no audit entry behind.
"""

import logging
from typing import Optional, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditAction:
    """Audit action names, grouped by the entity they touch."""
    # Orders
    ORDER_CREATED = "ORDER_CREATED"
    DELIVERY_STATUS_CHANGED = "DELIVERY_STATUS_CHANGED"
    DELIVERY_NOTES_UPDATED = "DELIVERY_NOTES_UPDATED"

    # Payments & Ledger
    ORDER_MARKED_PAID = "ORDER_MARKED_PAID"
    SALE_RECORDED = "SALE_RECORDED"
    EXPENSE_RECORDED = "EXPENSE_RECORDED"
    TRANSACTION_DELETED = "TRANSACTION_DELETED"

    # Notifications
    NOTIFICATION_REQUEUED = "NOTIFICATION_REQUEUED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Append an audit row and commit it.

    Call after the business transaction committed; the row is its own
    transaction.

    Args:
        action: One of the AuditAction names
        actor_id: Acting user, None for guests
        entity_type: "order", "transaction" or "notification"
        entity_id: Primary key of the affected row
        metadata: Extra JSON context (numbers, amounts, statuses)
    """
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=metadata,
        ip_address=ip_address
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)

    logger.info(
        "Audit event",
        extra={"action": action, "actor_id": actor_id, "entity_type": entity_type, "entity_id": entity_id}
    )
    return entry


async def get_audit_trail(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> List[AuditLog]:
    """Audit rows matching every given filter, most recent first."""
    query = select(AuditLog)

    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.where(AuditLog.entity_id == entity_id)
    if action:
        query = query.where(AuditLog.action == action)

    query = query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())
