"""
Notification Service.

Transactional outbox for order emails.

``enqueue_notification`` adds an outbox row inside the caller's
transaction, so the message exists if and only if the order or payment
change that caused it committed. ``NotificationDispatcher`` delivers rows
after commit, each in its own short session, and is safe to run more than
once for the same row: a SENT row is skipped, and the order's
``email_message_id`` is only set while it is still empty.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.core import clock
from backend.app.core.config import settings
from backend.app.core.exceptions import ResourceNotFoundError, ValidationFailureError
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError, email_circuit_breaker
from backend.app.db.session import AsyncSessionLocal
from backend.app.models.dlq import DeadLetterQueue, DLQStatus
from backend.app.models.notification import NotificationKind, NotificationOutbox, OutboxStatus
from backend.app.models.order import Order
from backend.app.services.email_service import EmailService, email_service

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    pass


async def enqueue_notification(
    db: AsyncSession,
    kind: NotificationKind,
    order: Order,
    recipient: str,
    payload: Optional[Dict[str, Any]] = None
) -> NotificationOutbox:
    """Add an outbox row to the current transaction. Caller commits."""
    message = NotificationOutbox(
        kind=kind,
        order_id=order.id,
        recipient=recipient,
        payload=payload,
        status=OutboxStatus.PENDING,
        attempts=0,
    )
    db.add(message)
    await db.flush()
    return message


class NotificationDispatcher:
    """
    Delivers pending outbox rows through the email service.

    Failures never propagate: they are recorded on the row, and after
    ``settings.notification_max_attempts`` the row is marked FAILED and
    copied to the dead letter queue. While the email circuit is open rows
    stay PENDING without spending an attempt.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        email: Optional[EmailService] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.session_factory = session_factory
        self.email = email or email_service
        self.breaker = breaker or email_circuit_breaker

    async def dispatch(self, message_ids: Iterable[int]) -> Dict[str, int]:
        """Deliver the given outbox rows. Returns counts per outcome."""
        summary = {"processed": 0, "sent": 0, "failed": 0, "pending": 0}
        for message_id in message_ids:
            outcome = await self._process(message_id)
            if outcome is None:
                continue
            summary["processed"] += 1
            if outcome == OutboxStatus.SENT:
                summary["sent"] += 1
            elif outcome == OutboxStatus.FAILED:
                summary["failed"] += 1
            else:
                summary["pending"] += 1
        return summary

    async def drain(self, limit: Optional[int] = None) -> Dict[str, int]:
        """Deliver up to ``limit`` PENDING rows, oldest first."""
        limit = limit or settings.notification_drain_batch_size
        async with self.session_factory() as db:
            result = await db.execute(
                select(NotificationOutbox.id)
                .where(NotificationOutbox.status == OutboxStatus.PENDING)
                .order_by(NotificationOutbox.id)
                .limit(limit)
            )
            message_ids = list(result.scalars().all())
        return await self.dispatch(message_ids)

    async def dispatch_for_order(self, order_id: int) -> Dict[str, int]:
        """Deliver every PENDING row of one order. Scheduled after the order's transaction commits."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(NotificationOutbox.id)
                .where(
                    NotificationOutbox.order_id == order_id,
                    NotificationOutbox.status == OutboxStatus.PENDING
                )
                .order_by(NotificationOutbox.id)
            )
            message_ids = list(result.scalars().all())
        return await self.dispatch(message_ids)

    async def _send(self, message: NotificationOutbox, order: Optional[Order]):
        result = await self.email.deliver(message.kind, order, message.recipient, message.payload)
        if not result.success:
            raise EmailDeliveryError(result.error or "Email delivery failed")
        return result

    async def _process(self, message_id: int) -> Optional[OutboxStatus]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(NotificationOutbox)
                .where(NotificationOutbox.id == message_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            message = result.scalar_one_or_none()

            if message is None or message.status != OutboxStatus.PENDING:
                return None

            order = await db.get(Order, message.order_id) if message.order_id else None

            try:
                sent = await self.breaker.call(self._send, message, order)
            except CircuitOpenError:
                logger.warning(
                    "Email circuit open, leaving notification pending",
                    extra={"outbox_id": message.id, "kind": message.kind.value}
                )
                return OutboxStatus.PENDING
            except Exception as exc:
                status = await self._record_failure(db, message, exc)
                await db.commit()
                return status

            message.status = OutboxStatus.SENT
            message.attempts += 1
            message.message_id = sent.message_id
            message.sent_at = clock.now()
            message.last_error = None

            if (
                message.kind == NotificationKind.ORDER_CONFIRMATION
                and order is not None
                and sent.message_id
            ):
                # Conditional so a redelivery never overwrites the thread id
                await db.execute(
                    update(Order)
                    .where(Order.id == order.id, Order.email_message_id.is_(None))
                    .values(email_message_id=sent.message_id)
                    .execution_options(synchronize_session=False)
                )

            await db.execute(
                update(DeadLetterQueue)
                .where(
                    DeadLetterQueue.outbox_id == message.id,
                    DeadLetterQueue.status == DLQStatus.RETRYING
                )
                .values(status=DLQStatus.PROCESSED)
                .execution_options(synchronize_session=False)
            )

            await db.commit()
            logger.info(
                "Notification sent",
                extra={"outbox_id": message.id, "kind": message.kind.value, "order_id": message.order_id}
            )
            return OutboxStatus.SENT

    @staticmethod
    async def _record_failure(db: AsyncSession, message: NotificationOutbox, exc: Exception) -> OutboxStatus:
        message.attempts += 1
        message.last_error = str(exc)

        if message.attempts < settings.notification_max_attempts:
            logger.warning(
                "Notification delivery failed",
                extra={"outbox_id": message.id, "attempts": message.attempts, "error": str(exc)}
            )
            return OutboxStatus.PENDING

        message.status = OutboxStatus.FAILED
        db.add(DeadLetterQueue(
            task_name=f"notification.{message.kind.value.lower()}",
            outbox_id=message.id,
            error_message=str(exc),
            payload={
                "order_id": message.order_id,
                "recipient": message.recipient,
                "payload": message.payload,
            },
            status=DLQStatus.FAILED,
            retry_count=0,
        ))
        logger.error(
            "Notification dead-lettered",
            extra={"outbox_id": message.id, "attempts": message.attempts, "error": str(exc)}
        )
        return OutboxStatus.FAILED


async def list_dead_letters(db: AsyncSession, status: Optional[DLQStatus] = None, limit: int = 100) -> List[DeadLetterQueue]:
    query = select(DeadLetterQueue).order_by(DeadLetterQueue.created_at.desc(), DeadLetterQueue.id.desc())
    if status:
        query = query.where(DeadLetterQueue.status == status)
    result = await db.execute(query.limit(limit))
    return result.scalars().all()


async def requeue_dead_letter(db: AsyncSession, dlq_id: int) -> DeadLetterQueue:
    """
    Put a dead-lettered notification back on the outbox with a fresh
    attempt budget.

    Raises:
        ResourceNotFoundError: unknown DLQ entry
        ValidationFailureError: entry has no outbox row to requeue
    """
    result = await db.execute(
        select(DeadLetterQueue)
        .where(DeadLetterQueue.id == dlq_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    item = result.scalar_one_or_none()
    if not item:
        raise ResourceNotFoundError("DLQ item", dlq_id)

    message = None
    if item.outbox_id:
        result = await db.execute(
            select(NotificationOutbox)
            .where(NotificationOutbox.id == item.outbox_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        message = result.scalar_one_or_none()
    if message is None:
        raise ValidationFailureError("DLQ item has no notification to retry", details={"dlq_id": dlq_id})

    if message.status != OutboxStatus.SENT:
        message.status = OutboxStatus.PENDING
        message.attempts = 0
        message.last_error = None

    item.status = DLQStatus.RETRYING
    item.retry_count = (item.retry_count or 0) + 1
    item.last_retry_at = clock.now()

    await db.commit()
    return item


_dispatcher = NotificationDispatcher()


def get_notification_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency; tests override it with a dispatcher bound to the test database."""
    return _dispatcher
