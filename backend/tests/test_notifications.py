"""
Notification outbox tests.

Covers delivery after commit, idempotent redelivery, retry budget,
dead-lettering, requeue and the email circuit breaker.
"""

import pytest
from sqlalchemy import select

from backend.app.core.config import settings
from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.domain.orders.order_service import OrderService
from backend.app.models.dlq import DeadLetterQueue, DLQStatus
from backend.app.models.notification import NotificationKind, NotificationOutbox, OutboxStatus
from backend.app.models.order import Order
from backend.app.models.order_enums import DeliveryStatus
from backend.app.services.email_service import order_thread_id
from backend.app.services.notification_service import list_dead_letters, requeue_dead_letter


async def outbox_rows(db_session):
    result = await db_session.execute(
        select(NotificationOutbox)
        .order_by(NotificationOutbox.id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().all()


@pytest.fixture
async def order(db_session, products, place_order, line):
    return await place_order([line(products[0].id, 1)])


@pytest.mark.asyncio
async def test_confirmation_is_sent_and_threads_the_order(db_session, order, dispatcher, email, reload):
    summary = await dispatcher.dispatch_for_order(order.id)

    assert summary == {"processed": 1, "sent": 1, "failed": 0, "pending": 0}
    assert email.kinds() == [NotificationKind.ORDER_CONFIRMATION]
    assert email.sent[0]["recipient"] == "jane@example.com"

    [message] = await outbox_rows(db_session)
    assert message.status == OutboxStatus.SENT
    assert message.attempts == 1
    assert message.sent_at is not None

    stored = await reload(Order, order.id)
    assert stored.email_message_id == order_thread_id(order.order_number)


@pytest.mark.asyncio
async def test_redelivery_is_a_no_op(db_session, order, dispatcher, email):
    await dispatcher.dispatch_for_order(order.id)
    [message] = await outbox_rows(db_session)

    again = await dispatcher.dispatch([message.id])
    drained = await dispatcher.drain()

    assert again["processed"] == 0
    assert drained["processed"] == 0
    assert len(email.sent) == 1


@pytest.mark.asyncio
async def test_thread_id_is_never_overwritten(db_session, order, dispatcher, email, reload):
    await dispatcher.dispatch_for_order(order.id)
    first_thread = (await reload(Order, order.id)).email_message_id
    email.next_message_id = "<resend-1@example.com>"

    # A second confirmation row for the same order (e.g. a manual resend)
    db_session.add(NotificationOutbox(
        kind=NotificationKind.ORDER_CONFIRMATION,
        order_id=order.id,
        recipient="jane@example.com",
        status=OutboxStatus.PENDING,
        attempts=0,
    ))
    await db_session.commit()
    summary = await dispatcher.dispatch_for_order(order.id)

    assert summary["sent"] == 1
    assert (await reload(Order, order.id)).email_message_id == first_thread


@pytest.mark.asyncio
async def test_failed_delivery_stays_pending_until_budget_spent(db_session, order, dispatcher, email, monkeypatch):
    monkeypatch.setattr(settings, "notification_max_attempts", 2)
    email.fail = True

    first = await dispatcher.dispatch_for_order(order.id)
    assert first == {"processed": 1, "sent": 0, "failed": 0, "pending": 1}
    [message] = await outbox_rows(db_session)
    assert message.status == OutboxStatus.PENDING
    assert message.attempts == 1
    assert message.last_error == "SMTP connection refused"

    second = await dispatcher.drain()
    assert second["failed"] == 1
    [message] = await outbox_rows(db_session)
    assert message.status == OutboxStatus.FAILED
    assert message.attempts == 2

    [dead] = await list_dead_letters(db_session)
    assert dead.task_name == "notification.order_confirmation"
    assert dead.outbox_id == message.id
    assert dead.status == DLQStatus.FAILED
    assert dead.payload["order_id"] == order.id


@pytest.mark.asyncio
async def test_requeued_dead_letter_is_delivered(db_session, order, dispatcher, email, monkeypatch, reload):
    monkeypatch.setattr(settings, "notification_max_attempts", 1)
    email.fail = True
    await dispatcher.dispatch_for_order(order.id)
    [dead] = await list_dead_letters(db_session, status=DLQStatus.FAILED)
    dead_id, outbox_id = dead.id, dead.outbox_id

    item = await requeue_dead_letter(db_session, dead_id)
    assert item.status == DLQStatus.RETRYING
    assert item.retry_count == 1
    message = await reload(NotificationOutbox, outbox_id)
    assert (message.status, message.attempts) == (OutboxStatus.PENDING, 0)

    email.fail = False
    summary = await dispatcher.dispatch([outbox_id])

    assert summary["sent"] == 1
    assert (await reload(NotificationOutbox, outbox_id)).status == OutboxStatus.SENT
    assert (await reload(DeadLetterQueue, dead_id)).status == DLQStatus.PROCESSED


@pytest.mark.asyncio
async def test_requeue_unknown_dead_letter(db_session):
    with pytest.raises(ResourceNotFoundError):
        await requeue_dead_letter(db_session, 404)


@pytest.mark.asyncio
async def test_open_circuit_leaves_messages_pending_without_spending_attempts(db_session, order, email, session_factory):
    from backend.app.services.notification_service import NotificationDispatcher

    breaker = CircuitBreaker(failure_threshold=1, reset_timeout=3600, name="test")
    dispatcher = NotificationDispatcher(session_factory, email=email, breaker=breaker)
    email.fail = True

    await dispatcher.dispatch_for_order(order.id)
    assert breaker.state == "OPEN"

    summary = await dispatcher.drain()

    assert summary == {"processed": 1, "sent": 0, "failed": 0, "pending": 1}
    assert email.calls == 1
    [message] = await outbox_rows(db_session)
    assert message.attempts == 1
    assert message.status == OutboxStatus.PENDING


@pytest.mark.asyncio
async def test_status_update_and_payment_emails(db_session, products, customer, admin, place_order, line, dispatcher, email):
    from backend.app.domain.billing.payment_service import PaymentService
    from backend.app.models.order_enums import PaymentMethod

    order = await place_order([line(products[0].id, 1)], user_id=customer.id)
    await OrderService.change_delivery_status(db_session, order.id, DeliveryStatus.PROCESSING, actor_id=admin.id)
    await PaymentService.mark_as_paid(db_session, order.id, PaymentMethod.CASH, admin_id=admin.id)

    summary = await dispatcher.dispatch_for_order(order.id)

    assert summary["sent"] == 3
    assert email.kinds() == [
        NotificationKind.ORDER_CONFIRMATION,
        NotificationKind.STATUS_UPDATE,
        NotificationKind.PAYMENT_CONFIRMATION,
    ]
    assert email.sent[1]["payload"]["new_status"] == "PROCESSING"


@pytest.mark.asyncio
async def test_circuit_breaker_opens_and_recovers():
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=0)

    async def failing_func():
        raise ValueError("Boom")

    async def working_func():
        return "ok"

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)
    assert cb.state == "OPEN"

    # reset_timeout elapsed: one trial call closes the circuit again
    cb.last_failure_time -= 1
    assert await cb.call(working_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_circuit_breaker_rejects_while_open():
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=60)

    async def failing_func():
        raise ValueError("Boom")

    with pytest.raises(ValueError):
        await cb.call(failing_func)

    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)
