"""
Concurrency Tests.

Races are simulated step by step: the losing side is forced into the
state it would see if another transaction had won just before it.
"""

import pytest
from sqlalchemy import select

from backend.app.core.exceptions import InsufficientStockError, SequenceAllocationError
from backend.app.domain.sequencing.sequence_allocator import SequenceAllocator
from backend.app.models.product import Product
from backend.app.models.sequence_counter import SequenceCounter


@pytest.mark.asyncio
async def test_counter_creation_race_falls_back_to_existing_row(db_session, mocker):
    """Both allocators see no counter; the loser hits the unique constraint and retries."""
    db_session.add(SequenceCounter(scope="RW2501-", last_value=4))
    await db_session.commit()

    original = SequenceAllocator._locked_counter
    calls = []

    async def racing(db, scope):
        calls.append(scope)
        if len(calls) == 1:
            return None  # row created by the other allocator after we looked
        return await original(db, scope)

    mocker.patch.object(SequenceAllocator, "_locked_counter", side_effect=racing)

    number = await SequenceAllocator.allocate(db_session, "RW2501-")
    await db_session.commit()

    assert number == "RW2501-0000005"
    assert len(calls) == 2
    counters = (await db_session.execute(select(SequenceCounter))).scalars().all()
    assert len(counters) == 1


@pytest.mark.asyncio
async def test_counter_race_gives_up_after_retry_budget(db_session, mocker):
    db_session.add(SequenceCounter(scope="RW2501-", last_value=4))
    await db_session.commit()
    mocker.patch.object(SequenceAllocator, "_locked_counter", mocker.AsyncMock(return_value=None))

    with pytest.raises(SequenceAllocationError):
        await SequenceAllocator.allocate(db_session, "RW2501-")


@pytest.mark.asyncio
async def test_last_units_go_to_one_buyer_only(db_session, products, place_order, line, reload):
    cable_id = products[1].id

    winner = await place_order([line(cable_id, 2)])

    with pytest.raises(InsufficientStockError) as exc_info:
        await place_order([line(cable_id, 1)], email="late@example.com")

    assert winner.order_number == "RW2501-0000001"
    assert exc_info.value.lines[0]["available"] == 0
    assert (await reload(Product, cable_id)).stock_quantity == 0
