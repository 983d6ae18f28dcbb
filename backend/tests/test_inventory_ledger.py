"""
Inventory ledger tests.

Validation reports every problem at once; reservation never takes stock
below zero.
"""

import pytest
from types import SimpleNamespace

from backend.app.core.exceptions import InsufficientStockError, ProductNotFoundError
from backend.app.domain.inventory.inventory_ledger import InventoryLedger, aggregate_quantities
from backend.app.models.product import Product
from backend.app.models.product_enums import StockStatus


def item(product_id, quantity):
    return SimpleNamespace(product_id=product_id, quantity=quantity)


def test_aggregate_sums_repeated_products_in_first_seen_order():
    totals = aggregate_quantities([item(2, 1), item(1, 3), item(2, 4)])

    assert list(totals.items()) == [(2, 5), (1, 3)]


@pytest.mark.asyncio
async def test_validate_lists_every_missing_product(db_session, products):
    mouse = products[0]

    with pytest.raises(ProductNotFoundError) as exc_info:
        await InventoryLedger.validate(db_session, [item(mouse.id, 1), item(999, 1), item(998, 2)])

    assert exc_info.value.missing_ids == [998, 999]
    assert exc_info.value.details == {"missing_product_ids": [998, 999]}


@pytest.mark.asyncio
async def test_validate_lists_every_short_line(db_session, products):
    mouse, cable, lamp = products

    with pytest.raises(InsufficientStockError) as exc_info:
        await InventoryLedger.validate(db_session, [item(mouse.id, 1), item(cable.id, 3), item(lamp.id, 1)])

    lines = {line["product_id"]: line for line in exc_info.value.lines}
    assert set(lines) == {cable.id, lamp.id}
    assert lines[cable.id] == {"product_id": cable.id, "product_name": "USB-C Cable", "requested": 3, "available": 2}
    assert lines[lamp.id]["available"] == 0
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_validate_checks_aggregated_quantity(db_session, products):
    """Two lines of 1 for a product with 2 in stock pass; 2 + 1 does not."""
    cable = products[1]

    await InventoryLedger.validate(db_session, [item(cable.id, 1), item(cable.id, 1)])

    with pytest.raises(InsufficientStockError):
        await InventoryLedger.validate(db_session, [item(cable.id, 2), item(cable.id, 1)])


@pytest.mark.asyncio
async def test_reserve_decrements_stock(db_session, products, reload):
    mouse_id, cable_id = products[0].id, products[1].id

    await InventoryLedger.reserve(db_session, [item(mouse_id, 3), item(cable_id, 1)])
    await db_session.commit()

    mouse = await reload(Product, mouse_id)
    cable = await reload(Product, cable_id)
    assert mouse.stock_quantity == 7
    assert cable.stock_quantity == 1
    assert cable.stock_status == StockStatus.IN_STOCK


@pytest.mark.asyncio
async def test_reserve_to_zero_marks_out_of_stock(db_session, products, reload):
    cable_id = products[1].id

    await InventoryLedger.reserve(db_session, [item(cable_id, 2)])
    await db_session.commit()

    cable = await reload(Product, cable_id)
    assert cable.stock_quantity == 0
    assert cable.stock_status == StockStatus.OUT_OF_STOCK


@pytest.mark.asyncio
async def test_reserve_refuses_when_stock_changed_after_precheck(db_session, products, reload):
    """The conditional decrement is authoritative even if validate passed earlier."""
    cable_id = products[1].id

    await InventoryLedger.validate(db_session, [item(cable_id, 2)])

    # Someone else buys one in between
    await InventoryLedger.reserve(db_session, [item(cable_id, 1)])
    await db_session.commit()

    with pytest.raises(InsufficientStockError) as exc_info:
        await InventoryLedger.reserve(db_session, [item(cable_id, 2)])
    await db_session.rollback()

    assert exc_info.value.lines == [
        {"product_id": cable_id, "product_name": "USB-C Cable", "requested": 2, "available": 1}
    ]
    cable = await reload(Product, cable_id)
    assert cable.stock_quantity == 1
