"""
Inventory Ledger.

Validates and reserves product stock for order lines.

``validate`` is an advisory pre-check run before the write transaction so
obviously bad carts fail fast with a full list of problems. ``reserve`` is
authoritative: one conditional ``UPDATE ... WHERE stock_quantity >= :q``
per product inside the caller's transaction, so stock can never go
negative regardless of what other transactions did since the pre-check.
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import InsufficientStockError, ProductNotFoundError
from backend.app.models.product import Product
from backend.app.models.product_enums import StockStatus

logger = logging.getLogger(__name__)


def aggregate_quantities(items: Iterable[Any]) -> "OrderedDict[int, int]":
    """
    Sum requested quantities per product.

    ``items`` are anything with ``product_id`` and ``quantity`` attributes
    (request DTOs or OrderLine values). Order of first appearance is kept.
    """
    totals: "OrderedDict[int, int]" = OrderedDict()
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals


class InventoryLedger:

    @staticmethod
    async def load_products(db: AsyncSession, product_ids: Iterable[int]) -> Dict[int, Product]:
        """
        Load products by id and fail with every missing id at once.

        Raises:
            ProductNotFoundError: one or more ids do not exist
        """
        ids = list(dict.fromkeys(product_ids))
        result = await db.execute(
            select(Product)
            .where(Product.id.in_(ids))
            .execution_options(populate_existing=True)
        )
        products = {product.id: product for product in result.scalars().all()}

        missing = [product_id for product_id in ids if product_id not in products]
        if missing:
            raise ProductNotFoundError(missing)

        return products

    @staticmethod
    async def validate(db: AsyncSession, items: Iterable[Any]) -> Dict[int, Product]:
        """
        Pre-check that every product exists and has enough stock.

        Returns:
            Products keyed by id

        Raises:
            ProductNotFoundError: lists all missing product ids
            InsufficientStockError: lists every short line
        """
        requested = aggregate_quantities(items)
        products = await InventoryLedger.load_products(db, requested.keys())

        short_lines: List[Dict[str, Any]] = [
            {
                "product_id": product_id,
                "product_name": products[product_id].name,
                "requested": quantity,
                "available": products[product_id].stock_quantity,
            }
            for product_id, quantity in requested.items()
            if products[product_id].stock_quantity < quantity
        ]
        if short_lines:
            raise InsufficientStockError(short_lines)

        return products

    @staticmethod
    async def reserve(db: AsyncSession, items: Iterable[Any]) -> Dict[int, Product]:
        """
        Decrement stock for every line. Does not commit.

        Products are updated in ascending id order so concurrent
        reservations take row locks in the same order.

        Returns:
            Products keyed by id (stock attributes not refreshed)

        Raises:
            ProductNotFoundError: a product disappeared since the pre-check
            InsufficientStockError: every line whose conditional decrement
                matched no row
        """
        requested = aggregate_quantities(items)
        products = await InventoryLedger.load_products(db, requested.keys())

        short_lines: List[Dict[str, Any]] = []
        depleted: List[int] = []

        for product_id in sorted(requested):
            quantity = requested[product_id]
            result = await db.execute(
                update(Product)
                .where(Product.id == product_id, Product.stock_quantity >= quantity)
                .values(stock_quantity=Product.stock_quantity - quantity)
                .returning(Product.stock_quantity)
                .execution_options(synchronize_session=False)
            )
            remaining = result.scalar_one_or_none()

            if remaining is None:
                current = await db.scalar(select(Product.stock_quantity).where(Product.id == product_id))
                short_lines.append({
                    "product_id": product_id,
                    "product_name": products[product_id].name,
                    "requested": quantity,
                    "available": current or 0,
                })
                continue

            if remaining == 0:
                depleted.append(product_id)

        if short_lines:
            logger.info(
                "Stock reservation rejected",
                extra={"short_product_ids": [line["product_id"] for line in short_lines]}
            )
            raise InsufficientStockError(short_lines)

        if depleted:
            await db.execute(
                update(Product)
                .where(Product.id.in_(depleted))
                .values(stock_status=StockStatus.OUT_OF_STOCK)
                .execution_options(synchronize_session=False)
            )

        logger.debug("Stock reserved", extra={"lines": dict(requested), "depleted": depleted})
        return products
