"""
Product stock enumerations.
"""

import enum


class StockStatus(str, enum.Enum):
    """
    Product stock status.

    The inventory ledger flips IN_STOCK/NEW to OUT_OF_STOCK when a
    reservation takes stock to exactly zero.
    """
    IN_STOCK = "IN_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    NEW = "NEW"
    DISCONTINUED = "DISCONTINUED"
